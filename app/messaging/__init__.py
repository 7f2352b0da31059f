"""
Direct messaging between two users.

Conversation store, message log, authorization gate, presence/typing
signaling and the realtime WebSocket transport.
"""
