"""
Serializers for user data exposed by the messaging core.
"""

from rest_framework import serializers

from accounts.models import User


class PublicUserSerializer(serializers.ModelSerializer):
    """
    Public profile of a user as seen by a conversation counterpart.

    ``is_online`` is read from the presence registry passed in the
    serializer context under "presence"; without one it is always False.
    """

    is_online = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            "id",
            "first_name",
            "last_name",
            "email",
            "avatar",
            "role",
            "is_online",
            "last_seen_online",
        ]
        read_only_fields = fields

    def get_is_online(self, obj) -> bool:
        presence = self.context.get("presence")
        return bool(presence and presence.is_online(obj.pk))
