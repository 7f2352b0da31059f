"""
URL configuration for the messaging API.

Routes:
    /conversations/                  - List (GET), get-or-create (POST)
    /conversations/{id}/             - Detail page (GET), delete (DELETE)
    /conversations/{id}/messages/    - Send message (POST)
    /conversations/{id}/read/        - Mark conversation read (POST)
    /messages/{id}/read/             - Mark message read (POST)
"""

from rest_framework.routers import DefaultRouter

from messaging.views import ConversationViewSet, MessageViewSet

router = DefaultRouter()
router.register(r"conversations", ConversationViewSet, basename="conversation")
router.register(r"messages", MessageViewSet, basename="message")

app_name = "messaging"
urlpatterns = router.urls
