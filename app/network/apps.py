"""
Django app configuration for network.

The network app stores the relationships (contacts, groups, mentor groups)
that decide who may start a conversation with whom.
"""

from django.apps import AppConfig


class NetworkConfig(AppConfig):
    """Configuration for the network application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "network"
    verbose_name = "Network"
