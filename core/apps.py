# core/apps.py

# Import AppConfig from django.apps because it's the base class for a Django app configuration.
from django.apps import AppConfig

"""
Author:
This class tells Django that an app named "core" exists.
Besides the project-wide helpers in 'utils.py', this app owns
the real-time hub: the one object that holds every live
connection and all presence data for this server process.
RT: The hub is built here when Django starts up, so the
WebSocket routes and the health check share the same one.
"""
class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'core'

    def ready(self):
        from .hub import RealtimeHub
        self.hub = RealtimeHub.from_settings()
