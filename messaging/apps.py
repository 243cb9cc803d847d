# messaging/apps.py

# Import AppConfig from django.apps because it's the base class for a Django app configuration.
from django.apps import AppConfig

"""
Author:
This class tells Django that an app named "messaging" exists.
This app speaks the WebSocket protocol with the browser: it
accepts connections for conversations and study groups, parses
incoming frames and runs the handler for each message type.
RT: This app contains the WebSocket consumer for real-time chat.
"""
class MessagingConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'messaging'
