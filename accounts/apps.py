# accounts/apps.py

# Import AppConfig from django.apps because it's the base class for a Django app configuration.
from django.apps import AppConfig

"""
Author:
This class tells Django how to treat the "accounts" app. In this
project the app only deals with login tokens: checking the token a
browser presents when it opens a WebSocket, and signing tokens for
developers through the 'issue_token' command.
"""
class AccountsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'accounts'
