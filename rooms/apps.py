# rooms/apps.py

# Import AppConfig from django.apps because it's the base class for a Django app configuration.
from django.apps import AppConfig

"""
Author:
This class tells Django that an app named "rooms" exists.
A "room" is any conversation or study group that live sockets
can join. The app holds the in-memory bookkeeping for rooms:
which sockets are in which room, and who is online or typing.
RT: The registry and presence store used by every real-time feature.
"""
class RoomsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'rooms'
