# messaging/routing.py

# Import re_path from django.urls because it's used to define URL patterns with regular expressions for WebSockets.
from django.urls import re_path
# Import consumers from . because 'websocket_urlpatterns' needs the RealtimeConsumer.
from . import consumers

"""
Author:
This function builds the WebSocket addresses (URLs) the server
listens to. Every address under '/ws/' goes to the RealtimeConsumer,
which itself decides whether the rest of the path is a valid
conversation or group, so a bad path still gets a proper error
frame instead of a silent refusal.
RT: This is the routing configuration for all real-time chat and presence.
"""
def websocket_urlpatterns(hub=None):
    return [
        re_path(r'^ws(?:/.*)?$', consumers.RealtimeConsumer.as_asgi(hub=hub)),
    ]
