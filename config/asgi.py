# config/asgi.py

import os
from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

django_asgi_app = get_asgi_application()

from channels.routing import ProtocolTypeRouter, URLRouter
from channels.security.websocket import AllowedHostsOriginValidator
from core.lifecycle import LifespanApp
from core.utils import get_hub
from messaging import routing as messaging_routing

hub = get_hub()

"""
Author:
This file is the main entry-point for the server. It acts as
a traffic controller that splits incoming connections.
It sends all normal web (HTTP) requests to Django, sends all
real-time (WebSocket) requests to the 'messaging' routing, and
lets servers that support it tell us about startup and shutdown
so open sockets can be closed cleanly.
RT: This is the core file that "turns on" all real-time features.
"""
application = ProtocolTypeRouter({
    "http": django_asgi_app,
    "websocket": AllowedHostsOriginValidator(
        URLRouter(
            messaging_routing.websocket_urlpatterns(hub)
        )
    ),
    "lifespan": LifespanApp(hub),
})
