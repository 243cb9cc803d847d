# messaging/consumers.py

# Import json because WebSocket messages are sent as text in JSON format.
import json
# Import logging because connection problems are logged, not shown to other users.
import logging
# Import parse_qs from urllib.parse because the token can come in the '?token=' query string.
from urllib.parse import parse_qs

# Import AsyncWebsocketConsumer from channels.generic.websocket because this is the base class for our real-time consumer.
from channels.generic.websocket import AsyncWebsocketConsumer

# Import verify_token from accounts.services because every connection must present a valid login token.
from accounts.services import verify_token
# Import get_hub from core.utils because consumers built without a hub use the process-wide one.
from core.utils import get_hub
# Import the room kinds from rooms.registry because 'classify' maps the URL onto one of them.
from rooms.registry import CONVERSATIONS, GROUPS

from . import constants
from .handlers import FrameContext, dispatch
from .utils import relay_group_name

logger = logging.getLogger(__name__)

# Close codes that mean the browser went away on purpose
CLEAN_CLOSE_CODES = (1000, 1001, 1005)


class ConnectionRejected(Exception):
    """Raised while connecting; the message is sent to the browser."""


"""
Author:
This class is the "brain" for every real-time connection, both
private conversations and study-group chats. One instance lives
for each open browser socket. It checks the login token, works
out which conversation or group the socket is for from the URL
('/ws/conversations/12' or '/ws/groups/7'), registers it with the
hub, and then feeds every incoming frame to the message handlers.
When the socket closes it removes itself and tells the room the
user went offline.
RT: This entire class is for real-time chat, typing and presence.
"""
class RealtimeConsumer(AsyncWebsocketConsumer):
    def __init__(self, *args, hub=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.hub = hub or get_hub()
        # connecting -> open -> closing -> closed
        self.state = 'connecting'
        self.scope_type = None
        self.scope_id = None
        self.user_id = None
        self.registered = False

    @property
    def is_open(self):
        return self.state == 'open'

    """
    This function runs the moment a browser opens a socket. The
    socket is accepted straight away so that, if anything is wrong,
    the browser can be told why (a CONNECTION_ERROR frame) before
    the socket is closed with code 4000.
    RT: This connects the user to the live conversation or group.
    """
    async def connect(self):
        token, subprotocol = self.extract_token()
        await self.accept(subprotocol)
        self.state = 'open'

        try:
            identity = verify_token(token)
            if identity is None:
                raise ConnectionRejected(constants.AUTHENTICATION_FAILED)
            self.user_id = identity.get('userId')
            self.scope_type, self.scope_id = self.classify()

            self.hub.register(self, self.scope_type, self.scope_id, self.user_id)
            self.registered = True
            await self.join_relay_groups()

            await self.send_frame({
                'type': constants.CONNECTION_ESTABLISHED,
                'entityType': self.scope_type,
                'entityId': self.scope_id,
                'userId': self.user_id,
                **self.hub.snapshot(self.scope_type, self.scope_id),
            })
            logger.info('User %s connected to %s/%s', self.user_id, self.scope_type, self.scope_id)
        except ConnectionRejected as e:
            logger.warning('Connection error: %s (path %s)', e, self.scope.get('path'))
            await self.reject(str(e))
        except Exception as e:
            logger.exception('Connection error on %s', self.scope.get('path'))
            await self.reject(str(e) or e.__class__.__name__)

    def extract_token(self):
        """
        Returns (token, subprotocol to echo). The Sec-WebSocket-Protocol
        header wins over the '?token=' query parameter.
        """
        subprotocols = self.scope.get('subprotocols') or []
        if subprotocols:
            return subprotocols[0], subprotocols[0]
        query = parse_qs(self.scope.get('query_string', b'').decode('latin-1'))
        tokens = query.get('token')
        return (tokens[0] if tokens else None), None

    def classify(self):
        # '/ws/conversations/<id>' or '/ws/groups/<id>'; groups also need a known user
        segments = [part for part in self.scope.get('path', '').split('/') if part]
        if segments and segments[0] == 'ws':
            segments = segments[1:]
        if len(segments) == 2:
            kind, entity_id = segments
            if kind == CONVERSATIONS:
                return CONVERSATIONS, entity_id
            if kind == GROUPS and self.user_id is not None:
                return GROUPS, entity_id
        raise ConnectionRejected(constants.INVALID_CONNECTION_PATH)

    async def join_relay_groups(self):
        # Lets the REST side reach this socket through the channel layer (see utils.py)
        if self.channel_layer is None:
            return
        names = [relay_group_name(self.scope_type, self.scope_id)]
        if self.user_id is not None:
            names.append(relay_group_name('users', self.user_id))
        for name in names:
            # Ids that can't be group names just don't get REST relays
            if name is None:
                continue
            try:
                await self.channel_layer.group_add(name, self.channel_name)
            except Exception:
                # Live chat works without the channel layer; only REST relays are lost
                logger.exception('Could not join relay group %s for user %s', name, self.user_id)
                continue
            # Channels discards everything in self.groups on disconnect
            self.groups.append(name)

    async def reject(self, reason):
        if self.registered:
            self.registered = False
            await self.hub.unregister(self, self.scope_type, self.scope_id, self.user_id)
        await self.send_frame({'type': constants.CONNECTION_ERROR, 'message': reason})
        await self.terminate(constants.CLOSE_REJECTED, reason)

    """
    This function runs when the browser closes the socket, or the
    connection drops. It removes the socket from the hub, which also
    tells everyone left in the room that this user went offline.
    RT: This disconnects the user from live chat and presence.
    """
    async def disconnect(self, close_code):
        was_open = self.state == 'open'
        self.state = 'closed'
        if was_open and close_code not in CLEAN_CLOSE_CODES:
            logger.error('WebSocket error for user %s on %s/%s (close code %s)',
                         self.user_id, self.scope_type, self.scope_id, close_code)
        if self.registered:
            self.registered = False
            await self.hub.unregister(self, self.scope_type, self.scope_id, self.user_id)
            logger.info('User %s disconnected from %s/%s', self.user_id, self.scope_type, self.scope_id)

    """
    This function runs every time the server receives a frame from
    the browser. Bad frames get an ERROR reply and the socket stays
    open, so one broken message never kicks a user out of the chat.
    RT: This receives live messages, typing updates and pings.
    """
    async def receive(self, text_data=None, bytes_data=None):
        if not self.registered:
            return
        raw = text_data if text_data is not None else bytes_data
        context = FrameContext(scope_type=self.scope_type, scope_id=self.scope_id, user_id=self.user_id)
        try:
            await dispatch(self.hub, self, raw, context)
        except Exception as e:
            logger.exception('Message processing error for user %s', self.user_id)
            await self.send_frame({'type': constants.ERROR, 'message': str(e)})

    async def send_frame(self, payload):
        await self.send(text_data=json.dumps(payload))

    async def terminate(self, code, reason=''):
        """Closes the socket from the server side with a code and reason."""
        if self.state in ('closing', 'closed'):
            return
        self.state = 'closing'
        # Close reasons are limited to 123 bytes on the wire
        reason = reason.encode('utf-8')[:123].decode('utf-8', 'ignore')
        await self.base_send({'type': 'websocket.close', 'code': code, 'reason': reason})

    """
    This function is called when the REST side pushes something to
    this socket's conversation, group or user through the channel
    layer. It forwards the payload to the browser unchanged.
    RT: This pushes server-side events (like a message saved through
    the API) to the user's screen.
    """
    async def relay_event(self, event):
        if self.is_open:
            await self.send_frame(event['payload'])
