# messaging/utils.py

# Import re because channel-layer group names only allow a small set of characters.
import re
# Import async_to_sync from asgiref.sync because these helpers are called from normal (sync) Django views.
from asgiref.sync import async_to_sync
# Import get_channel_layer from channels.layers because the REST side talks to sockets through it.
from channels.layers import get_channel_layer

GROUP_NAME_PATTERN = re.compile(r'^[A-Za-z0-9_.-]+$')


def relay_group_name(kind, ident):
    # e.g. 'conversations.12', 'groups.7', 'users.42'; None if the id can't be a group name
    name = f'{kind}.{ident}'
    if len(name) >= 100 or not GROUP_NAME_PATTERN.match(name):
        return None
    return name


"""
Author:
These helpers are for code outside the WebSocket layer (REST views,
background jobs) that needs to push something live, for example
after a message is saved through the API. They publish to the
channel layer; every connected consumer for that conversation,
group or user forwards the payload to its browser.
RT: This is how the REST API triggers real-time updates.
"""
def broadcast_to_conversation(conversation_id, payload):
    return _relay('conversations', conversation_id, payload)


def broadcast_to_group(group_id, payload):
    return _relay('groups', group_id, payload)


def send_to_user(user_id, payload):
    return _relay('users', user_id, payload)


def _relay(kind, ident, payload):
    name = relay_group_name(kind, ident)
    channel_layer = get_channel_layer()
    if name is None or channel_layer is None:
        return False
    async_to_sync(channel_layer.group_send)(
        name,
        {
            'type': 'relay.event', # Handled by RealtimeConsumer.relay_event
            'payload': payload,
        }
    )
    return True
