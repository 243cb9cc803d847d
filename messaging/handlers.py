# messaging/handlers.py

# Import logging because frames that fail are logged before the browser is told.
import logging
# Import uuid because chat messages without a caller-supplied id need a unique one.
import uuid
# Import dataclass because the per-connection context is a small immutable record.
from dataclasses import dataclass

# Import timezone from django.utils because message and topic timestamps are UTC.
from django.utils import timezone

from rooms.registry import GROUPS

from . import constants
from .protocol import FrameError, InboundType, InvalidFrameError, parse_frame

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameContext:
    # Who sent the frame and which room their socket belongs to
    scope_type: str
    scope_id: str
    user_id: object


def iso_now():
    return timezone.now().isoformat(timespec='milliseconds').replace('+00:00', 'Z')


"""
Author:
Handles a chat message typed by the user. The message is not
saved here (the REST API does that); it is stamped with an id
and a time, pushed to everyone in the room, and the sender gets
a "delivered" receipt.
RT: This is what makes a sent message appear instantly for everyone.
"""
async def handle_chat_message(hub, socket, message, context):
    if not message.content:
        raise InvalidFrameError(constants.INVALID_MESSAGE_FORMAT)

    # Prefer the id the caller already has (e.g. from the database)
    message_id = str(message.message_id) if message.message_id is not None else str(uuid.uuid4())
    record = {
        'id': message_id,
        'senderId': context.user_id,
        'content': message.content,
        'timestamp': iso_now(),
        'entityType': context.scope_type,
        'entityId': context.scope_id,
    }
    await hub.broadcast(context.scope_type, context.scope_id, {
        'type': constants.NEW_MESSAGE,
        'message': record,
    })
    await socket.send_frame({'type': constants.MESSAGE_DELIVERED, 'messageId': message_id})


"""
Author:
Turns the "is typing..." bubble on or off for this user and sends
the room the new list of people typing.
"""
async def handle_typing_status(hub, socket, message, context):
    if message.is_typing:
        hub.presence.set_typing(context.user_id, context.scope_type, context.scope_id, hub.now())
    else:
        hub.presence.clear_typing(context.user_id)

    await hub.broadcast(context.scope_type, context.scope_id, {
        'type': constants.TYPING_UPDATE,
        'userId': context.user_id,
        'isTyping': message.is_typing,
        'typingUsers': hub.presence.typing_users(context.scope_type, context.scope_id),
    })


# Read receipts are only relayed; nothing is stored
async def handle_message_read(hub, socket, message, context):
    await hub.broadcast(context.scope_type, context.scope_id, {
        'type': constants.MESSAGE_READ,
        'messageId': message.message_id,
        'userId': context.user_id,
    })


async def handle_group_topic_change(hub, socket, message, context):
    # Always goes to the group with this id, even from a conversation socket
    await hub.broadcast(GROUPS, context.scope_id, {
        'type': constants.TOPIC_CHANGED,
        'topic': {
            'topic': message.topic,
            'setBy': context.user_id,
            'setAt': iso_now(),
        },
    })


async def handle_ping(hub, socket, message, context):
    if context.user_id is not None:
        hub.presence.touch(context.user_id, hub.now(), context.scope_type, context.scope_id)
    # Echo the client's own timestamp so it can measure round trips
    await socket.send_frame({'type': constants.PONG, 'timestamp': message.timestamp})


HANDLERS = {
    InboundType.CHAT_MESSAGE: handle_chat_message,
    InboundType.TYPING_STATUS: handle_typing_status,
    InboundType.MESSAGE_READ: handle_message_read,
    InboundType.GROUP_TOPIC_CHANGE: handle_group_topic_change,
    InboundType.PING: handle_ping,
}

_unhandled = set(InboundType) - set(HANDLERS)
if _unhandled:
    raise RuntimeError(f'No handler for: {sorted(t.value for t in _unhandled)}')


"""
Author:
Runs one inbound frame from start to finish: parse it, find its
handler, run it. Anything wrong with the frame (bad JSON, unknown
type, missing fields) is sent back to the sender as an ERROR frame
and the connection stays open.
RT: Every message the browser sends over the WebSocket comes through here.
"""
async def dispatch(hub, socket, raw, context):
    try:
        message = parse_frame(raw)
        await HANDLERS[message.kind](hub, socket, message, context)
    except FrameError as e:
        logger.info('Rejected frame from user %s: %s', context.user_id, e)
        await socket.send_frame({'type': constants.ERROR, 'message': str(e)})
