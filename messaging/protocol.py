# messaging/protocol.py

# Import json because inbound frames are JSON text.
import json
# Import dataclass because each kind of inbound frame is a small immutable record.
from dataclasses import dataclass
# Import Enum because the set of inbound frame types is closed.
from enum import Enum
# Import ClassVar from typing because each message record carries its type tag on the class.
from typing import ClassVar

"""
Author:
This file turns the raw text a browser sends over the WebSocket
into one of a fixed set of typed messages. Anything that is not
valid JSON, not an object, or not one of the known types is
rejected here, before any handler runs.
RT: This is the parser for every real-time frame from the browser.
"""


class FrameError(Exception):
    """Base class for a bad inbound frame. The connection stays open."""


class ParseError(FrameError):
    pass


class UnknownTypeError(FrameError):
    pass


class InvalidFrameError(FrameError):
    pass


class InboundType(Enum):
    CHAT_MESSAGE = 'CHAT_MESSAGE'
    TYPING_STATUS = 'TYPING_STATUS'
    MESSAGE_READ = 'MESSAGE_READ'
    GROUP_TOPIC_CHANGE = 'GROUP_TOPIC_CHANGE'
    PING = 'PING'


@dataclass(frozen=True)
class ChatMessage:
    kind: ClassVar[InboundType] = InboundType.CHAT_MESSAGE
    # 'content' is None when the frame had no usable text; the handler rejects it
    content: object
    message_id: object = None


@dataclass(frozen=True)
class TypingStatus:
    kind: ClassVar[InboundType] = InboundType.TYPING_STATUS
    is_typing: bool


@dataclass(frozen=True)
class MessageRead:
    kind: ClassVar[InboundType] = InboundType.MESSAGE_READ
    message_id: object


@dataclass(frozen=True)
class GroupTopicChange:
    kind: ClassVar[InboundType] = InboundType.GROUP_TOPIC_CHANGE
    topic: object


@dataclass(frozen=True)
class Ping:
    kind: ClassVar[InboundType] = InboundType.PING
    timestamp: object


def _chat_message(data):
    message = data.get('message')
    if not isinstance(message, dict):
        return ChatMessage(content=None)
    return ChatMessage(content=message.get('content'), message_id=message.get('id'))


# One builder per inbound type. Adding a member to InboundType without a
# builder here fails at import time (see the check below).
BUILDERS = {
    InboundType.CHAT_MESSAGE: _chat_message,
    InboundType.TYPING_STATUS: lambda data: TypingStatus(is_typing=bool(data.get('isTyping'))),
    InboundType.MESSAGE_READ: lambda data: MessageRead(message_id=data.get('messageId')),
    InboundType.GROUP_TOPIC_CHANGE: lambda data: GroupTopicChange(topic=data.get('topic')),
    InboundType.PING: lambda data: Ping(timestamp=data.get('timestamp')),
}

_missing = set(InboundType) - set(BUILDERS)
if _missing:
    raise RuntimeError(f'No frame builder for: {sorted(t.value for t in _missing)}')


def parse_frame(raw):
    """
    Parses one text (or UTF-8 bytes) frame into a typed message.
    Raises ParseError for bad JSON and UnknownTypeError for an
    unrecognised 'type'.
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode('utf-8')
        except UnicodeDecodeError:
            raise ParseError('Frame is not valid UTF-8 text')
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ParseError(f'Invalid JSON: {e}')
    if not isinstance(data, dict):
        raise ParseError('Frame must be a JSON object')

    type_tag = data.get('type')
    try:
        kind = InboundType(type_tag)
    except (TypeError, ValueError):
        raise UnknownTypeError(f'Unknown message type: {type_tag}')
    return BUILDERS[kind](data)
