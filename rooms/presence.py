# rooms/presence.py

# Import dataclass from dataclasses because each presence record is a tiny value object.
from dataclasses import dataclass

"""
Author:
This file remembers who is online and who is typing, and in
which conversation or group. The server checks it to build the
"who's here" lists and the reaper uses it to find users who went
quiet without saying goodbye.
RT: This is the live presence data behind the green dots and
"is typing..." bubbles.
"""


@dataclass
class OnlineEntry:
    last_seen: int
    scope_type: str
    scope_id: str

    def matches(self, scope_type, scope_id):
        return self.scope_type == scope_type and self.scope_id == scope_id


@dataclass
class TypingEntry:
    scope_type: str
    scope_id: str
    timestamp: int

    def matches(self, scope_type, scope_id):
        return self.scope_type == scope_type and self.scope_id == scope_id


class PresenceStore:
    # All timestamps are epoch milliseconds.

    def __init__(self):
        self.online = {}
        self.typing = {}

    # --- ONLINE ---

    def mark_online(self, user_id, scope_type, scope_id, now):
        self.online[user_id] = OnlineEntry(last_seen=now, scope_type=scope_type, scope_id=scope_id)

    def touch(self, user_id, now, scope_type=None, scope_id=None):
        """
        Refreshes a user's last-seen time (a heartbeat). If the reaper
        already evicted them, the entry is recreated in the given room.
        last_seen never moves backwards.
        """
        entry = self.online.get(user_id)
        if entry is None:
            if scope_type is None:
                return None
            entry = OnlineEntry(last_seen=now, scope_type=scope_type, scope_id=scope_id)
            self.online[user_id] = entry
            return entry
        entry.last_seen = max(entry.last_seen, now)
        return entry

    def mark_offline(self, user_id):
        # Returns the removed entry so callers know which room to tell
        return self.online.pop(user_id, None)

    def online_users(self, scope_type, scope_id):
        # Full scan on purpose: there is no per-room index
        return [uid for uid, entry in self.online.items() if entry.matches(scope_type, scope_id)]

    def stale_online(self, now, timeout_ms):
        return [
            (uid, entry) for uid, entry in list(self.online.items())
            if now - entry.last_seen > timeout_ms
        ]

    # --- TYPING ---

    def set_typing(self, user_id, scope_type, scope_id, now):
        self.typing[user_id] = TypingEntry(scope_type=scope_type, scope_id=scope_id, timestamp=now)

    def clear_typing(self, user_id):
        return self.typing.pop(user_id, None)

    def typing_users(self, scope_type, scope_id):
        return [uid for uid, entry in self.typing.items() if entry.matches(scope_type, scope_id)]

    def stale_typing(self, now, timeout_ms):
        return [
            (uid, entry) for uid, entry in list(self.typing.items())
            if now - entry.timestamp > timeout_ms
        ]
