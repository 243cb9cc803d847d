# rooms/registry.py

"""
Author:
This file keeps track of every live WebSocket connection on this
server process. Connections are filed under the conversation or
study group they opened, and under the user they belong to, so a
message for "conversation 12" or "user 7" can find its sockets.
RT: This is the in-memory "phone book" of real-time connections.
"""

# The two kinds of room a connection can subscribe to.
CONVERSATIONS = 'conversations'
GROUPS = 'groups'
SCOPE_TYPES = (CONVERSATIONS, GROUPS)


class ConnectionRegistry:
    """
    Holds three maps:
    - conversations: conversation id -> set of sockets
    - groups: group id -> set of sockets
    - users: user id -> the user's most recent socket

    Every method is synchronous so it can never be interrupted halfway
    by another coroutine on the event loop.
    """

    def __init__(self):
        self.conversations = {}
        self.groups = {}
        self.users = {}

    def _scope_map(self, scope_type):
        if scope_type == CONVERSATIONS:
            return self.conversations
        if scope_type == GROUPS:
            return self.groups
        raise ValueError(f'Unknown scope type: {scope_type}')

    def add(self, scope_type, scope_id, socket):
        # A set means registering the same socket twice is harmless
        self._scope_map(scope_type).setdefault(scope_id, set()).add(socket)

    def discard(self, scope_type, scope_id, socket):
        """Removes a socket from a room. Returns True if it was there."""
        scope_map = self._scope_map(scope_type)
        sockets = scope_map.get(scope_id)
        if not sockets or socket not in sockets:
            return False
        sockets.discard(socket)
        # Empty rooms are dropped so the map only holds live rooms
        if not sockets:
            del scope_map[scope_id]
        return True

    def sockets_for(self, scope_type, scope_id):
        # Returns a copy: callers await between sends, and the set may change meanwhile
        return list(self._scope_map(scope_type).get(scope_id, ()))

    def bind_user(self, user_id, socket):
        """
        Points the user's entry at this socket (last connection wins)
        and returns whatever socket was there before, if any.
        """
        previous = self.users.get(user_id)
        self.users[user_id] = socket
        return previous

    def release_user(self, user_id, socket):
        # Only forget the user if the entry still points at this socket.
        # A newer connection from another tab/device keeps its entry.
        if self.users.get(user_id) is socket:
            del self.users[user_id]
            return True
        return False

    def user_socket(self, user_id):
        return self.users.get(user_id)

    def all_sockets(self):
        sockets = set(self.users.values())
        for scope_map in (self.conversations, self.groups):
            for room in scope_map.values():
                sockets.update(room)
        return sockets

    def stats(self):
        return {
            'conversations': len(self.conversations),
            'groups': len(self.groups),
            'users': len(self.users),
        }
