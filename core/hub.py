# core/hub.py

# Import asyncio because sends, the reaper loop and shutdown are all coroutines on the event loop.
import asyncio
# Import json because WebSocket messages are sent as text in JSON format.
import json
# Import logging because the hub reports sweeps, failed sends and shutdowns.
import logging

# Import settings from django.conf because 'from_settings' reads the timing values.
from django.conf import settings

# Import the frame tags and close codes shared with the consumer.
from messaging import constants
# Import the two state containers this hub owns.
from rooms.presence import PresenceStore
from rooms.registry import ConnectionRegistry

from .utils import now_ms

logger = logging.getLogger(__name__)


"""
Author:
The hub is the single owner of all real-time state in a server
process: the connection registry (who is connected where) and the
presence store (who is online or typing). Every WebSocket consumer
gets a reference to the same hub, and tests build their own.

It also runs the reaper, a background loop that evicts users who
stopped sending heartbeats and typists who went quiet.

Everything here runs on the one asyncio event loop. Registry and
presence updates never await, so no other coroutine can see them
half done; only socket sends are suspension points.
RT: This is the heart of real-time presence, broadcast and cleanup.
"""
class RealtimeHub:
    def __init__(self, reaper_interval=10, online_timeout_ms=30000, typing_timeout_ms=5000,
                 clock=None, handle_signals=False):
        self.registry = ConnectionRegistry()
        self.presence = PresenceStore()
        self.reaper_interval = reaper_interval
        self.online_timeout_ms = online_timeout_ms
        self.typing_timeout_ms = typing_timeout_ms
        self.clock = clock or now_ms
        self.handle_signals = handle_signals
        self._reaper_task = None
        self._signals_installed = False
        self._shutting_down = False

    @classmethod
    def from_settings(cls):
        return cls(
            reaper_interval=settings.REALTIME_REAPER_INTERVAL_SECONDS,
            online_timeout_ms=settings.REALTIME_ONLINE_TIMEOUT_MS,
            typing_timeout_ms=settings.REALTIME_TYPING_TIMEOUT_MS,
            handle_signals=settings.REALTIME_HANDLE_SIGNALS,
        )

    def now(self):
        return self.clock()

    # --- CONNECTIONS ---

    def register(self, socket, scope_type, scope_id, user_id):
        self.registry.add(scope_type, scope_id, socket)
        if user_id is not None:
            previous = self.registry.bind_user(user_id, socket)
            if previous is not None and previous is not socket:
                # The older socket stays in its room until it closes on its own
                logger.info('User %s opened another connection; it now owns their presence', user_id)
            self.presence.mark_online(user_id, scope_type, scope_id, self.now())
        self.start()

    async def unregister(self, socket, scope_type, scope_id, user_id):
        """
        Removes a closed socket everywhere and, if the user is really
        gone, tells the rest of their room that they went offline.
        """
        self.registry.discard(scope_type, scope_id, socket)
        if user_id is None:
            return
        if not self.registry.release_user(user_id, socket):
            # A newer connection from the same user owns the presence entries
            return
        self.presence.clear_typing(user_id)
        entry = self.presence.mark_offline(user_id)
        if entry is None:
            return
        await self.broadcast(entry.scope_type, entry.scope_id, {
            'type': constants.USER_STATUS_UPDATE,
            'userId': user_id,
            'isOnline': False,
            'onlineUsers': self.presence.online_users(entry.scope_type, entry.scope_id),
        })

    def snapshot(self, scope_type, scope_id):
        return {
            'onlineUsers': self.presence.online_users(scope_type, scope_id),
            'typingUsers': self.presence.typing_users(scope_type, scope_id),
        }

    def connection_stats(self):
        return self.registry.stats()

    # --- DELIVERY ---

    async def broadcast(self, scope_type, scope_id, payload):
        """
        Sends one payload to every open socket in a conversation or
        group. Returns how many sockets it was handed to. Sockets that
        are not open are skipped and left in the registry; only the
        close path removes them.
        """
        sockets = self.registry.sockets_for(scope_type, scope_id)
        if not sockets:
            return 0
        text = json.dumps(payload)
        targets = [socket for socket in sockets if socket.is_open]
        results = await asyncio.gather(
            *(socket.send(text_data=text) for socket in targets),
            return_exceptions=True,
        )
        delivered = 0
        for result in results:
            if isinstance(result, BaseException):
                logger.warning('Dropped %s frame for %s/%s: %r', payload.get('type'), scope_type, scope_id, result)
            else:
                delivered += 1
        return delivered

    # --- REAPER ---

    async def reap(self, now=None):
        """
        One sweep of the reaper. Online entries older than the online
        timeout and typing entries older than the typing timeout are
        dropped and their rooms are told.
        """
        now = self.now() if now is None else now

        for user_id, entry in self.presence.stale_online(now, self.online_timeout_ms):
            current = self.presence.online.get(user_id)
            # Skip users who sent a PING while an earlier broadcast was awaiting
            if current is not entry or now - current.last_seen <= self.online_timeout_ms:
                continue
            self.presence.mark_offline(user_id)
            logger.debug('Reaped silent user %s from %s/%s', user_id, entry.scope_type, entry.scope_id)
            await self.broadcast(entry.scope_type, entry.scope_id, {
                'type': constants.USER_STATUS_UPDATE,
                'userId': user_id,
                'isOnline': False,
            })

        for user_id, entry in self.presence.stale_typing(now, self.typing_timeout_ms):
            if self.presence.typing.get(user_id) is not entry:
                continue
            self.presence.clear_typing(user_id)
            await self.broadcast(entry.scope_type, entry.scope_id, {
                'type': constants.TYPING_UPDATE,
                'userId': user_id,
                'isTyping': False,
                'typingUsers': self.presence.typing_users(entry.scope_type, entry.scope_id),
            })

    async def _run_reaper(self):
        while True:
            await asyncio.sleep(self.reaper_interval)
            try:
                await self.reap()
            except Exception:
                logger.exception('Presence sweep failed')

    def start(self):
        """
        Starts the reaper on the running event loop. Safe to call many
        times; does nothing outside of a loop.
        """
        if self._reaper_task is not None and not self._reaper_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._reaper_task = loop.create_task(self._run_reaper())
        if self.handle_signals and not self._signals_installed:
            from .lifecycle import install_shutdown_handlers
            self._signals_installed = install_shutdown_handlers(self, loop)

    async def stop(self):
        task, self._reaper_task = self._reaper_task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def shutdown(self):
        """
        Closes every registered socket with 1001 "Server shutting down".
        No grace period: frames still in flight are lost.
        """
        if self._shutting_down:
            return
        self._shutting_down = True
        await self.stop()
        sockets = self.registry.all_sockets()
        logger.info('Shutting down WebSocket server, closing %d connection(s)', len(sockets))
        results = await asyncio.gather(
            *(socket.terminate(constants.CLOSE_GOING_AWAY, constants.SERVER_SHUTTING_DOWN) for socket in sockets),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                logger.warning('Failed to close a connection during shutdown: %r', result)
