# core/lifecycle.py

# Import logging because startup and shutdown steps are logged.
import logging
# Import signal because servers without ASGI lifespan support only tell us about shutdown through signals.
import signal
# Import threading because signal handlers can only be installed from the main thread.
import threading

logger = logging.getLogger(__name__)


"""
Author:
This small ASGI app answers the server's "lifespan" messages.
On startup it starts the hub's reaper; on shutdown it closes every
open WebSocket with code 1001 before the server goes away.
RT: This is the graceful-shutdown hook for servers that speak the
ASGI lifespan protocol.
"""
class LifespanApp:
    def __init__(self, hub):
        self.hub = hub

    async def __call__(self, scope, receive, send):
        while True:
            message = await receive()
            if message['type'] == 'lifespan.startup':
                self.hub.start()
                await send({'type': 'lifespan.startup.complete'})
            elif message['type'] == 'lifespan.shutdown':
                await self.hub.shutdown()
                await send({'type': 'lifespan.shutdown.complete'})
                return


def install_shutdown_handlers(hub, loop):
    """
    Chains a SIGTERM/SIGINT handler in front of whatever the server
    installed. The handler runs hub.shutdown() on the loop and only
    hands the signal to the previous handler once every socket has
    been closed. Returns False when handlers cannot be installed
    (not on the main thread).
    """
    if threading.current_thread() is not threading.main_thread():
        return False

    for signum in (signal.SIGTERM, signal.SIGINT):
        previous = signal.getsignal(signum)
        if previous == signal.SIG_IGN:
            continue
        signal.signal(signum, make_shutdown_handler(hub, loop, signum, previous))
    logger.debug('Installed WebSocket shutdown handlers')
    return True


def make_shutdown_handler(hub, loop, signum, previous):
    def handler(received, frame):
        logger.info('Received signal %s, closing WebSocket connections', received)

        # Close sockets first, then hand the signal on
        def finish(task=None):
            if callable(previous):
                previous(received, frame)
            else:
                signal.signal(signum, signal.SIG_DFL)
                signal.raise_signal(signum)

        def schedule():
            loop.create_task(hub.shutdown()).add_done_callback(finish)

        if loop.is_closed() or not loop.is_running():
            finish()
            return
        loop.call_soon_threadsafe(schedule)

    return handler
