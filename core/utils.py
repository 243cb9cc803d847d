# core/utils.py

# Import time because 'now_ms' reads the wall clock.
import time
# Import apps from django.apps because 'get_hub' looks up the hub owned by the core app.
from django.apps import apps


def now_ms():
    # Presence timestamps are epoch milliseconds, like the browser's Date.now()
    return int(time.time() * 1000)


"""
Author:
Returns the real-time hub that belongs to this server process.
The hub is built once when the 'core' app loads (see core/apps.py).
"""
def get_hub():
    return apps.get_app_config('core').hub


"""
Author:
This is a simple helper function used by normal web pages and
API views. Its only job is to quickly get the list of users
currently online in one conversation or group.
RT: This function is the central source for all real-time
"who is online" data outside the WebSocket code.
"""
def get_online_user_ids(scope_type, scope_id, hub=None):
    hub = hub or get_hub()
    return hub.presence.online_users(scope_type, str(scope_id))
