# config/views.py

# Import JsonResponse from django.http because the health check answers in JSON.
from django.http import JsonResponse
# Import require_GET from django.views.decorators.http because the health check is read-only.
from django.views.decorators.http import require_GET

# Import get_hub from core.utils because the health check reports the hub's connection counts.
from core.utils import get_hub

"""
Author:
This function answers '/health' for load balancers and uptime
checks. Besides "ok" it reports how many conversations, groups
and users currently have a live WebSocket on this server.
It is async so it reads the hub on the same event loop that
changes it.
"""
@require_GET
async def health_view(request):
    return JsonResponse({
        'status': 'ok',
        'connections': get_hub().connection_stats(),
    })
