from django.conf import settings
from django.db import connections
from django.db.utils import DatabaseError
from django.http import JsonResponse


def healthz(request):
    upstreams = {'curd': bool(settings.CURD_API_URL), 'dropdown': bool(settings.DROPDOWN_API_URL)}
    try:
        with connections['default'].cursor() as c:
            c.execute('SELECT 1')
            row = c.fetchone()
        return JsonResponse({'ok': True, 'db': bool(row and row[0] == 1), 'upstreams': upstreams})
    except DatabaseError as e:
        return JsonResponse({'ok': False, 'error': str(e), 'upstreams': upstreams}, status=500)
