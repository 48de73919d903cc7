from urllib.parse import urlencode

from django.conf import settings
from django.http import HttpResponseRedirect

from portal.state import AppState


class LoginRequiredMiddleware:
    """Send signed-out browsers to the login page.

    API paths answer 401 themselves and are left alone.
    """
    OPEN_PREFIXES = ('/api/', '/static/', '/healthz', '/metrics', '/ws/')

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        path = request.path or ''
        login_url = settings.LOGIN_URL
        if path == login_url or any(path.startswith(p) for p in self.OPEN_PREFIXES):
            return self.get_response(request)
        if not AppState.hydrate(getattr(request, 'session', None)).is_authenticated:
            return HttpResponseRedirect(f'{login_url}?{urlencode({"next": request.get_full_path()})}')
        return self.get_response(request)
