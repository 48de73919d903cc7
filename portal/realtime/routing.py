from django.urls import path

from portal.realtime.consumers import FormSessionConsumer

# WS routes
websocket_urlpatterns = [
    path("ws/forms/<str:kind>/", FormSessionConsumer.as_asgi()),
]
