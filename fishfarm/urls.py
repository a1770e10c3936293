# fishfarm/urls.py
import re

from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.http import JsonResponse
from django.urls import include, path, re_path
from django.views.static import serve as media_serve


def healthz(request):
    return JsonResponse({"status": "ok"})


urlpatterns = [
    path('admin/', admin.site.urls),
    path('', include('aquaculture.urls')),
    path('feed/', include('feed_inventory.urls')),
    path('api/', include('aquaculture.api_urls')),
    path('api/feed/', include('feed_inventory.api_urls')),
    path("healthz/", healthz),
]

# Serve uploaded logos even when DEBUG is False; a fronting web server should take this over.
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
else:
    media_prefix = settings.MEDIA_URL.lstrip('/')
    urlpatterns += [
        re_path(r'^%s(?P<path>.*)$' % re.escape(media_prefix), media_serve, {
            'document_root': settings.MEDIA_ROOT,
        }),
    ]
