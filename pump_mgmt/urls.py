# pump_mgmt/urls.py
import re

from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.http import JsonResponse
from django.urls import path, include, re_path
from django.views.static import serve as media_serve


def healthz(request):
    return JsonResponse({"status": "ok"})


urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', include('workorders.api_urls')),
    path("healthz/", healthz),
]

# Uploaded farmer lists and stage photos
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
else:
    media_prefix = settings.MEDIA_URL.lstrip('/')
    urlpatterns += [
        re_path(r'^%s(?P<path>.*)$' % re.escape(media_prefix), media_serve, {
            'document_root': settings.MEDIA_ROOT,
        }),
    ]
