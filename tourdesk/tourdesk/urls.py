from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static

from messaging.views import SignedAttachmentDownload

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('bookings.urls')),
    path('api/v1/', include('messaging.urls')),
    path(
        'api/public/attachments/<str:token>/',
        SignedAttachmentDownload.as_view(),
        name='attachment_signed_download',
    ),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
