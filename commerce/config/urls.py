"""
URL configuration for the commerce project.

Every app mounts its API under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include, re_path
from django.conf import settings
from django.views.static import serve

admin.site.site_header = "CE Commerce Admin Panel"
admin.site.site_title = "CE Commerce Admin Portal"
admin.site.index_title = "Storefront, orders and warehouse administration"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('commerce.core.urls')),
    path('api/v1/', include('commerce.catalog.urls')),
    path('api/v1/', include('commerce.parties.urls')),
    path('api/v1/', include('commerce.inventory.urls')),
    path('api/v1/', include('commerce.pricing.urls')),
    path('api/v1/', include('commerce.orders.urls')),
    path('api/v1/', include('commerce.content.urls')),
    path('api/v1/', include('commerce.reports.urls')),
    re_path(r'^media/(?P<path>.*)$', serve, {'document_root': settings.MEDIA_ROOT}),
]
