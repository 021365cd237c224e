"""
URL configuration for lead_relay project.
"""
from django.contrib import admin
from django.urls import path, include

from submissions.views import HealthView, MetricsView

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', include('submissions.urls')),
    path('health/', HealthView.as_view(), name='health'),
    path('metrics/', MetricsView.as_view(), name='metrics'),
]
