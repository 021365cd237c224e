"""
URL configuration for the submissions app.

Trailing slashes are optional since landing pages post to /api/lead/start.
"""
from django.urls import re_path
from submissions.views import LeadStartView, LeadStepView

urlpatterns = [
    re_path(r'^lead/start/?$', LeadStartView.as_view(), name='lead-start'),
    re_path(r'^lead/step/?$', LeadStepView.as_view(), name='lead-step'),
    re_path(r'^submit/?$', LeadStartView.as_view(), name='lead-submit'),
]
