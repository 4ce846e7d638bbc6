"""
URL configuration for backend project.
"""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("", include("bulk_actions.urls")),
    path("admin/", admin.site.urls),
]
