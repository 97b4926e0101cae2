"""
URL configuration for the backend.

The sync engine and notification manager run in the offline worker; the web
process only serves the admin for inspecting operations and conflicts.
"""

from django.contrib import admin
from django.urls import path

urlpatterns = [
    path("admin/", admin.site.urls),
]
