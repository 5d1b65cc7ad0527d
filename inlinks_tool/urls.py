"""Root URL configuration for inlinks_tool."""

from django.urls import include, path

urlpatterns = [
    path('', include('inlinks.urls')),
]
