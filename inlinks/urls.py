"""URL configuration for the inlinks app.

The ``app_name`` allows namespacing from the project URL configuration.
"""

from django.urls import path

from . import views

app_name = 'inlinks'

urlpatterns = [
    path('inlinks/', views.inlinks, name='inlinks'),
]
