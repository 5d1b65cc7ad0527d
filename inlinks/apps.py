from django.apps import AppConfig


class InlinksConfig(AppConfig):
    """Configuration for the inlinks Django app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'inlinks'
