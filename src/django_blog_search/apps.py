from django.apps import AppConfig


class BlogSearchConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "django_blog_search"
    label = "django_blog_search"
    verbose_name = "Blog Semantic Search"

    def ready(self):
        from .conf import get_config
        from .signals import connect_signals

        connect_signals(get_config())
