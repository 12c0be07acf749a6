from django.apps import AppConfig


class InquiriesConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'inquiries'

    def ready(self):
        # Keeps ownership consistent when users are deleted
        import inquiries.signals  # noqa: F401
