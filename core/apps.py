import logging

from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'core'

    def ready(self):
        logger = logging.getLogger(__name__)
        # Registers the BaseModel change-logging receiver
        import core.models  # noqa: F401
        logger.debug("CoreConfig is ready.")
