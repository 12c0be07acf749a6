# core/services.py
import logging

import requests
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import send_mail

logger = logging.getLogger('django')


class NotificationService:
    """
    Fire-and-forget delivery of short messages to users.

    Messages go out by email to every recipient with an address and, when
    ``NOTIFICATION_WEBHOOK_URL`` is configured, to that webhook. Delivery
    problems are logged and never raised.
    """

    SUBJECT = 'Inquiry update'

    @staticmethod
    def notify_users(user_ids, message):
        user_ids = [user_id for user_id in (user_ids or []) if user_id]
        logger.info(f"Notify users {user_ids}: {message}")
        try:
            NotificationService._send_email(user_ids, message)
            NotificationService._post_webhook(user_ids, message)
        except Exception as e:
            logger.warning(f"Notification send failed: {str(e)}")

    @staticmethod
    def _send_email(user_ids, message):
        if not user_ids:
            return
        recipients = list(
            get_user_model().objects
            .filter(pk__in=user_ids, is_active=True)
            .exclude(email='')
            .values_list('email', flat=True)
        )
        if not recipients:
            return
        send_mail(
            NotificationService.SUBJECT,
            message,
            settings.DEFAULT_FROM_EMAIL,
            recipients,
            fail_silently=False,
        )

    @staticmethod
    def _post_webhook(user_ids, message):
        url = getattr(settings, 'NOTIFICATION_WEBHOOK_URL', '')
        if not url:
            return
        response = requests.post(
            url,
            json={'recipients': user_ids, 'message': message},
            timeout=settings.NOTIFICATION_TIMEOUT,
        )
        response.raise_for_status()


def notify_users(user_ids, message):
    """Module level shortcut used by the inquiry services."""
    NotificationService.notify_users(user_ids, message)
