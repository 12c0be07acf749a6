# inquiries/signals.py
from django.conf import settings
from django.db.models import F
from django.db.models.signals import pre_delete
from django.dispatch import receiver
from django.utils import timezone

from core.logger_service import get_logger
from .models import Inquiry

logger = get_logger()


@receiver(pre_delete, sender=settings.AUTH_USER_MODEL)
def release_owned_inquiries(sender, instance, **kwargs):
    """Return a deleted user's inquiries to the unattended pool."""
    released = Inquiry.objects.filter(assigned_to=instance).update(
        assigned_to=None,
        assignment_status='not_assigned',
        pending_first_follow_up=False,
        version=F('version') + 1,
        updated_at=timezone.now(),
    )
    if released:
        logger.info(f"Released {released} inquiries owned by deleted user {instance.username}")
