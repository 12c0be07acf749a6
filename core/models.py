import logging

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models.signals import pre_save
from django.dispatch import receiver
from rest_framework.exceptions import ValidationError

logger = logging.getLogger('django')

DEFAULT_COURSES = ['CDEC', 'X-DSAAI', 'DevOps', 'Full-Stack', 'Any']
DEFAULT_LOCATIONS = ['Nagpur', 'Pune', 'Nashik', 'Indore']
DEFAULT_STATUSES = ['hot', 'warm', 'cold']
DEFAULT_LEAD_STAGES = [
    {'label': 'Cold', 'sub_stages': [
        'Closure Timeline is Unknown', 'Duplicate Enquiry', 'Switch Off', 'School Student',
        'Already Enrolled with Other Institute', 'Financial Issue', 'Invalid Number', 'Call Back',
        'Join Later', 'Planning After 1 Month', 'Planning After 2 Months', 'Planning After 5 Months',
        'Planning For Next Year',
    ]},
    {'label': 'Warm', 'sub_stages': ['Follow-up', 'In Conversation']},
    {'label': 'Hot', 'sub_stages': ['Confirmed Admission']},
    {'label': 'Not Interested', 'sub_stages': [
        'Joined Somewhere Else', 'Dropped The Plan', 'Financial Issue', 'Time Constraint',
    ]},
    {'label': 'Walkin', 'sub_stages': [
        'Walked-in to Center', 'Attended Demo', 'Not Interested After Demo',
        'Converted After Walk-in', 'Follow-up Needed After Walk-in',
    ]},
    {'label': 'Online-Conversion', 'sub_stages': [
        'Attended Online Demo', 'Interested Post Demo', 'Confirmed Admission',
        'Did Not Respond After Demo', 'Need Follow-up After Demo',
    ]},
]


class BaseModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    version = models.PositiveIntegerField(default=1)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if self.pk:
            current_version = (
                self.__class__.objects.filter(pk=self.pk).values_list('version', flat=True).first()
            )
            if current_version is not None:
                self.version = current_version + 1
                update_fields = kwargs.get('update_fields')
                if update_fields is not None:
                    kwargs['update_fields'] = set(update_fields) | {'version', 'updated_at'}
        super().save(*args, **kwargs)


@receiver(pre_save)
def log_model_changes(sender, instance, **kwargs):
    if not issubclass(sender, BaseModel) or not instance.pk:
        return

    old_instance = sender.objects.filter(pk=instance.pk).first()
    if old_instance is None:
        return
    changes = []
    for field in instance._meta.concrete_fields:
        if field.name in ('updated_at', 'version'):
            continue
        old_value = getattr(old_instance, field.attname)
        new_value = getattr(instance, field.attname)
        if old_value != new_value:
            changes.append(f'{field.name} changed from {old_value} to {new_value}')
    if changes:
        logger.info(f'{sender.__name__} {instance.pk} changes: {"; ".join(changes)}')


class CustomUser(AbstractUser):
    ROLE_CHOICES = [
        ('admin', 'Admin'),
        ('presales', 'Presales'),
        ('sales', 'Sales'),
        ('user', 'User'),
    ]

    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='user')
    phone_number = models.CharField(max_length=20, blank=True, null=True)
    address = models.TextField(blank=True, null=True)

    def __str__(self):
        return self.username

    @property
    def actor_role(self):
        """Role used for access decisions; superusers always act as admin."""
        if self.is_superuser:
            return 'admin'
        return self.role or 'user'

    @property
    def display_name(self):
        return self.get_full_name() or self.username

    def is_admin(self):
        return self.actor_role == 'admin'

    def is_presales(self):
        return self.actor_role == 'presales'

    def is_sales(self):
        return self.actor_role == 'sales'

    def is_plain_user(self):
        return self.actor_role == 'user'


class OptionSettings(BaseModel):
    """
    Catalog of valid courses, locations, statuses and lead stages.

    A single row keyed by ``settings.OPTION_SETTINGS_KEY`` is created by a data
    migration. Values are only consulted when validating writes, so editing
    the catalog never invalidates data already stored.
    """
    key = models.CharField(max_length=50, unique=True)
    courses = models.JSONField(default=list, blank=True)
    locations = models.JSONField(default=list, blank=True)
    statuses = models.JSONField(default=list, blank=True)
    lead_stages = models.JSONField(default=list, blank=True)

    class Meta:
        verbose_name = 'Option Settings'
        verbose_name_plural = 'Option Settings'

    def __str__(self):
        return f'Option settings ({self.key})'

    @classmethod
    def load(cls):
        try:
            return cls.objects.get(key=settings.OPTION_SETTINGS_KEY)
        except cls.DoesNotExist:
            raise ValidationError('System configuration not found. Please contact administrator.')

    @staticmethod
    def normalize_lead_stages(lead_stages):
        """
        Convert stages to the ``{label, sub_stages}`` layout.

        Older rows stored the stage name under ``value`` and sub-stages under
        ``subStages``; ``label`` wins when both names are present.
        """
        normalized = []
        for stage in lead_stages or []:
            if not stage:
                continue
            label = (stage.get('label') or stage.get('value') or '').strip()
            if not label:
                continue
            sub_stages = stage.get('sub_stages', stage.get('subStages')) or []
            normalized.append({
                'label': label,
                'sub_stages': [s.strip() for s in sub_stages if s and s.strip()],
            })
        return normalized

    def stage_labels(self):
        return [stage['label'] for stage in self.lead_stages]

    def sub_stages_for(self, label):
        for stage in self.lead_stages:
            if stage['label'] == label:
                return stage['sub_stages']
        return []
