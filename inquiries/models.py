from django.conf import settings
from django.core.validators import MaxValueValidator, MinLengthValidator, MinValueValidator, RegexValidator
from django.db import models
from django.db.models import BooleanField, Case, OuterRef, Subquery, Value, When

from core.models import BaseModel

ADMITTED_LEAD_STAGE = 'Hot'
ADMITTED_SUB_STAGE = 'Confirmed Admission'

LEAD_STAGE_TO_STATUS = {
    'Hot': 'hot',
    'Warm': 'warm',
    'Cold': 'cold',
    'Not Interested': 'not_interested',
    'Walkin': 'walkin',
    'Online-Conversion': 'online_conversion',
}

PRESALES_STATUSES = ('hot', 'warm', 'cold')

phone_validator = RegexValidator(
    regex=r'^\+[0-9]{10,}$',
    message='Please provide a valid phone number with country code (e.g., +911234567890)',
)


class InquiryQuerySet(models.QuerySet):

    def with_admission(self):
        """
        Annotate ``is_admitted`` and ``admission_date``.

        An inquiry is admitted when its latest follow-up (by creation time,
        later insertion winning ties) is Hot / Confirmed Admission.
        ``admission_date`` is the creation time of the latest follow-up that
        matches, whether or not it is the latest overall.
        """
        if 'is_admitted' in self.query.annotations:
            return self
        latest = FollowUp.objects.filter(inquiry=OuterRef('pk')).order_by('-created_at', '-id')
        admissions = latest.filter(lead_stage=ADMITTED_LEAD_STAGE, sub_stage=ADMITTED_SUB_STAGE)
        return self.annotate(
            latest_lead_stage=Subquery(latest.values('lead_stage')[:1]),
            latest_sub_stage=Subquery(latest.values('sub_stage')[:1]),
            admission_date=Subquery(admissions.values('created_at')[:1]),
        ).annotate(
            is_admitted=Case(
                When(
                    latest_lead_stage=ADMITTED_LEAD_STAGE,
                    latest_sub_stage=ADMITTED_SUB_STAGE,
                    then=Value(True),
                ),
                default=Value(False),
                output_field=BooleanField(),
            )
        )

    def admitted(self):
        return self.with_admission().filter(is_admitted=True)

    def not_admitted(self):
        return self.with_admission().filter(is_admitted=False)

    def unattended(self):
        return self.filter(assigned_to__isnull=True)

    def with_people(self):
        return self.select_related('created_by', 'assigned_to', 'forwarded_by')


class Inquiry(BaseModel):
    DEPARTMENT_CHOICES = [
        ('presales', 'Presales'),
        ('sales', 'Sales'),
    ]
    ASSIGNMENT_STATUS_CHOICES = [
        ('not_assigned', 'Not Assigned'),
        ('assigned', 'Assigned'),
        ('reassigned', 'Reassigned'),
        ('forwarded_to_sales', 'Forwarded to Sales'),
    ]
    STATUS_CHOICES = [
        ('hot', 'Hot'),
        ('warm', 'Warm'),
        ('cold', 'Cold'),
        ('walkin', 'Walkin'),
        ('not_interested', 'Not Interested'),
        ('online_conversion', 'Online Conversion'),
    ]
    MEDIUM_CHOICES = [
        ('IVR', 'IVR'),
        ('Email', 'Email'),
        ('WhatsApp', 'WhatsApp'),
    ]

    name = models.CharField(max_length=50, validators=[MinLengthValidator(2)])
    email = models.EmailField(blank=True, null=True)
    phone = models.CharField(max_length=20, validators=[phone_validator])
    city = models.CharField(max_length=30, validators=[MinLengthValidator(2)])
    education = models.CharField(max_length=100, validators=[MinLengthValidator(2)])
    course = models.CharField(max_length=100)
    preferred_location = models.CharField(max_length=100)
    medium = models.CharField(max_length=20, choices=MEDIUM_CHOICES)
    message = models.TextField(max_length=1000, blank=True, null=True)

    status = models.CharField(max_length=30, choices=STATUS_CHOICES, default='warm')
    department = models.CharField(max_length=20, choices=DEPARTMENT_CHOICES, default='presales')
    assignment_status = models.CharField(max_length=30, choices=ASSIGNMENT_STATUS_CHOICES, default='not_assigned')
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_inquiries'
    )
    forwarded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='forwarded_inquiries'
    )
    # Set when a Sales lead is claimed; cleared by its owner's first follow-up
    pending_first_follow_up = models.BooleanField(default=False)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='created_inquiries'
    )

    objects = InquiryQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        verbose_name_plural = 'Inquiries'
        indexes = [
            models.Index(fields=['email'], name='idx_inquiry_email'),
            models.Index(fields=['status'], name='idx_inquiry_status'),
            models.Index(fields=['course'], name='idx_inquiry_course'),
            models.Index(fields=['phone'], name='idx_inquiry_phone'),
            models.Index(fields=['department', 'assigned_to'], name='idx_inquiry_dept_owner'),
            models.Index(fields=['-created_at'], name='idx_inquiry_created'),
        ]

    def __str__(self):
        return f"{self.name} ({self.department}/{self.assignment_status})"

    def is_owned_by(self, user):
        return self.assigned_to_id is not None and self.assigned_to_id == user.pk

    def is_created_by(self, user):
        return self.created_by_id is not None and self.created_by_id == user.pk


class FollowUp(BaseModel):
    TYPE_CHOICES = [
        ('call', 'Call'),
        ('email', 'Email'),
        ('whatsapp', 'WhatsApp'),
    ]
    STATUS_CHOICES = [
        ('scheduled', 'Scheduled'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
        ('rescheduled', 'Rescheduled'),
        ('no_answer', 'No Answer'),
        ('busy', 'Busy'),
    ]
    OUTCOME_CHOICES = [
        ('positive', 'Positive'),
        ('neutral', 'Neutral'),
        ('negative', 'Negative'),
        ('interested', 'Interested'),
        ('not_interested', 'Not Interested'),
        ('needs_time', 'Needs Time'),
        ('requested_info', 'Requested Info'),
        ('scheduled_meeting', 'Scheduled Meeting'),
    ]
    INQUIRY_STATUS_CHOICES = [(value, value.title()) for value in PRESALES_STATUSES]
    LEAD_STAGE_CHOICES = [(stage, stage) for stage in LEAD_STAGE_TO_STATUS]

    inquiry = models.ForeignKey(Inquiry, on_delete=models.CASCADE, related_name='follow_ups')
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='call')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='scheduled')
    title = models.CharField(max_length=100, blank=True, default='')
    completed_date = models.DateTimeField(blank=True, null=True)
    duration = models.PositiveIntegerField(
        blank=True, null=True, validators=[MinValueValidator(1), MaxValueValidator(1440)],
        help_text='Duration in minutes'
    )
    outcome = models.CharField(max_length=30, choices=OUTCOME_CHOICES, blank=True, default='')
    next_follow_up_date = models.DateTimeField(blank=True, null=True)
    inquiry_status = models.CharField(max_length=10, choices=INQUIRY_STATUS_CHOICES, default='warm')

    lead_stage = models.CharField(max_length=30, choices=LEAD_STAGE_CHOICES, blank=True, default='')
    sub_stage = models.CharField(max_length=200, blank=True, default='')
    message = models.TextField(max_length=1000, blank=True, default='')

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='follow_ups'
    )

    class Meta:
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['inquiry', '-created_at'], name='idx_follow_up_inquiry_date'),
        ]

    def __str__(self):
        return f"{self.type} follow-up on inquiry={self.inquiry_id}"

    def is_authored_by(self, user):
        return self.created_by_id is not None and self.created_by_id == user.pk


class Activity(models.Model):
    ACTION_CHOICES = [
        ('created', 'Created'),
        ('claimed', 'Claimed'),
        ('assigned', 'Assigned'),
        ('reassigned', 'Reassigned'),
        ('forwarded_to_sales', 'Forwarded to Sales'),
        ('moved_to_unattended', 'Moved to Unattended'),
    ]

    inquiry = models.ForeignKey(Inquiry, on_delete=models.CASCADE, related_name='activities')
    action = models.CharField(max_length=30, choices=ACTION_CHOICES)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='inquiry_activities'
    )
    target_user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    details = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name_plural = 'Activities'
        indexes = [
            models.Index(fields=['inquiry'], name='idx_activity_inquiry'),
            models.Index(fields=['-created_at'], name='idx_activity_created'),
        ]

    def __str__(self):
        return f"{self.action} on inquiry={self.inquiry_id}"
