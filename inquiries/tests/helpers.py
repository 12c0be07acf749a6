from datetime import timedelta

from django.contrib.auth import get_user_model
from django.utils import timezone

from inquiries.models import FollowUp, Inquiry


class InquiryFixturesMixin:
    """Builders shared by the inquiry test cases."""

    def create_user(self, username, role='user', **extra):
        extra.setdefault('email', f'{username}@example.com')
        return get_user_model().objects.create_user(
            username=username, password='pass12345', role=role, **extra
        )

    def create_inquiry(self, creator, **overrides):
        fields = {
            'name': 'Asha Patil',
            'phone': '+911234567890',
            'email': 'asha@example.com',
            'city': 'Nagpur',
            'education': 'B.Tech',
            'course': 'CDEC',
            'preferred_location': 'Nagpur',
            'medium': 'IVR',
            'department': 'sales' if creator.role == 'sales' else 'presales',
            'created_by': creator,
        }
        fields.update(overrides)
        return Inquiry.objects.create(**fields)

    def add_follow_up(self, inquiry, author, created_at=None, **fields):
        follow_up = FollowUp.objects.create(inquiry=inquiry, created_by=author, **fields)
        if created_at is not None:
            FollowUp.objects.filter(pk=follow_up.pk).update(created_at=created_at)
            follow_up.refresh_from_db()
        return follow_up

    def admit(self, inquiry, author, created_at=None):
        return self.add_follow_up(
            inquiry, author, created_at=created_at, lead_stage='Hot', sub_stage='Confirmed Admission'
        )

    @staticmethod
    def minutes_ago(minutes):
        return timezone.now() - timedelta(minutes=minutes)
