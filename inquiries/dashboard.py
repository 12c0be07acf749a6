# inquiries/dashboard.py
from django.db.models import Count, Q

from core.logger_service import get_logger
from core.models import OptionSettings
from .models import FollowUp, Inquiry
from .visibility import visibility_for

logger = get_logger()

RECENT_LIMIT = 5


class DashboardService:
    """
    Role scoped counters for the dashboard.

    Admitted inquiries are left out of every figure except
    ``admitted_students``, which is an organisation wide number computed over
    all inquiries that have at least one follow-up.
    """

    @staticmethod
    def stats(actor):
        visibility = visibility_for(actor)
        active = Inquiry.objects.not_admitted()
        base = active.filter(visibility.base())

        by_status = base.aggregate(
            total=Count('pk'),
            hot=Count('pk', filter=Q(status='hot')),
            warm=Count('pk', filter=Q(status='warm')),
            cold=Count('pk', filter=Q(status='cold')),
        )
        by_department = active.aggregate(
            presales=Count('pk', filter=Q(department='presales')),
            sales=Count('pk', filter=Q(department='sales')),
        )
        with_follow_ups = Inquiry.objects.filter(
            pk__in=FollowUp.objects.values('inquiry_id')
        )
        recent = base.with_people().order_by('-created_at', '-id')[:RECENT_LIMIT]

        stats = {
            'total_inquiries': by_status['total'],
            'hot_inquiries': by_status['hot'],
            'warm_inquiries': by_status['warm'],
            'cold_inquiries': by_status['cold'],
            'my_inquiries': active.filter(created_by=actor).count(),
            'assigned_inquiries': active.filter(visibility.attended_by_actor()).count(),
            'presales_inquiries': by_department['presales'],
            'sales_inquiries': by_department['sales'],
            'admitted_students': with_follow_ups.admitted().count(),
        }
        logger.info(f"Dashboard stats for {actor.username}: {stats}")
        stats['recent_inquiries'] = list(recent)
        return stats

    @staticmethod
    def unattended_counts(actor):
        locations = OptionSettings.load().locations
        role = actor.actor_role
        if role == 'user':
            return {'total': 0, 'by_location': {location: 0 for location in locations}}

        queryset = Inquiry.objects.unattended()
        if role in ('presales', 'sales'):
            queryset = queryset.filter(department=role)

        counts = dict(
            queryset.filter(preferred_location__in=locations)
            .values_list('preferred_location')
            .annotate(count=Count('pk'))
            .order_by()
        )
        return {
            'total': queryset.count(),
            'by_location': {location: counts.get(location, 0) for location in locations},
        }
