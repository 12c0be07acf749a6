from django_filters import rest_framework as filters

from .models import Inquiry
from .visibility import parse_date_bound, parse_user_ref, search_q, visibility_for


class InquiryFilter(filters.FilterSet):
    """
    Explicit list filters, applied on top of the actor's visibility scope.

    ``assigned_to`` is resolved by the view because it changes the scope
    itself; it only affects ``department`` here.
    """
    search = filters.CharFilter(method='filter_search')
    status = filters.CharFilter()
    course = filters.CharFilter()
    location = filters.CharFilter(field_name='preferred_location')
    medium = filters.CharFilter()
    assignment_status = filters.CharFilter()
    department = filters.CharFilter(method='filter_department')
    date_from = filters.CharFilter(method='filter_date_from')
    date_to = filters.CharFilter(method='filter_date_to')
    created_by = filters.CharFilter(method='filter_created_by')

    class Meta:
        model = Inquiry
        fields = ['status', 'course', 'medium', 'assignment_status']

    @property
    def actor(self):
        return self.request.user

    def filter_search(self, queryset, name, value):
        return queryset.filter(search_q(value))

    def filter_department(self, queryset, name, value):
        attended = self.data.get('assigned_to')
        if attended and visibility_for(self.actor).attended_overrides_department:
            return queryset
        return queryset.filter(department=value)

    def filter_date_from(self, queryset, name, value):
        return queryset.filter(created_at__gte=parse_date_bound(value, name))

    def filter_date_to(self, queryset, name, value):
        return queryset.filter(created_at__lte=parse_date_bound(value, name, end_of_day=True))

    def filter_created_by(self, queryset, name, value):
        return queryset.filter(created_by_id=parse_user_ref(value, self.actor, name))
