# inquiries/visibility.py
"""
Role scoped predicates over inquiries.

``visibility_for(user)`` picks the builder for the actor's role. ``base()`` is
what the actor sees by default. ``attended(user_id)`` is the "my attended"
view requested with ``assigned_to=<id>`` (or ``me``), which replaces the
department restriction for Presales and Sales actors.
"""
from dataclasses import dataclass
from datetime import datetime, time
from typing import Optional, Union

from django.db.models import Q
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime
from rest_framework.exceptions import ValidationError


@dataclass(frozen=True)
class VisibilityFilter:
    actor_id: int

    role = None
    # Whether an "attended" request ignores an explicit department filter
    attended_overrides_department = False

    def base(self) -> Q:
        raise NotImplementedError

    def attended(self, user_id: int) -> Q:
        raise NotImplementedError

    def scope(self, assigned_to: Optional[int] = None) -> Q:
        if assigned_to is None:
            return self.base()
        return self.attended(assigned_to)

    def attended_by_actor(self) -> Q:
        """Leads the actor owns or personally forwarded, used for dashboard counts."""
        return Q(assigned_to_id=self.actor_id) | Q(forwarded_by_id=self.actor_id)


@dataclass(frozen=True)
class AdminFilter(VisibilityFilter):
    role = 'admin'

    def base(self) -> Q:
        return Q()

    def attended(self, user_id: int) -> Q:
        return Q(assigned_to_id=user_id)


@dataclass(frozen=True)
class UserFilter(VisibilityFilter):
    role = 'user'

    def base(self) -> Q:
        return Q(created_by_id=self.actor_id)

    def attended(self, user_id: int) -> Q:
        return self.base() & Q(assigned_to_id=user_id)

    def attended_by_actor(self) -> Q:
        # Plain submitters never attend leads
        return Q(pk__in=[])


@dataclass(frozen=True)
class PresalesFilter(VisibilityFilter):
    role = 'presales'
    attended_overrides_department = True

    def base(self) -> Q:
        return Q(department='presales') & ~Q(forwarded_by_id=self.actor_id)

    def attended(self, user_id: int) -> Q:
        return (
            Q(assigned_to_id=user_id, department='presales')
            | Q(forwarded_by_id=user_id, assignment_status='forwarded_to_sales', department='sales')
        )


@dataclass(frozen=True)
class SalesFilter(VisibilityFilter):
    role = 'sales'
    attended_overrides_department = True

    def base(self) -> Q:
        return Q(department='sales')

    def attended(self, user_id: int) -> Q:
        return Q(assigned_to_id=user_id, department='sales')


ActorFilter = Union[AdminFilter, UserFilter, PresalesFilter, SalesFilter]

_FILTERS = {
    'admin': AdminFilter,
    'presales': PresalesFilter,
    'sales': SalesFilter,
    'user': UserFilter,
}


def visibility_for(user) -> ActorFilter:
    return _FILTERS.get(user.actor_role, UserFilter)(actor_id=user.pk)


def parse_user_ref(value, user, field) -> Optional[int]:
    """Resolve ``me`` or a numeric id; anything else is rejected."""
    if value is None or value == '':
        return None
    value = str(value).strip()
    if value == 'me':
        return user.pk
    if not value.isdigit():
        raise ValidationError({field: [f'Invalid user id: {value}']})
    return int(value)


def search_q(term) -> Q:
    """
    Case-insensitive match on name, email, city and phone.

    Phone numbers match with or without the leading ``+``.
    """
    term = (term or '').strip()
    if not term:
        return Q()
    query = (
        Q(name__icontains=term)
        | Q(email__icontains=term)
        | Q(city__icontains=term)
        | Q(phone__icontains=term)
    )
    # A bare term already matches "+<term>"; a prefixed one also matches without it
    bare = term.lstrip('+')
    if bare and bare != term:
        query |= Q(phone__icontains=bare)
    return query


def parse_date_bound(value, field, end_of_day=False):
    """Accept an ISO date or datetime; a bare date covers the whole day."""
    if value in (None, ''):
        return None
    try:
        day = parse_date(value)
        parsed = parse_datetime(value) if day is None else None
    except ValueError:
        day = parsed = None
    if day is not None:
        parsed = datetime.combine(day, time.max if end_of_day else time.min)
    elif parsed is None:
        raise ValidationError({field: [f'Invalid date: {value}']})
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed
