# inquiries/services.py
import re

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import F, OuterRef, Subquery
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from core.exceptions import Conflict
from core.logger_service import get_logger
from core.services import notify_users
from .models import LEAD_STAGE_TO_STATUS, PRESALES_STATUSES, Activity, FollowUp, Inquiry
from .visibility import visibility_for

logger = get_logger()

PHONE_RE = re.compile(r'^\+\d{10,}$')


def record_activity(inquiry, action, actor, target_user=None, details=''):
    """Best-effort activity row; failures are logged and never raised."""
    try:
        with transaction.atomic():
            Activity.objects.create(
                inquiry=inquiry,
                action=action,
                actor=actor,
                target_user=target_user,
                details=details,
            )
    except Exception as e:
        logger.warning(f"Failed to record '{action}' activity for inquiry {inquiry.pk}: {str(e)}")


class AssignmentService:
    """
    Ownership and department transitions of an inquiry.

    Every transition is a single conditional UPDATE on the inquiry row. The
    conditions repeat the preconditions that were checked, so a concurrent
    change between the check and the write surfaces as a conflict instead of
    being overwritten.
    """

    STAFF_ROLES = ('admin', 'presales', 'sales')

    # Access checks

    @staticmethod
    def ensure_can_view(inquiry, actor):
        role = actor.actor_role
        if role in ('admin', 'presales'):
            return
        if role == 'sales' and (
            inquiry.department == 'sales' or inquiry.is_owned_by(actor) or inquiry.is_created_by(actor)
        ):
            return
        if role == 'user' and inquiry.is_created_by(actor):
            return
        raise PermissionDenied('Access denied')

    @staticmethod
    def ensure_can_update(inquiry, actor):
        if actor.actor_role in ('admin', 'presales') or inquiry.is_created_by(actor) or inquiry.is_owned_by(actor):
            return
        raise PermissionDenied('Access denied')

    @staticmethod
    def ensure_can_delete(inquiry, actor):
        if actor.actor_role in ('admin', 'presales') or inquiry.is_created_by(actor):
            return
        raise PermissionDenied('Access denied')

    @staticmethod
    def ensure_no_pending_first_follow_up(user):
        pending = Inquiry.objects.filter(assigned_to=user, pending_first_follow_up=True).count()
        if pending:
            logger.info(f"User {user.username} blocked by {pending} inquiries awaiting a first follow-up")
            raise Conflict(
                f'You have {pending} claimed inquiries awaiting their first follow-up. '
                f'Add a follow-up before continuing.'
            )

    # Transitions

    @classmethod
    def create_inquiry(cls, actor, validated_data):
        department = 'sales' if actor.actor_role == 'sales' else 'presales'
        inquiry = Inquiry.objects.create(
            created_by=actor,
            department=department,
            assignment_status='not_assigned',
            **validated_data,
        )
        logger.info(f"Inquiry {inquiry.pk} created by {actor.username} in {department}")
        record_activity(inquiry, 'created', actor, details=f'Inquiry created in {department}')
        return inquiry

    @classmethod
    def assign(cls, inquiry, actor, target_user_id):
        if actor.actor_role not in ('admin', 'presales'):
            raise PermissionDenied('Only presales users and admins can assign inquiries')
        target = cls._get_user(target_user_id)

        cls._apply(
            inquiry,
            assigned_to=target,
            assignment_status='assigned',
            department='presales',
            pending_first_follow_up=False,
        )
        logger.info(f"Inquiry {inquiry.pk} assigned to {target.username} by {actor.username}")
        record_activity(inquiry, 'assigned', actor, target_user=target)
        notify_users([target.pk], f'Inquiry "{inquiry.name}" has been assigned to you')
        return inquiry

    @classmethod
    def claim(cls, inquiry, actor):
        role = actor.actor_role
        if role not in cls.STAFF_ROLES:
            raise PermissionDenied('Only presales, sales and admin users can claim inquiries')
        if inquiry.assigned_to_id is not None:
            raise Conflict('Inquiry already assigned')
        if role == 'presales' and inquiry.department != 'presales':
            raise ValidationError('Presales users can only claim Presales inquiries')
        if role == 'sales' and inquiry.department != 'sales':
            raise ValidationError('Sales users can only claim Sales inquiries')
        if role == 'admin' and inquiry.department != 'sales':
            raise ValidationError('Admins can only claim Sales inquiries')

        cls._apply(
            inquiry,
            conditions={'assigned_to__isnull': True, 'department': inquiry.department},
            conflict_message='Inquiry already assigned',
            assigned_to=actor,
            assignment_status='assigned',
            pending_first_follow_up=inquiry.department == 'sales',
        )
        logger.info(f"Inquiry {inquiry.pk} claimed by {actor.username}")
        record_activity(inquiry, 'claimed', actor, target_user=actor)
        if inquiry.created_by_id and inquiry.created_by_id != actor.pk:
            notify_users([inquiry.created_by_id], f'Inquiry "{inquiry.name}" was claimed by {actor.display_name}')
        return inquiry

    @classmethod
    def forward_to_sales(cls, inquiry, actor):
        if not (actor.actor_role in ('admin', 'presales') or inquiry.is_owned_by(actor)):
            raise PermissionDenied('Only presales users and admins can forward inquiries to Sales')
        if inquiry.department != 'presales':
            raise ValidationError('Inquiry is not in Presales')

        previous_owner_id = inquiry.assigned_to_id
        forwarded_by_id = previous_owner_id or actor.pk
        cls._apply(
            inquiry,
            conditions={'department': 'presales', 'assigned_to_id': previous_owner_id},
            department='sales',
            assignment_status='forwarded_to_sales',
            assigned_to=None,
            forwarded_by_id=forwarded_by_id,
            pending_first_follow_up=False,
        )
        logger.info(f"Inquiry {inquiry.pk} forwarded to Sales by {actor.username}")
        record_activity(inquiry, 'forwarded_to_sales', actor, details=f'Forwarded by user {forwarded_by_id}')
        if previous_owner_id and previous_owner_id != actor.pk:
            notify_users([previous_owner_id], f'Inquiry "{inquiry.name}" has been forwarded to Sales')
        return inquiry

    @classmethod
    def reassign_to_presales(cls, inquiry, actor, target_user_id):
        return cls._reassign(inquiry, actor, target_user_id, 'presales')

    @classmethod
    def reassign_to_sales(cls, inquiry, actor, target_user_id):
        return cls._reassign(inquiry, actor, target_user_id, 'sales')

    @classmethod
    def move_to_unattended(cls, inquiry, actor):
        role = actor.actor_role
        if role not in cls.STAFF_ROLES:
            raise PermissionDenied('Only presales, sales and admin users can move inquiries to unattended')
        if inquiry.assigned_to_id is None:
            raise ValidationError('Inquiry is already unattended')
        if role == 'sales' and inquiry.department != 'sales':
            raise PermissionDenied('Sales users can only move Sales inquiries to unattended')
        if inquiry.pending_first_follow_up and inquiry.is_owned_by(actor):
            raise Conflict('Add a follow-up to this inquiry before moving it to unattended')

        previous_owner_id = inquiry.assigned_to_id
        cls._apply(
            inquiry,
            conditions={'assigned_to_id': previous_owner_id},
            assigned_to=None,
            assignment_status='not_assigned',
            pending_first_follow_up=False,
        )
        logger.info(f"Inquiry {inquiry.pk} moved to unattended by {actor.username}")
        record_activity(inquiry, 'moved_to_unattended', actor, details=f'Previous owner {previous_owner_id}')
        if previous_owner_id != actor.pk:
            notify_users([previous_owner_id], f'Inquiry "{inquiry.name}" was moved to unattended')
        return inquiry

    @staticmethod
    def check_phone_exists(actor, phone):
        phone = (phone or '').strip()
        if not PHONE_RE.match(phone):
            raise ValidationError({'phone': ['Phone must start with + followed by at least 10 digits']})

        queryset = Inquiry.objects.filter(phone=phone)
        if actor.actor_role == 'sales':
            queryset = queryset.filter(department='sales')
        inquiry = queryset.order_by('-created_at', '-id').first()
        if inquiry is None:
            return {'exists': False}
        return {
            'exists': True,
            'inquiry_id': inquiry.pk,
            'is_assigned': inquiry.assigned_to_id is not None,
            'assignment_status': inquiry.assignment_status,
            'department': inquiry.department,
        }

    # Helpers

    @classmethod
    def _reassign(cls, inquiry, actor, target_user_id, department):
        role = actor.actor_role
        if inquiry.department != department:
            raise ValidationError(f'Inquiry is not in {department.title()}')
        if not (role in ('admin', department) or inquiry.is_owned_by(actor)):
            raise PermissionDenied('Access denied')
        target = cls._get_user(target_user_id)
        if target.role != department or not target.is_active:
            raise ValidationError(f'Target user must be an active {department} user')

        cls._apply(
            inquiry,
            conditions={'department': department},
            assigned_to=target,
            assignment_status='reassigned',
            pending_first_follow_up=False,
        )
        logger.info(f"Inquiry {inquiry.pk} reassigned to {target.username} by {actor.username}")
        record_activity(inquiry, 'reassigned', actor, target_user=target)
        notify_users([target.pk], f'Inquiry "{inquiry.name}" has been reassigned to you')
        return inquiry

    @staticmethod
    def _get_user(user_id):
        try:
            return get_user_model().objects.get(pk=int(user_id))
        except (TypeError, ValueError):
            raise ValidationError({'target_user_id': ['A valid user id is required']})
        except get_user_model().DoesNotExist:
            raise NotFound('Target user not found')

    @staticmethod
    def _apply(inquiry, conditions=None, conflict_message=None, **changes):
        """
        Write ``changes`` in one UPDATE guarded by ``conditions`` and refresh
        ``inquiry``. No matching row means another request got there first.
        """
        updated = Inquiry.objects.filter(pk=inquiry.pk, **(conditions or {})).update(
            version=F('version') + 1,
            updated_at=timezone.now(),
            **changes,
        )
        if not updated:
            raise Conflict(conflict_message or 'Inquiry was modified by another request. Reload and try again.')
        inquiry.refresh_from_db()


class FollowUpService:

    WRITABLE_FIELDS = (
        'type', 'status', 'title', 'completed_date', 'duration', 'outcome',
        'next_follow_up_date', 'inquiry_status', 'lead_stage', 'sub_stage', 'message',
    )

    @staticmethod
    def derived_status(inquiry, data):
        """
        Inquiry status implied by a follow-up payload, or ``None``.

        A lead stage only drives the status of Sales inquiries; otherwise an
        explicit presales ``inquiry_status`` is copied.
        """
        lead_stage = data.get('lead_stage')
        if lead_stage and inquiry.department == 'sales':
            return LEAD_STAGE_TO_STATUS.get(lead_stage)
        if data.get('inquiry_status') in PRESALES_STATUSES:
            return data['inquiry_status']
        return None

    @classmethod
    def add_follow_up(cls, inquiry, actor, data):
        if not (
            actor.actor_role in AssignmentService.STAFF_ROLES
            or inquiry.is_created_by(actor)
            or inquiry.is_owned_by(actor)
        ):
            raise PermissionDenied('Access denied')

        changes = {}
        status = cls.derived_status(inquiry, data)
        if status:
            changes['status'] = status
        if inquiry.pending_first_follow_up and inquiry.is_owned_by(actor):
            changes['pending_first_follow_up'] = False

        with transaction.atomic():
            follow_up = FollowUp.objects.create(
                inquiry=inquiry,
                created_by=actor,
                **{field: data[field] for field in cls.WRITABLE_FIELDS if field in data},
            )
            cls._touch(inquiry, **changes)

        logger.info(f"Follow-up {follow_up.pk} added to inquiry {inquiry.pk} by {actor.username}")
        return inquiry

    @classmethod
    def update_follow_up(cls, inquiry, actor, follow_up_id, data):
        follow_up = cls.get_follow_up(inquiry, follow_up_id)
        cls.ensure_can_update(follow_up, actor)

        changes = {}
        status = cls.derived_status(inquiry, data)
        if status:
            changes['status'] = status

        with transaction.atomic():
            for field in cls.WRITABLE_FIELDS:
                if field in data:
                    setattr(follow_up, field, data[field])
            follow_up.save()
            cls._touch(inquiry, **changes)

        logger.info(f"Follow-up {follow_up.pk} on inquiry {inquiry.pk} updated by {actor.username}")
        return inquiry

    @classmethod
    def delete_follow_up(cls, inquiry, actor, follow_up_id):
        follow_up = cls.get_follow_up(inquiry, follow_up_id)
        cls.ensure_can_delete(follow_up, actor)

        with transaction.atomic():
            follow_up.delete()
            cls._touch(inquiry)

        logger.info(f"Follow-up {follow_up_id} on inquiry {inquiry.pk} deleted by {actor.username}")
        return inquiry

    @staticmethod
    def my_follow_ups(actor):
        """Latest follow-up the actor wrote on each inquiry, newest first."""
        if actor.actor_role not in ('presales', 'sales'):
            raise PermissionDenied('Only presales and sales users can view their follow-ups')
        latest = (
            FollowUp.objects
            .filter(created_by=actor, inquiry=OuterRef('inquiry'))
            .order_by('-created_at', '-id')
            .values('id')[:1]
        )
        return (
            FollowUp.objects
            .filter(created_by=actor, pk=Subquery(latest))
            .select_related('created_by', 'inquiry__created_by', 'inquiry__assigned_to')
            .order_by('-created_at', '-id')
        )

    @staticmethod
    def admitted_inquiries(actor):
        """Admitted inquiries in the actor's base visibility, latest admission first."""
        return (
            Inquiry.objects
            .filter(visibility_for(actor).base())
            .admitted()
            .with_people()
            .order_by('-admission_date', '-id')
        )

    @staticmethod
    def ensure_can_update(follow_up, actor):
        if actor.actor_role in AssignmentService.STAFF_ROLES or follow_up.is_authored_by(actor):
            return
        raise PermissionDenied('Access denied')

    @staticmethod
    def ensure_can_delete(follow_up, actor):
        if actor.actor_role in ('admin', 'presales') or follow_up.is_authored_by(actor):
            return
        raise PermissionDenied('Access denied')

    @staticmethod
    def get_follow_up(inquiry, follow_up_id):
        follow_up = FollowUp.objects.filter(inquiry=inquiry, pk=follow_up_id).first()
        if follow_up is None:
            raise NotFound('Follow-up not found')
        return follow_up

    @staticmethod
    def _touch(inquiry, **changes):
        Inquiry.objects.filter(pk=inquiry.pk).update(
            version=F('version') + 1,
            updated_at=timezone.now(),
            **changes,
        )
        inquiry.refresh_from_db()
