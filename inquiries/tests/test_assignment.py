from unittest import mock

import requests
from django.core import mail
from django.db import DatabaseError
from django.test import TestCase, override_settings
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from core.exceptions import Conflict
from inquiries.models import Activity, Inquiry
from inquiries.services import AssignmentService, FollowUpService
from inquiries.tests.helpers import InquiryFixturesMixin


class AssignmentServiceTests(InquiryFixturesMixin, TestCase):
    def setUp(self):
        self.admin = self.create_user('admin1', role='admin')
        self.presales = self.create_user('presales1', role='presales')
        self.other_presales = self.create_user('presales2', role='presales')
        self.sales = self.create_user('sales1', role='sales')
        self.other_sales = self.create_user('sales2', role='sales')
        self.submitter = self.create_user('user1', role='user')

    def assertOwnershipInvariant(self, inquiry):
        inquiry.refresh_from_db()
        owned = inquiry.assigned_to_id is not None
        self.assertEqual(owned, inquiry.assignment_status in ('assigned', 'reassigned'))
        if inquiry.assignment_status == 'forwarded_to_sales':
            self.assertEqual(inquiry.department, 'sales')

    def test_create_sets_department_from_role(self):
        data = {
            'name': 'Neha', 'phone': '+911112223334', 'city': 'Pune', 'education': 'BSc',
            'course': 'DevOps', 'preferred_location': 'Pune', 'medium': 'Email',
        }
        by_sales = AssignmentService.create_inquiry(self.sales, dict(data))
        by_user = AssignmentService.create_inquiry(self.submitter, dict(data))

        self.assertEqual(by_sales.department, 'sales')
        self.assertEqual(by_user.department, 'presales')
        self.assertEqual(by_user.assignment_status, 'not_assigned')
        self.assertTrue(Activity.objects.filter(inquiry=by_user, action='created', actor=self.submitter).exists())

    def test_claim_then_second_claim_conflicts(self):
        inquiry = self.create_inquiry(self.submitter)

        AssignmentService.claim(inquiry, self.presales)
        self.assertEqual(inquiry.assigned_to, self.presales)
        self.assertEqual(inquiry.assignment_status, 'assigned')
        self.assertFalse(inquiry.pending_first_follow_up)

        stale = Inquiry.objects.get(pk=inquiry.pk)
        with self.assertRaises(Conflict):
            AssignmentService.claim(stale, self.other_presales)
        self.assertOwnershipInvariant(inquiry)

    def test_claim_is_compare_and_set(self):
        inquiry = self.create_inquiry(self.submitter)
        stale = Inquiry.objects.get(pk=inquiry.pk)
        AssignmentService.claim(inquiry, self.presales)

        # The stale copy still believes the lead is unowned
        with self.assertRaises(Conflict):
            AssignmentService.claim(stale, self.other_presales)
        inquiry.refresh_from_db()
        self.assertEqual(inquiry.assigned_to, self.presales)

    def test_claim_department_rules(self):
        presales_lead = self.create_inquiry(self.submitter)
        sales_lead = self.create_inquiry(self.sales)

        with self.assertRaises(ValidationError):
            AssignmentService.claim(sales_lead, self.presales)
        with self.assertRaises(ValidationError):
            AssignmentService.claim(presales_lead, self.sales)
        with self.assertRaises(ValidationError):
            AssignmentService.claim(presales_lead, self.admin)
        with self.assertRaises(PermissionDenied):
            AssignmentService.claim(presales_lead, self.submitter)

        AssignmentService.claim(sales_lead, self.admin)
        self.assertEqual(sales_lead.assigned_to, self.admin)

    def test_sales_claim_requires_first_follow_up(self):
        inquiry = self.create_inquiry(self.sales)
        AssignmentService.claim(inquiry, self.sales)
        self.assertTrue(inquiry.pending_first_follow_up)

        with self.assertRaises(Conflict):
            AssignmentService.move_to_unattended(inquiry, self.sales)
        with self.assertRaises(Conflict):
            AssignmentService.ensure_no_pending_first_follow_up(self.sales)

        FollowUpService.add_follow_up(inquiry, self.sales, {'lead_stage': 'Warm', 'sub_stage': 'Follow-up'})
        self.assertFalse(inquiry.pending_first_follow_up)
        AssignmentService.ensure_no_pending_first_follow_up(self.sales)
        AssignmentService.move_to_unattended(inquiry, self.sales)
        self.assertIsNone(inquiry.assigned_to)

    def test_follow_up_from_someone_else_keeps_pending_flag(self):
        inquiry = self.create_inquiry(self.sales)
        AssignmentService.claim(inquiry, self.sales)
        FollowUpService.add_follow_up(inquiry, self.other_sales, {'lead_stage': 'Warm'})
        self.assertTrue(inquiry.pending_first_follow_up)

    def test_admin_can_unattend_pending_lead(self):
        inquiry = self.create_inquiry(self.sales)
        AssignmentService.claim(inquiry, self.sales)
        AssignmentService.move_to_unattended(inquiry, self.admin)
        self.assertFalse(inquiry.pending_first_follow_up)
        self.assertEqual(inquiry.assignment_status, 'not_assigned')

    def test_assign_moves_lead_to_presales_owner(self):
        inquiry = self.create_inquiry(self.submitter)
        AssignmentService.assign(inquiry, self.admin, self.presales.pk)

        self.assertEqual(inquiry.assigned_to, self.presales)
        self.assertEqual(inquiry.assignment_status, 'assigned')
        self.assertEqual(inquiry.department, 'presales')
        self.assertEqual(inquiry.version, 2)
        with self.assertRaises(NotFound):
            AssignmentService.assign(inquiry, self.admin, 999999)
        with self.assertRaises(PermissionDenied):
            AssignmentService.assign(inquiry, self.sales, self.presales.pk)

    def test_forward_to_sales(self):
        inquiry = self.create_inquiry(self.submitter, assigned_to=self.presales, assignment_status='assigned')
        AssignmentService.forward_to_sales(inquiry, self.presales)

        self.assertEqual(inquiry.department, 'sales')
        self.assertEqual(inquiry.assignment_status, 'forwarded_to_sales')
        self.assertIsNone(inquiry.assigned_to)
        self.assertEqual(inquiry.forwarded_by, self.presales)
        self.assertOwnershipInvariant(inquiry)

        with self.assertRaises(ValidationError):
            AssignmentService.forward_to_sales(inquiry, self.presales)

    def test_forward_by_admin_credits_previous_owner(self):
        inquiry = self.create_inquiry(self.submitter, assigned_to=self.presales, assignment_status='assigned')
        AssignmentService.forward_to_sales(inquiry, self.admin)
        self.assertEqual(inquiry.forwarded_by, self.presales)

        unowned = self.create_inquiry(self.submitter)
        AssignmentService.forward_to_sales(unowned, self.admin)
        self.assertEqual(unowned.forwarded_by, self.admin)

    def test_forward_denied_for_sales(self):
        inquiry = self.create_inquiry(self.submitter)
        with self.assertRaises(PermissionDenied):
            AssignmentService.forward_to_sales(inquiry, self.sales)

    def test_reassign_to_presales_requires_active_presales_target(self):
        inquiry = self.create_inquiry(self.submitter, assigned_to=self.presales, assignment_status='assigned')

        with self.assertRaises(ValidationError):
            AssignmentService.reassign_to_presales(inquiry, self.presales, self.sales.pk)
        self.other_presales.is_active = False
        self.other_presales.save()
        with self.assertRaises(ValidationError):
            AssignmentService.reassign_to_presales(inquiry, self.presales, self.other_presales.pk)

        self.other_presales.is_active = True
        self.other_presales.save()
        AssignmentService.reassign_to_presales(inquiry, self.presales, self.other_presales.pk)
        self.assertEqual(inquiry.assigned_to, self.other_presales)
        self.assertEqual(inquiry.assignment_status, 'reassigned')
        self.assertOwnershipInvariant(inquiry)

    def test_reassign_checks_department(self):
        sales_lead = self.create_inquiry(self.sales, assigned_to=self.sales, assignment_status='assigned')
        presales_lead = self.create_inquiry(self.submitter)

        with self.assertRaises(ValidationError):
            AssignmentService.reassign_to_presales(sales_lead, self.admin, self.presales.pk)
        with self.assertRaises(ValidationError):
            AssignmentService.reassign_to_sales(presales_lead, self.admin, self.sales.pk)

        AssignmentService.reassign_to_sales(sales_lead, self.sales, self.other_sales.pk)
        self.assertEqual(sales_lead.assigned_to, self.other_sales)

    def test_move_to_unattended_twice_fails(self):
        inquiry = self.create_inquiry(self.submitter, assigned_to=self.presales, assignment_status='assigned')
        self.add_follow_up(inquiry, self.presales, title='Intro call')

        AssignmentService.move_to_unattended(inquiry, self.presales)
        self.assertIsNone(inquiry.assigned_to)
        self.assertEqual(inquiry.assignment_status, 'not_assigned')
        self.assertEqual(inquiry.follow_ups.count(), 1)

        with self.assertRaises(ValidationError) as ctx:
            AssignmentService.move_to_unattended(inquiry, self.presales)
        self.assertIn('already unattended', str(ctx.exception.detail))

    def test_sales_cannot_unattend_presales_lead(self):
        inquiry = self.create_inquiry(self.submitter, assigned_to=self.presales, assignment_status='assigned')
        with self.assertRaises(PermissionDenied):
            AssignmentService.move_to_unattended(inquiry, self.sales)

    def test_check_phone_scoped_for_sales(self):
        self.create_inquiry(self.submitter, phone='+911234567890')

        self.assertFalse(AssignmentService.check_phone_exists(self.sales, '+911234567890')['exists'])
        found = AssignmentService.check_phone_exists(self.presales, '+911234567890')
        self.assertTrue(found['exists'])
        self.assertEqual(found['department'], 'presales')
        self.assertFalse(found['is_assigned'])

        sales_lead = self.create_inquiry(self.sales, phone='+911234567890')
        found = AssignmentService.check_phone_exists(self.sales, '+911234567890')
        self.assertEqual(found['inquiry_id'], sales_lead.pk)

    def test_check_phone_rejects_malformed_numbers(self):
        for phone in ('911234567890', '+91123', '+91abc4567890', ''):
            with self.assertRaises(ValidationError):
                AssignmentService.check_phone_exists(self.presales, phone)


class SideChannelTests(InquiryFixturesMixin, TestCase):
    def setUp(self):
        self.admin = self.create_user('admin1', role='admin')
        self.presales = self.create_user('presales1', role='presales')
        self.submitter = self.create_user('user1', role='user')
        self.inquiry = self.create_inquiry(self.submitter)

    def test_assign_notifies_new_owner_by_email(self):
        AssignmentService.assign(self.inquiry, self.admin, self.presales.pk)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['presales1@example.com'])
        self.assertIn('assigned to you', mail.outbox[0].body)

    def test_claim_notifies_creator(self):
        AssignmentService.claim(self.inquiry, self.presales)
        self.assertEqual(mail.outbox[0].to, ['user1@example.com'])

    def test_activity_failure_does_not_fail_transition(self):
        with mock.patch.object(Activity.objects, 'create', side_effect=DatabaseError('disk full')):
            with self.assertLogs('django', level='WARNING') as logs:
                AssignmentService.claim(self.inquiry, self.presales)

        self.inquiry.refresh_from_db()
        self.assertEqual(self.inquiry.assigned_to, self.presales)
        self.assertTrue(any('claimed' in line for line in logs.output))

    @override_settings(NOTIFICATION_WEBHOOK_URL='http://hooks.example.com/notify')
    def test_webhook_failure_is_logged(self):
        with mock.patch('core.services.requests.post', side_effect=requests.ConnectionError('refused')) as post:
            with self.assertLogs('django', level='WARNING') as logs:
                AssignmentService.assign(self.inquiry, self.admin, self.presales.pk)

        post.assert_called_once()
        self.assertEqual(post.call_args.kwargs['json']['recipients'], [self.presales.pk])
        self.assertTrue(any('Notification send failed' in line for line in logs.output))
        self.inquiry.refresh_from_db()
        self.assertEqual(self.inquiry.assigned_to, self.presales)


class OwnerRemovalTests(InquiryFixturesMixin, TestCase):
    def setUp(self):
        self.presales = self.create_user('presales1', role='presales')
        self.sales = self.create_user('sales1', role='sales')
        self.submitter = self.create_user('user1', role='user')

    def test_deleting_owner_returns_lead_to_pool(self):
        inquiry = self.create_inquiry(self.submitter)
        AssignmentService.claim(inquiry, self.presales)
        other = self.create_inquiry(self.submitter, name='Untouched')

        self.presales.delete()

        inquiry.refresh_from_db()
        self.assertIsNone(inquiry.assigned_to_id)
        self.assertEqual(inquiry.assignment_status, 'not_assigned')
        self.assertIn(inquiry, Inquiry.objects.unattended())
        other.refresh_from_db()
        self.assertEqual(other.assignment_status, 'not_assigned')

        claimant = self.create_user('presales2', role='presales')
        AssignmentService.claim(inquiry, claimant)
        self.assertEqual(inquiry.assigned_to, claimant)

    def test_deleting_sales_owner_clears_pending_flag(self):
        inquiry = self.create_inquiry(self.sales)
        AssignmentService.claim(inquiry, self.sales)
        self.assertTrue(inquiry.pending_first_follow_up)

        self.sales.delete()

        inquiry.refresh_from_db()
        self.assertFalse(inquiry.pending_first_follow_up)
        self.assertEqual(inquiry.department, 'sales')
        self.assertEqual(inquiry.assignment_status, 'not_assigned')
