from django.test import TestCase
from rest_framework.exceptions import ValidationError

from inquiries.models import Inquiry
from inquiries.tests.helpers import InquiryFixturesMixin
from inquiries.visibility import (
    AdminFilter, PresalesFilter, SalesFilter, UserFilter, parse_date_bound, parse_user_ref, search_q,
    visibility_for,
)


class VisibilityTests(InquiryFixturesMixin, TestCase):
    def setUp(self):
        self.admin = self.create_user('admin1', role='admin')
        self.presales = self.create_user('presales1', role='presales')
        self.other_presales = self.create_user('presales2', role='presales')
        self.sales = self.create_user('sales1', role='sales')
        self.submitter = self.create_user('user1', role='user')

        self.presales_lead = self.create_inquiry(self.presales, name='Presales Lead', assigned_to=self.presales,
                                                 assignment_status='assigned')
        self.forwarded_lead = self.create_inquiry(
            self.presales, name='Forwarded Lead', department='sales',
            assignment_status='forwarded_to_sales', forwarded_by=self.presales,
        )
        self.sales_lead = self.create_inquiry(self.sales, name='Sales Lead', assigned_to=self.sales,
                                              assignment_status='assigned')
        self.submitted_lead = self.create_inquiry(self.submitter, name='Submitted Lead')

    def visible(self, user, assigned_to=None):
        query = visibility_for(user).scope(assigned_to)
        return set(Inquiry.objects.filter(query).values_list('name', flat=True))

    def test_builder_per_role(self):
        self.assertIsInstance(visibility_for(self.admin), AdminFilter)
        self.assertIsInstance(visibility_for(self.presales), PresalesFilter)
        self.assertIsInstance(visibility_for(self.sales), SalesFilter)
        self.assertIsInstance(visibility_for(self.submitter), UserFilter)

    def test_superuser_acts_as_admin(self):
        root = self.create_user('root', role='user', is_superuser=True)
        self.assertIsInstance(visibility_for(root), AdminFilter)

    def test_admin_sees_everything(self):
        self.assertEqual(
            self.visible(self.admin),
            {'Presales Lead', 'Forwarded Lead', 'Sales Lead', 'Submitted Lead'},
        )

    def test_plain_user_only_sees_own_leads(self):
        self.assertEqual(self.visible(self.submitter), {'Submitted Lead'})

    def test_presales_does_not_see_lead_they_forwarded(self):
        self.assertEqual(self.visible(self.presales), {'Presales Lead', 'Submitted Lead'})

    def test_presales_sees_forwarded_lead_among_attended(self):
        self.assertEqual(self.visible(self.presales, assigned_to=self.presales.pk), {'Presales Lead', 'Forwarded Lead'})

    def test_other_presales_attended_view_is_empty(self):
        self.assertEqual(self.visible(self.other_presales, assigned_to=self.other_presales.pk), set())
        self.assertEqual(self.visible(self.other_presales), {'Presales Lead', 'Submitted Lead'})

    def test_sales_sees_whole_sales_pool(self):
        self.assertEqual(self.visible(self.sales), {'Forwarded Lead', 'Sales Lead'})
        self.assertEqual(self.visible(self.sales, assigned_to=self.sales.pk), {'Sales Lead'})

    def test_admin_attended_is_plain_owner_filter(self):
        self.assertEqual(self.visible(self.admin, assigned_to=self.sales.pk), {'Sales Lead'})

    def test_attended_by_actor_counts_forwarded_leads(self):
        query = visibility_for(self.presales).attended_by_actor()
        self.assertEqual(
            set(Inquiry.objects.filter(query).values_list('name', flat=True)),
            {'Presales Lead', 'Forwarded Lead'},
        )
        self.assertFalse(Inquiry.objects.filter(visibility_for(self.submitter).attended_by_actor()).exists())


class SearchTests(InquiryFixturesMixin, TestCase):
    def setUp(self):
        self.presales = self.create_user('presales1', role='presales')
        self.lead = self.create_inquiry(self.presales, name='Rohan Deshmukh', phone='+919876543210',
                                        email='rohan@example.com', city='Pune')

    def matches(self, term):
        return Inquiry.objects.filter(search_q(term)).exists()

    def test_matches_name_email_and_city_case_insensitively(self):
        self.assertTrue(self.matches('rohan'))
        self.assertTrue(self.matches('EXAMPLE.COM'))
        self.assertTrue(self.matches('pune'))
        self.assertFalse(self.matches('Nashik'))

    def test_phone_matches_with_or_without_plus(self):
        self.assertTrue(self.matches('+919876543210'))
        self.assertTrue(self.matches('919876543210'))
        self.assertTrue(self.matches('9876543210'))

    def test_plus_prefixed_term_matches_phone_stored_without_plus(self):
        Inquiry.objects.filter(pk=self.lead.pk).update(phone='919876543210')
        self.assertTrue(self.matches('+919876543210'))

    def test_blank_term_matches_everything(self):
        self.assertEqual(Inquiry.objects.filter(search_q('  ')).count(), 1)


class ParamParsingTests(InquiryFixturesMixin, TestCase):
    def setUp(self):
        self.sales = self.create_user('sales1', role='sales')

    def test_parse_user_ref(self):
        self.assertEqual(parse_user_ref('me', self.sales, 'assigned_to'), self.sales.pk)
        self.assertEqual(parse_user_ref('42', self.sales, 'assigned_to'), 42)
        self.assertIsNone(parse_user_ref('', self.sales, 'assigned_to'))
        with self.assertRaises(ValidationError):
            parse_user_ref('abc', self.sales, 'assigned_to')

    def test_parse_date_bound(self):
        start = parse_date_bound('2025-01-10', 'date_from')
        end = parse_date_bound('2025-01-10', 'date_to', end_of_day=True)
        self.assertEqual((start.hour, start.minute), (0, 0))
        self.assertEqual((end.hour, end.minute, end.second), (23, 59, 59))
        self.assertEqual(end.date(), start.date())
        exact = parse_date_bound('2025-01-10T08:30:00', 'date_to', end_of_day=True)
        self.assertEqual((exact.hour, exact.minute), (8, 30))
        self.assertIsNone(parse_date_bound('', 'date_from'))
        with self.assertRaises(ValidationError):
            parse_date_bound('yesterday', 'date_from')
