from datetime import datetime, timedelta, timezone as dt_timezone

from django.test import SimpleTestCase, TestCase

from inquiries.admission import admission_date, is_admitted, latest_follow_up
from inquiries.models import Inquiry
from inquiries.tests.helpers import InquiryFixturesMixin

T1 = datetime(2025, 3, 1, 10, 0, tzinfo=dt_timezone.utc)
T2 = T1 + timedelta(hours=2)
T3 = T1 + timedelta(hours=4)

WARM = {'lead_stage': 'Warm', 'sub_stage': 'Follow-up'}
ADMITTED = {'lead_stage': 'Hot', 'sub_stage': 'Confirmed Admission'}


class AdmissionPredicateTests(SimpleTestCase):
    def test_latest_hot_confirmed_entry_is_admitted(self):
        follow_ups = [dict(WARM, created_at=T1), dict(ADMITTED, created_at=T2)]
        self.assertTrue(is_admitted(follow_ups))

    def test_admission_followed_by_other_entry_is_not_admitted(self):
        follow_ups = [dict(ADMITTED, created_at=T1), dict(WARM, created_at=T2)]
        self.assertFalse(is_admitted(follow_ups))

    def test_order_of_the_list_does_not_matter(self):
        follow_ups = [dict(ADMITTED, created_at=T2), dict(WARM, created_at=T1)]
        self.assertTrue(is_admitted(follow_ups))

    def test_hot_without_confirmed_admission_is_not_admitted(self):
        follow_ups = [{'lead_stage': 'Hot', 'sub_stage': 'Interested', 'created_at': T1}]
        self.assertFalse(is_admitted(follow_ups))

    def test_empty_history(self):
        self.assertFalse(is_admitted([]))
        self.assertIsNone(admission_date([]))
        self.assertIsNone(latest_follow_up(None))

    def test_timestamp_tie_resolves_to_later_entry(self):
        self.assertTrue(is_admitted([dict(WARM, created_at=T1), dict(ADMITTED, created_at=T1)]))
        self.assertFalse(is_admitted([dict(ADMITTED, created_at=T1), dict(WARM, created_at=T1)]))

    def test_admission_date_uses_latest_matching_entry(self):
        follow_ups = [dict(ADMITTED, created_at=T1), dict(ADMITTED, created_at=T2), dict(WARM, created_at=T3)]
        self.assertFalse(is_admitted(follow_ups))
        self.assertEqual(admission_date(follow_ups), T2)


class AdmissionAnnotationTests(InquiryFixturesMixin, TestCase):
    def setUp(self):
        self.sales = self.create_user('sales1', role='sales')

    def test_annotation_matches_latest_follow_up(self):
        admitted = self.create_inquiry(self.sales, name='Admitted Lead')
        self.add_follow_up(admitted, self.sales, created_at=T1, **WARM)
        self.add_follow_up(admitted, self.sales, created_at=T2, **ADMITTED)

        reverted = self.create_inquiry(self.sales, name='Reverted Lead')
        self.add_follow_up(reverted, self.sales, created_at=T1, **ADMITTED)
        self.add_follow_up(reverted, self.sales, created_at=T2, **WARM)

        untouched = self.create_inquiry(self.sales, name='Fresh Lead')

        annotated = {inquiry.pk: inquiry for inquiry in Inquiry.objects.with_admission()}
        self.assertTrue(annotated[admitted.pk].is_admitted)
        self.assertEqual(annotated[admitted.pk].admission_date, T2)
        self.assertFalse(annotated[reverted.pk].is_admitted)
        self.assertEqual(annotated[reverted.pk].admission_date, T1)
        self.assertFalse(annotated[untouched.pk].is_admitted)
        self.assertIsNone(annotated[untouched.pk].admission_date)

        self.assertEqual(list(Inquiry.objects.admitted().values_list('pk', flat=True)), [admitted.pk])
        self.assertEqual(
            set(Inquiry.objects.not_admitted().values_list('pk', flat=True)), {reverted.pk, untouched.pk}
        )

    def test_annotation_breaks_timestamp_ties_by_insertion(self):
        inquiry = self.create_inquiry(self.sales)
        self.add_follow_up(inquiry, self.sales, created_at=T1, **WARM)
        self.add_follow_up(inquiry, self.sales, created_at=T1, **ADMITTED)

        self.assertTrue(Inquiry.objects.with_admission().get(pk=inquiry.pk).is_admitted)
        self.assertTrue(is_admitted(list(inquiry.follow_ups.all())))

    def test_with_admission_is_idempotent(self):
        inquiry = self.create_inquiry(self.sales)
        self.add_follow_up(inquiry, self.sales, **ADMITTED)
        self.assertEqual(Inquiry.objects.with_admission().admitted().count(), 1)
