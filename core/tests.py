from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.management import call_command
from django.test import RequestFactory, TestCase, override_settings
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.test import APITestCase

from core.exceptions import Conflict, api_exception_handler
from core.models import DEFAULT_LEAD_STAGES, OptionSettings
from core.permissions import IsAdmin, IsStaffRole
from core.services import NotificationService


def create_user(username, role='user', **extra):
    extra.setdefault('email', f'{username}@example.com')
    return get_user_model().objects.create_user(username=username, password='pass12345', role=role, **extra)


class OptionSettingsTests(TestCase):
    def test_catalog_created_by_migration(self):
        options = OptionSettings.load()
        self.assertEqual(options.courses, ['CDEC', 'X-DSAAI', 'DevOps', 'Full-Stack', 'Any'])
        self.assertEqual(options.locations, ['Nagpur', 'Pune', 'Nashik', 'Indore'])
        self.assertEqual(options.statuses, ['hot', 'warm', 'cold'])
        self.assertEqual(options.lead_stages, DEFAULT_LEAD_STAGES)
        self.assertEqual(options.sub_stages_for('Hot'), ['Confirmed Admission'])
        self.assertEqual(len(options.sub_stages_for('Cold')), 13)
        self.assertEqual(options.sub_stages_for('Unknown'), [])

    def test_load_does_not_create_missing_catalog(self):
        OptionSettings.objects.all().delete()
        with self.assertRaises(ValidationError):
            OptionSettings.load()
        self.assertFalse(OptionSettings.objects.exists())

    def test_normalize_legacy_layout(self):
        legacy = [
            {'value': 'Hot', 'subStages': ['Confirmed Admission', ' ']},
            {'label': 'Warm', 'value': 'Old Warm', 'sub_stages': ['Follow-up']},
            {'value': ''},
            None,
        ]
        self.assertEqual(OptionSettings.normalize_lead_stages(legacy), [
            {'label': 'Hot', 'sub_stages': ['Confirmed Admission']},
            {'label': 'Warm', 'sub_stages': ['Follow-up']},
        ])

    def test_migrate_command_converts_legacy_stages(self):
        OptionSettings.objects.update(lead_stages=[{'value': 'Cold', 'subStages': ['Switch Off']}])

        out = StringIO()
        call_command('migrate_option_settings', '--dry-run', stdout=out)
        self.assertEqual(OptionSettings.load().lead_stages, [{'value': 'Cold', 'subStages': ['Switch Off']}])

        call_command('migrate_option_settings', stdout=out)
        self.assertEqual(OptionSettings.load().lead_stages, [{'label': 'Cold', 'sub_stages': ['Switch Off']}])
        self.assertIn('Lead stages migrated.', out.getvalue())

    def test_migrate_command_recreates_missing_catalog(self):
        OptionSettings.objects.all().delete()
        call_command('migrate_option_settings', stdout=StringIO())
        self.assertEqual(OptionSettings.load().lead_stages, DEFAULT_LEAD_STAGES)

    def test_version_increments_on_save(self):
        options = OptionSettings.load()
        version = options.version
        options.courses = ['CDEC']
        with self.assertLogs('django', level='INFO') as logs:
            options.save(update_fields=['courses'])
        options.refresh_from_db()
        self.assertEqual(options.version, version + 1)
        self.assertTrue(any('courses changed' in line for line in logs.output))


class OptionSettingsApiTests(APITestCase):
    def setUp(self):
        self.admin = create_user('admin1', role='admin')
        self.sales = create_user('sales1', role='sales')

    def test_any_authenticated_user_reads_options(self):
        self.client.force_authenticate(self.sales)
        response = self.client.get('/api/options/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertIn('Pune', response.data['data']['locations'])

    def test_only_admin_updates_options(self):
        self.client.force_authenticate(self.sales)
        response = self.client.put('/api/options/', {'courses': ['CDEC']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.admin)
        response = self.client.put(
            '/api/options/',
            {'courses': [' CDEC ', '', 'AI-ML'], 'lead_stages': [{'label': ' Hot ', 'sub_stages': ['Enrolled']}]},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        options = OptionSettings.load()
        self.assertEqual(options.courses, ['CDEC', 'AI-ML'])
        self.assertEqual(options.lead_stages, [{'label': 'Hot', 'sub_stages': ['Enrolled']}])
        self.assertEqual(options.locations, ['Nagpur', 'Pune', 'Nashik', 'Indore'])


class RolePermissionTests(TestCase):
    def setUp(self):
        self.factory = RequestFactory()

    def check(self, permission, user):
        request = self.factory.get('/')
        request.user = user
        return permission.has_permission(request, None)

    def test_superuser_acts_as_admin(self):
        root = create_user('root', role='user', is_superuser=True)
        self.assertEqual(root.actor_role, 'admin')
        self.assertTrue(self.check(IsAdmin(), root))

    def test_staff_roles(self):
        self.assertTrue(self.check(IsStaffRole(), create_user('p1', role='presales')))
        self.assertTrue(self.check(IsStaffRole(), create_user('s1', role='sales')))
        self.assertFalse(self.check(IsStaffRole(), create_user('u1', role='user')))
        self.assertFalse(self.check(IsAdmin(), create_user('p2', role='presales')))


class AuthApiTests(APITestCase):
    def setUp(self):
        self.presales = create_user('presales1', role='presales', first_name='Priya', last_name='Kale')

    def test_login_with_email_returns_tokens_and_role(self):
        response = self.client.post(
            '/api/auth/login/', {'username': 'PRESALES1@example.com', 'password': 'pass12345'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        data = response.data['data']
        self.assertIn('access', data)
        self.assertIn('refresh', data)
        self.assertEqual(data['role'], 'presales')
        self.assertEqual(data['user']['id'], self.presales.pk)

    def test_login_with_wrong_password(self):
        response = self.client.post(
            '/api/auth/login/', {'username': 'presales1', 'password': 'nope'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(response.data['success'])

    def register(self, **overrides):
        data = {
            'username': 'newcomer', 'email': 'Newcomer@Example.com',
            'password': 'S3cure-pass-99', 'password2': 'S3cure-pass-99',
        }
        data.update(overrides)
        return self.client.post('/api/auth/register/', data, format='json')

    def test_register_defaults_to_user_role(self):
        response = self.register()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        data = response.data['data']
        self.assertEqual(data['role'], 'user')
        self.assertIn('access', data)
        user = get_user_model().objects.get(username='newcomer')
        self.assertEqual(user.email, 'newcomer@example.com')
        self.assertTrue(user.check_password('S3cure-pass-99'))

    def test_register_rejects_duplicate_email_and_mismatch(self):
        response = self.register(username='dupe', email='presales1@EXAMPLE.com')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'User already exists with this email')

        response = self.register(password2='something-else-1')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data['errors'])

    def test_first_admin_only_through_registration(self):
        response = self.register(role='admin')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data['data']['role'], 'admin')

        response = self.register(username='second', email='second@example.com', role='admin')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(get_user_model().objects.filter(username='second').exists())

    def test_profile_and_logout(self):
        self.client.force_authenticate(self.presales)
        response = self.client.get('/api/auth/profile/')
        self.assertEqual(response.data['data']['full_name'], 'Priya Kale')

        response = self.client.patch('/api/auth/profile/', {'role': 'admin', 'phone_number': '+919000000000'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.presales.refresh_from_db()
        self.assertEqual(self.presales.role, 'presales')
        self.assertEqual(self.presales.phone_number, '+919000000000')

        response = self.client.post('/api/auth/logout/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)


class UserApiTests(APITestCase):
    def setUp(self):
        self.admin = create_user('admin1', role='admin')
        self.presales = create_user('presales1', role='presales')
        self.inactive_presales = create_user('presales2', role='presales', is_active=False)
        self.sales = create_user('sales1', role='sales')
        self.submitter = create_user('user1', role='user')

    def usernames(self, response):
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        return {row['email'].split('@')[0] for row in response.data['data']['users']}

    def test_admin_lists_everyone(self):
        self.client.force_authenticate(self.admin)
        self.assertEqual(
            self.usernames(self.client.get('/api/users/')),
            {'admin1', 'presales1', 'presales2', 'sales1', 'user1'},
        )

    def test_presales_and_sales_list_active_peers(self):
        self.client.force_authenticate(self.presales)
        self.assertEqual(self.usernames(self.client.get('/api/users/')), {'presales1'})

        self.client.force_authenticate(self.sales)
        self.assertEqual(self.usernames(self.client.get('/api/users/')), {'sales1'})

    def test_plain_user_cannot_list(self):
        self.client.force_authenticate(self.submitter)
        self.assertEqual(self.client.get('/api/users/').status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_creates_and_toggles_user(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/users/', {
            'username': 'sales2', 'email': 'sales2@example.com', 'password': 'S3cure-pass-99', 'role': 'sales',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        user = get_user_model().objects.get(username='sales2')
        self.assertTrue(user.check_password('S3cure-pass-99'))

        response = self.client.post(f'/api/users/{user.pk}/toggle_status/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertFalse(user.is_active)

    def test_admin_cannot_delete_self(self):
        self.client.force_authenticate(self.admin)
        response = self.client.delete(f'/api/users/{self.admin.pk}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'You cannot delete your own account')


class ExceptionHandlerTests(TestCase):
    def test_unhandled_error_is_generic(self):
        with self.assertLogs('django', level='ERROR'):
            response = api_exception_handler(RuntimeError('db password is hunter2'), {'view': None})
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data, {'success': False, 'message': 'Internal server error'})

    def test_conflict_envelope(self):
        response = api_exception_handler(Conflict('Inquiry already assigned'), {'view': None})
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data, {'success': False, 'message': 'Inquiry already assigned'})

    def test_validation_envelope_keeps_field_errors(self):
        response = api_exception_handler(ValidationError({'phone': ['Invalid phone']}), {'view': None})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'Invalid phone')
        self.assertEqual(response.data['errors'], {'phone': ['Invalid phone']})


class NotificationServiceTests(TestCase):
    def setUp(self):
        self.active = create_user('active1', role='sales')
        self.inactive = create_user('inactive1', role='sales', is_active=False)
        self.no_email = create_user('noemail1', role='sales', email='')

    def test_emails_active_recipients_only(self):
        NotificationService.notify_users([self.active.pk, self.inactive.pk, self.no_email.pk, None], 'Hello')
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['active1@example.com'])
        self.assertEqual(mail.outbox[0].subject, NotificationService.SUBJECT)

    def test_no_recipients_sends_nothing(self):
        NotificationService.notify_users([], 'Hello')
        self.assertEqual(len(mail.outbox), 0)

    @override_settings(NOTIFICATION_WEBHOOK_URL='http://hooks.example.com/notify')
    def test_webhook_receives_payload(self):
        with mock.patch('core.services.requests.post') as post:
            NotificationService.notify_users([self.active.pk], 'Hello')
        post.assert_called_once_with(
            'http://hooks.example.com/notify',
            json={'recipients': [self.active.pk], 'message': 'Hello'},
            timeout=5.0,
        )

    def test_mail_failure_is_swallowed(self):
        with mock.patch('core.services.send_mail', side_effect=OSError('smtp down')):
            with self.assertLogs('django', level='WARNING') as logs:
                NotificationService.notify_users([self.active.pk], 'Hello')
        self.assertTrue(any('Notification send failed' in line for line in logs.output))
