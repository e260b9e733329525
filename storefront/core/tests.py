"""
Test suite for the core module
Tests: credentials, registration/login, profile, address book, role checks, upload, audit log
"""
import io
import shutil
import tempfile
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from PIL import Image
from rest_framework import status
from rest_framework_simplejwt.tokens import AccessToken

from storefront.core import services
from storefront.core.authentication import issue_credential, resolve_credential
from storefront.core.exceptions import (
    Conflict, Forbidden, InvalidCredentials, NotFound, Unauthenticated, ValidationFailed,
)
from storefront.core.models import Address, AuditLog
from storefront.core.permissions import require_admin, require_authenticated, require_owner_or_admin
from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from storefront.core.utils import create_audit_log

User = get_user_model()


def address_payload(**overrides):
    data = {
        'name': 'Home',
        'phone': '0812345678',
        'address': '1 Silom Road',
        'district': 'Bang Rak',
        'province': 'Bangkok',
        'postal_code': '10500',
        'is_default': False,
    }
    data.update(overrides)
    return data


class CredentialTests(TestCase):
    """Test issuing and resolving bearer credentials"""

    def setUp(self):
        self.user = TestDataFactory.create_user()

    def test_issued_credential_resolves_to_user(self):
        token = issue_credential(self.user)
        self.assertEqual(resolve_credential(token), self.user)

    def test_bearer_prefix_is_accepted(self):
        token = issue_credential(self.user)
        self.assertEqual(resolve_credential(f'Bearer {token}'), self.user)

    def test_garbage_credential_is_anonymous(self):
        self.assertIsNone(resolve_credential('not-a-token'))
        self.assertIsNone(resolve_credential(''))
        self.assertIsNone(resolve_credential(None))

    def test_expired_credential_is_anonymous(self):
        token = AccessToken.for_user(self.user)
        token.set_exp(lifetime=-timedelta(seconds=1))
        self.assertIsNone(resolve_credential(str(token)))

    def test_credential_for_deleted_user_is_anonymous(self):
        token = issue_credential(self.user)
        self.user.delete()
        self.assertIsNone(resolve_credential(token))

    def test_credential_lifetime_is_seven_days(self):
        token = AccessToken(issue_credential(self.user))
        lifetime = token['exp'] - token['iat']
        self.assertEqual(lifetime, int(timedelta(days=7).total_seconds()))

    def test_invalid_header_leaves_public_endpoint_usable(self):
        client = AuthenticatedAPIClient()
        client.credentials(HTTP_AUTHORIZATION='Bearer broken.token.value')
        response = client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data)


class RoleCheckTests(TestCase):
    """Test require_authenticated / require_admin / ownership"""

    def setUp(self):
        self.customer = TestDataFactory.create_user()
        self.admin = TestDataFactory.create_admin()

    def test_require_authenticated_rejects_missing_user(self):
        with self.assertRaises(Unauthenticated):
            require_authenticated(None)

    def test_require_admin_rejects_customer(self):
        with self.assertRaises(Forbidden):
            require_admin(self.customer)

    def test_require_admin_rejects_anonymous_as_unauthenticated(self):
        with self.assertRaises(Unauthenticated):
            require_admin(None)

    def test_require_admin_accepts_admin(self):
        self.assertEqual(require_admin(self.admin), self.admin)

    def test_owner_or_admin(self):
        other = TestDataFactory.create_user()
        self.assertEqual(require_owner_or_admin(self.customer, self.customer.pk), self.customer)
        self.assertEqual(require_owner_or_admin(self.admin, self.customer.pk), self.admin)
        with self.assertRaises(Forbidden):
            require_owner_or_admin(other, self.customer.pk)

    def test_admin_endpoint_status_codes(self):
        client = AuthenticatedAPIClient()
        response = client.get('/api/v1/admin/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['error'], 'Unauthenticated')

        client.authenticate_user(self.customer)
        response = client.get('/api/v1/admin/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error'], 'Forbidden')

        client.authenticate_user(self.admin)
        response = client.get('/api/v1/admin/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)


class RegistrationTests(TestCase):
    """Test user registration"""

    def test_register_returns_token_and_user(self):
        user, token = services.register_user('New@Example.com', 'secret1', 'New User')
        self.assertEqual(user.email, 'new@example.com')
        self.assertEqual(user.role, User.ROLE_CUSTOMER)
        self.assertEqual(resolve_credential(token), user)

    def test_password_is_hashed(self):
        user, _ = services.register_user('hash@example.com', 'secret1', 'Hash')
        self.assertNotEqual(user.password, 'secret1')
        self.assertTrue(user.check_password('secret1'))

    def test_duplicate_email_conflicts(self):
        services.register_user('dup@example.com', 'secret1', 'First')
        with self.assertRaises(Conflict):
            services.register_user('DUP@example.com', 'secret2', 'Second')
        self.assertEqual(User.objects.filter(email='dup@example.com').count(), 1)

    def test_short_password_rejected(self):
        with self.assertRaises(ValidationFailed):
            services.register_user('short@example.com', '123', 'Short')

    def test_register_endpoint(self):
        client = AuthenticatedAPIClient()
        response = client.post('/api/v1/auth/register/', {
            'email': 'api@example.com', 'password': 'secret1', 'name': 'Api User',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('token', response.data)
        self.assertEqual(response.data['user']['email'], 'api@example.com')
        self.assertNotIn('password', response.data['user'])

    def test_register_endpoint_duplicate_is_409(self):
        TestDataFactory.create_user(email='taken@example.com')
        client = AuthenticatedAPIClient()
        response = client.post('/api/v1/auth/register/', {
            'email': 'taken@example.com', 'password': 'secret1', 'name': 'Again',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'Conflict')

    def test_register_endpoint_validation_error_shape(self):
        client = AuthenticatedAPIClient()
        response = client.post('/api/v1/auth/register/', {'email': 'bad'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'ValidationFailed')
        self.assertIn('details', response.data)


class LoginTests(TestCase):
    """Test login"""

    def setUp(self):
        self.user = TestDataFactory.create_user(email='login@example.com', password='correct-pass')

    def test_login_success(self):
        user, token = services.authenticate_user('LOGIN@example.com', 'correct-pass')
        self.assertEqual(user, self.user)
        self.assertEqual(resolve_credential(token), self.user)

    def test_unknown_email_and_wrong_password_are_indistinguishable(self):
        with self.assertRaises(InvalidCredentials) as unknown:
            services.authenticate_user('nobody@example.com', 'correct-pass')
        with self.assertRaises(InvalidCredentials) as wrong:
            services.authenticate_user('login@example.com', 'wrong-pass')
        self.assertEqual(str(unknown.exception.detail), str(wrong.exception.detail))

    def test_login_endpoint_errors_identical(self):
        client = AuthenticatedAPIClient()
        unknown = client.post('/api/v1/auth/login/', {
            'email': 'nobody@example.com', 'password': 'correct-pass',
        }, format='json')
        wrong = client.post('/api/v1/auth/login/', {
            'email': 'login@example.com', 'password': 'wrong-pass',
        }, format='json')
        self.assertEqual(unknown.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(unknown.status_code, wrong.status_code)
        self.assertEqual(unknown.data, wrong.data)
        self.assertEqual(unknown.data['error'], 'InvalidCredentials')


class ProfileTests(TestCase):
    """Test the current-user endpoint and profile updates"""

    def setUp(self):
        self.user = TestDataFactory.create_user(name='Before')
        self.client = AuthenticatedAPIClient()

    def test_me_is_null_when_anonymous(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data)

    def test_me_returns_current_user(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.data['id'], self.user.pk)
        self.assertEqual(response.data['addresses'], [])

    def test_update_profile_applies_only_non_empty_values(self):
        services.update_profile(self.user, name='After', phone='')
        self.user.refresh_from_db()
        self.assertEqual(self.user.name, 'After')
        self.assertIsNone(self.user.phone)

    def test_update_profile_requires_authentication(self):
        response = self.client.patch('/api/v1/auth/me/', {'name': 'X'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_update_profile_endpoint(self):
        self.client.authenticate_user(self.user)
        response = self.client.patch('/api/v1/auth/me/', {'phone': '0899999999'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['phone'], '0899999999')
        self.assertEqual(response.data['name'], 'Before')


class AddressBookTests(TestCase):
    """Test the address book operations"""

    def setUp(self):
        self.user = TestDataFactory.create_user()

    def test_add_address_appends(self):
        services.add_address(self.user, address_payload(name='First'))
        services.add_address(self.user, address_payload(name='Second'))
        names = list(self.user.addresses.order_by('id').values_list('name', flat=True))
        self.assertEqual(names, ['First', 'Second'])

    def test_new_default_clears_previous_default(self):
        services.add_address(self.user, address_payload(name='First', is_default=True))
        services.add_address(self.user, address_payload(name='Second', is_default=True))
        defaults = Address.objects.filter(user=self.user, is_default=True)
        self.assertEqual(defaults.count(), 1)
        self.assertEqual(defaults.get().name, 'Second')

    def test_update_address_merges(self):
        services.add_address(self.user, address_payload(name='Home', province='Bangkok'))
        services.update_address(self.user, 0, {'province': 'Chiang Mai'})
        address = self.user.addresses.get()
        self.assertEqual(address.name, 'Home')
        self.assertEqual(address.province, 'Chiang Mai')

    def test_update_address_as_default(self):
        services.add_address(self.user, address_payload(name='A', is_default=True))
        services.add_address(self.user, address_payload(name='B'))
        services.update_address(self.user, 1, {'is_default': True})
        self.assertEqual(Address.objects.get(user=self.user, is_default=True).name, 'B')

    def test_index_out_of_range(self):
        services.add_address(self.user, address_payload())
        with self.assertRaises(NotFound):
            services.update_address(self.user, 1, {'name': 'Nope'})
        with self.assertRaises(NotFound):
            services.delete_address(self.user, -1)

    def test_delete_shifts_positions(self):
        services.add_address(self.user, address_payload(name='A'))
        services.add_address(self.user, address_payload(name='B'))
        services.delete_address(self.user, 0)
        services.update_address(self.user, 0, {'phone': '0800000000'})
        address = self.user.addresses.get()
        self.assertEqual(address.name, 'B')
        self.assertEqual(address.phone, '0800000000')

    def test_address_endpoints(self):
        client = AuthenticatedAPIClient().authenticate_user(self.user)
        response = client.post('/api/v1/auth/me/addresses/', address_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data['addresses']), 1)

        response = client.put('/api/v1/auth/me/addresses/0/', {'district': 'Sathorn'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['addresses'][0]['district'], 'Sathorn')

        response = client.delete('/api/v1/auth/me/addresses/5/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        response = client.delete('/api/v1/auth/me/addresses/0/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['addresses'], [])


class UploadTests(TestCase):
    """Test the image upload endpoint"""

    def setUp(self):
        self.media_root = tempfile.mkdtemp()
        self.user = TestDataFactory.create_user()

    def tearDown(self):
        shutil.rmtree(self.media_root, ignore_errors=True)

    def _png(self):
        buffer = io.BytesIO()
        Image.new('RGB', (4, 4), color='red').save(buffer, format='PNG')
        return SimpleUploadedFile('slip.PNG', buffer.getvalue(), content_type='image/png')

    def test_upload_requires_authentication(self):
        client = AuthenticatedAPIClient()
        response = client.post('/api/v1/upload/', {'image': self._png()}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_upload_returns_url(self):
        client = AuthenticatedAPIClient().authenticate_user(self.user)
        with override_settings(MEDIA_ROOT=self.media_root):
            response = client.post('/api/v1/upload/', {'image': self._png()}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('/uploads/', response.data['url'])
        self.assertTrue(response.data['url'].endswith('.png'))

    def test_upload_rejects_non_image(self):
        client = AuthenticatedAPIClient().authenticate_user(self.user)
        text_file = SimpleUploadedFile('notes.txt', b'plain text', content_type='text/plain')
        with override_settings(MEDIA_ROOT=self.media_root):
            response = client.post('/api/v1/upload/', {'image': text_file}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class AuditLogTests(TestCase):
    """Test audit log helper and listing"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()

    def test_missing_fields_skip_entry(self):
        self.assertIsNone(create_audit_log(action='update', model_name='Product'))
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_list_filters_by_action(self):
        create_audit_log(user=self.admin, action='create', model_name='Product', object_id='1')
        create_audit_log(user=self.admin, action='delete', model_name='Product', object_id='2')
        client = AuthenticatedAPIClient().authenticate_user(self.admin)
        response = client.get('/api/v1/admin/audit-logs/', {'action': 'delete'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['object_id'], '2')


class HealthTests(TestCase):
    def test_health(self):
        response = AuthenticatedAPIClient().get('/api/v1/health/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'ok')
        self.assertEqual(response.data['database'], 'ok')
