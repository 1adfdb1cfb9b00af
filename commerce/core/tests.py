"""
Comprehensive test suite for Core module
Tests: Auth (register, login, me), Roles and Permissions, Error Envelope, Pagination, Money, Throttle Rates,
Uploads and Media Library, Users, Settings, Audit Logs, Request IDs, Management Commands
"""
import io
import shutil
import tempfile
import uuid
from decimal import Decimal
from io import StringIO
from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.db import IntegrityError
from django.http import Http404
from django.test import TestCase, SimpleTestCase, override_settings
from PIL import Image
from rest_framework import status
from rest_framework import exceptions as drf_exceptions
from commerce.core import permissions
from commerce.core.errors import AppError, ErrorCode, wrap_error
from commerce.core.models import AuditLog, MediaFile, Setting, User
from commerce.core.money import round_money, format_money, to_decimal
from commerce.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from commerce.core.throttling import parse_rate
from commerce.core.uploads import (
    SIGNATURE_READ_SIZE, sanitize_file_name, validate_magic_bytes, validate_upload, generate_unique_file_name,
)


class AuthenticationTests(TestCase):
    """Test registration, login and the current user endpoint"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()

    def test_register_creates_customer(self):
        data = {
            'username': 'newbuyer',
            'email': 'NewBuyer@Example.com',
            'password': 'Valve-Gasket-2026',
            'password_confirm': 'Valve-Gasket-2026',
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data)
        self.assertEqual(response.data['user']['role'], 'CUSTOMER')
        self.assertEqual(User.objects.get(username='newbuyer').email, 'newbuyer@example.com')
        self.assertTrue(AuditLog.objects.filter(action='USER_REGISTERED').exists())

    def test_register_cannot_choose_role(self):
        data = {
            'username': 'sneaky',
            'email': 'sneaky@example.com',
            'password': 'Valve-Gasket-2026',
            'password_confirm': 'Valve-Gasket-2026',
            'role': 'ADMIN',
        }
        self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(User.objects.get(username='sneaky').role, 'CUSTOMER')

    def test_register_password_mismatch(self):
        data = {
            'username': 'typo',
            'email': 'typo@example.com',
            'password': 'Valve-Gasket-2026',
            'password_confirm': 'Valve-Gasket-2025',
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)

    def test_register_duplicate_email(self):
        TestDataFactory.create_user(email='taken@example.com')
        data = {
            'username': 'other',
            'email': 'TAKEN@example.com',
            'password': 'Valve-Gasket-2026',
            'password_confirm': 'Valve-Gasket-2026',
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)

    def test_login_returns_tokens_and_user(self):
        TestDataFactory.create_editor(username='writer')
        response = self.client.post('/api/v1/auth/login/', {'username': 'writer', 'password': 'testpass123'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['role'], 'EDITOR')

    def test_login_wrong_password(self):
        TestDataFactory.create_user(username='someone')
        response = self.client.post('/api/v1/auth/login/', {'username': 'someone', 'password': 'nope'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['error']['code'], ErrorCode.AUTH_REQUIRED)

    def test_me_lists_permissions(self):
        self.client.authenticate_user(TestDataFactory.create_editor())
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('blog:create', response.data['permissions'])
        self.assertNotIn('reports:read', response.data['permissions'])

    def test_me_update_ignores_role(self):
        user = TestDataFactory.create_user()
        self.client.authenticate_user(user)
        response = self.client.patch('/api/v1/auth/me/', {'first_name': 'Mai', 'role': 'ADMIN'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertEqual(user.first_name, 'Mai')
        self.assertEqual(user.role, 'CUSTOMER')

    def test_me_requires_auth(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['error']['code'], ErrorCode.AUTH_REQUIRED)


class PermissionTests(SimpleTestCase):
    """Test role permission tables"""

    def test_admin_has_everything_editor_has(self):
        for permission in permissions.PERMISSIONS['EDITOR']:
            self.assertTrue(permissions.has_permission('ADMIN', permission), permission)

    def test_editor_limits(self):
        self.assertTrue(permissions.can_access('EDITOR', 'blog', 'update'))
        self.assertFalse(permissions.can_access('EDITOR', 'blog', 'delete'))
        self.assertFalse(permissions.can_access('EDITOR', 'inventory', 'read'))
        self.assertFalse(permissions.can_access('EDITOR', 'reports', 'read'))

    def test_helpers(self):
        self.assertTrue(permissions.has_any_permission('CUSTOMER', ['orders:update', 'orders:read']))
        self.assertFalse(permissions.has_all_permissions('CUSTOMER', ['orders:update', 'orders:read']))
        self.assertTrue(permissions.has_role_level('ADMIN', 'EDITOR'))
        self.assertFalse(permissions.has_role_level('CUSTOMER', 'EDITOR'))
        self.assertFalse(permissions.has_role_level('UNKNOWN', 'CUSTOMER'))
        self.assertEqual(permissions.get_role_permissions('NOBODY'), [])

    def test_superuser_acts_as_admin(self):
        user = User(username='root', role='CUSTOMER', is_superuser=True)
        self.assertEqual(user.effective_role, 'ADMIN')


class ErrorTests(SimpleTestCase):
    """Test error wrapping"""

    def test_app_error_passthrough(self):
        error = AppError.not_found('Order', 7, code=ErrorCode.ORDER_NOT_FOUND)
        self.assertIs(wrap_error(error), error)
        self.assertEqual(error.http_status, 404)
        self.assertEqual(error.to_dict()['details'], [{'resource': 'Order', 'id': '7'}])

    def test_validation_details(self):
        error = AppError.validation('Bad input', {'email': 'required'})
        self.assertEqual(error.details, [{'field': 'email', 'constraint': 'required'}])
        self.assertEqual(error.http_status, 400)

    def test_drf_validation_flattened(self):
        error = wrap_error(drf_exceptions.ValidationError({'items': [{'quantity': ['Must be positive']}]}))
        self.assertEqual(error.code, ErrorCode.VALIDATION_ERROR)
        self.assertEqual(error.details, [{'field': 'items.0.quantity', 'constraint': 'Must be positive'}])

    def test_known_exceptions(self):
        self.assertEqual(wrap_error(Http404()).code, ErrorCode.NOT_FOUND)
        self.assertEqual(wrap_error(IntegrityError()).code, ErrorCode.ALREADY_EXISTS)
        self.assertEqual(wrap_error(drf_exceptions.PermissionDenied()).http_status, 403)
        self.assertEqual(wrap_error(drf_exceptions.Throttled(wait=30)).code, ErrorCode.RATE_LIMIT_EXCEEDED)
        self.assertEqual(wrap_error(drf_exceptions.MethodNotAllowed('PUT')).http_status, 405)

    def test_unknown_exception_is_internal(self):
        error = wrap_error(RuntimeError('boom'))
        self.assertEqual(error.code, ErrorCode.INTERNAL_ERROR)
        self.assertFalse(error.is_operational)
        self.assertEqual(error.http_status, 500)


class MoneyTests(SimpleTestCase):
    """Test currency rounding and formatting"""

    def test_round_money(self):
        self.assertEqual(round_money(Decimal('1234.5')), Decimal('1235'))
        self.assertEqual(round_money('10.005', 'USD'), Decimal('10.01'))

    def test_to_decimal(self):
        self.assertEqual(to_decimal('12.50'), Decimal('12.50'))
        self.assertEqual(to_decimal('abc'), Decimal('0'))
        self.assertEqual(to_decimal(None, Decimal('1')), Decimal('1'))

    def test_format_money(self):
        self.assertEqual(format_money(1234567), '1.234.567 ₫')
        self.assertEqual(format_money(-1500), '-1.500 ₫')
        self.assertEqual(format_money('1234.5', 'USD', 'en'), '$1,234.50')
        self.assertEqual(format_money('1234.5', 'USD', 'vi'), '1.234,50 $')


class ThrottleRateTests(SimpleTestCase):
    """Test rate strings"""

    def test_parse_rate(self):
        self.assertEqual(parse_rate('5/15m'), (5, 900))
        self.assertEqual(parse_rate('100/min'), (100, 60))
        self.assertEqual(parse_rate('3/h'), (3, 3600))
        self.assertEqual(parse_rate(None), (None, None))
        with self.assertRaises(ValueError):
            parse_rate('lots')


class UploadHelperTests(SimpleTestCase):
    """Test upload validation helpers"""

    def test_sanitize_file_name(self):
        self.assertEqual(sanitize_file_name('../../etc/pass wd<1>.png'), 'pass_wd_1_.png')
        self.assertEqual(sanitize_file_name(''), 'file')

    def test_unique_name_keeps_extension(self):
        name = generate_unique_file_name('Pump Curve.PNG')
        self.assertTrue(name.startswith('Pump_Curve_'))
        self.assertTrue(name.endswith('.png'))

    def test_magic_bytes(self):
        self.assertTrue(validate_magic_bytes(b'%PDF-1.7\n...', 'application/pdf'))
        self.assertFalse(validate_magic_bytes(b'<html>hello</html>', 'image/png'))
        self.assertFalse(validate_magic_bytes(b'abc', 'application/pdf'))
        self.assertTrue(validate_magic_bytes(b'PK\x03\x04 docx body', 'application/vnd.ms-excel'))

    def test_validation_reads_only_the_header(self):
        class CountingUpload(SimpleUploadedFile):
            bytes_read = 0

            def read(self, *args):
                data = super().read(*args)
                self.bytes_read += len(data)
                return data

        body = b'%PDF-1.7\n' + b'0' * (SIGNATURE_READ_SIZE * 8)
        upload = CountingUpload('datasheet.pdf', body, content_type='application/pdf')
        validated = validate_upload(upload, category='documents')
        self.assertEqual(validated.size, len(body))
        self.assertLessEqual(upload.bytes_read, SIGNATURE_READ_SIZE)
        self.assertEqual(upload.tell(), 0)


class MediaLibraryTests(TestCase):
    """Test media upload and management"""

    def setUp(self):
        self.media_root = tempfile.mkdtemp()
        self.override = override_settings(MEDIA_ROOT=self.media_root)
        self.override.enable()
        self.editor = TestDataFactory.create_editor()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.editor)

    def tearDown(self):
        self.override.disable()
        shutil.rmtree(self.media_root, ignore_errors=True)

    def _png(self, name='diagram.png'):
        buffer = io.BytesIO()
        Image.new('RGB', (40, 30), color='navy').save(buffer, format='PNG')
        return SimpleUploadedFile(name, buffer.getvalue(), content_type='image/png')

    def test_upload_image(self):
        response = self.client.post('/api/v1/media/upload/', {'file': self._png(), 'alt_text': 'Wiring'},
                                    format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual((response.data['width'], response.data['height']), (40, 30))
        self.assertEqual(response.data['category'], 'images')
        self.assertTrue(response.data['folder'].startswith('uploads/images/'))
        self.assertTrue(AuditLog.objects.filter(action='MEDIA_UPLOADED').exists())

    def test_stored_file_is_complete(self):
        body = b'%PDF-1.7\n' + b'spec sheet ' * 20000
        pdf = SimpleUploadedFile('Pump Datasheet.pdf', body, content_type='application/pdf')
        response = self.client.post('/api/v1/media/upload/', {'file': pdf, 'category': 'documents'},
                                    format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        media = MediaFile.objects.get(pk=response.data['id'])
        with media.file.open('rb') as stored:
            self.assertEqual(stored.read(), body)
        self.assertEqual(media.size, len(body))

    def test_spoofed_image_rejected(self):
        fake = SimpleUploadedFile('evil.png', b'<script>alert(1)</script>', content_type='image/png')
        response = self.client.post('/api/v1/media/upload/', {'file': fake}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], ErrorCode.UPLOAD_INVALID_FILE)
        self.assertFalse(MediaFile.objects.exists())

    def test_extension_must_match(self):
        response = self.client.post('/api/v1/media/upload/', {'file': self._png('diagram.jpg')}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_disallowed_type(self):
        script = SimpleUploadedFile('run.sh', b'#!/bin/sh\necho hi\n', content_type='application/x-sh')
        response = self.client.post('/api/v1/media/upload/', {'file': script, 'category': 'documents'},
                                    format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_missing_file(self):
        response = self.client.post('/api/v1/media/upload/', {}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_editor_cannot_delete(self):
        created = self.client.post('/api/v1/media/upload/', {'file': self._png()}, format='multipart')
        response = self.client.delete(f"/api/v1/media/{created.data['id']}/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.delete(f"/api/v1/media/{created.data['id']}/")
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_customer_cannot_upload(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.post('/api/v1/media/upload/', {'file': self._png()}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class UserAdminTests(TestCase):
    """Test user administration, settings and audit logs"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_pagination(self):
        TestDataFactory.create_user()
        TestDataFactory.create_user()
        response = self.client.get('/api/v1/users/', {'page_size': 1, 'page': 2})
        self.assertEqual(response.data['count'], 3)
        self.assertEqual(response.data['total_pages'], 3)
        self.assertEqual(response.data['previous'], 1)
        self.assertEqual(response.data['next'], 3)
        self.assertEqual(len(response.data['results']), 1)
        response = self.client.get('/api/v1/users/', {'page_size': 2, 'page': 99})
        self.assertEqual(response.data['page'], 2)

    def test_role_change_audited(self):
        user = TestDataFactory.create_user()
        response = self.client.patch(f'/api/v1/users/{user.id}/', {'role': 'EDITOR'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.get(action='USER_ROLE_CHANGED')
        self.assertEqual(log.changes['role'], {'old': 'CUSTOMER', 'new': 'EDITOR'})
        self.assertEqual(log.user, self.admin)

    def test_cannot_delete_self(self):
        response = self.client.delete(f'/api/v1/users/{self.admin.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_editor_cannot_list_users(self):
        self.client.authenticate_user(TestDataFactory.create_editor())
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error']['code'], ErrorCode.AUTH_FORBIDDEN)

    def test_settings(self):
        response = self.client.post('/api/v1/settings/', {'key': 'store.name', 'value': 'CE Supply'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = self.client.get('/api/v1/settings/')
        self.assertEqual(response.data[0]['key'], 'store.name')

    def test_audit_log_filters(self):
        user = TestDataFactory.create_user()
        self.client.patch(f'/api/v1/users/{user.id}/', {'role': 'EDITOR'}, format='json')
        response = self.client.get('/api/v1/audit-logs/', {'action': 'USER_ROLE_CHANGED'})
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['username'], self.admin.username)


class RequestIDTests(TestCase):
    """Test request id propagation"""

    def setUp(self):
        cache.clear()

    def test_incoming_id_echoed(self):
        request_id = uuid.uuid4().hex
        response = self.client.get('/api/v1/categories/', HTTP_X_REQUEST_ID=request_id)
        self.assertEqual(response['X-Request-ID'], request_id)

    def test_invalid_id_replaced(self):
        response = self.client.get('/api/v1/categories/', HTTP_X_REQUEST_ID='bad id <script>')
        self.assertNotEqual(response['X-Request-ID'], 'bad id <script>')
        self.assertEqual(len(response['X-Request-ID']), 32)

    def test_id_generated_when_missing(self):
        response = self.client.get('/api/v1/categories/')
        self.assertEqual(len(response['X-Request-ID']), 32)

    def test_audit_row_records_request_id(self):
        request_id = uuid.uuid4().hex
        data = {
            'username': 'traced',
            'email': 'traced@example.com',
            'password': 'Valve-Gasket-2026',
            'password_confirm': 'Valve-Gasket-2026',
        }
        self.client.post('/api/v1/auth/register/', data, content_type='application/json',
                         HTTP_X_REQUEST_ID=request_id)
        self.assertEqual(AuditLog.objects.get(action='USER_REGISTERED').request_id, request_id)


class ManagementCommandTests(TestCase):
    """Test core management commands"""

    def test_create_admin(self):
        out = StringIO()
        call_command('create_admin', 'boss', password='Valve-Gasket-2026', stdout=out)
        user = User.objects.get(username='boss')
        self.assertEqual(user.role, 'ADMIN')
        self.assertTrue(user.is_staff)
        self.assertIn('boss is now ADMIN', out.getvalue())

    def test_promote_existing_user(self):
        TestDataFactory.create_user(username='writer')
        call_command('create_admin', 'writer', role='EDITOR', stdout=StringIO())
        self.assertEqual(User.objects.get(username='writer').role, 'EDITOR')

    def test_seed_settings_idempotent(self):
        call_command('seed_settings', stdout=StringIO())
        count = Setting.objects.count()
        Setting.objects.filter(key='store.name').update(value='Custom')
        call_command('seed_settings', stdout=StringIO())
        self.assertEqual(Setting.objects.count(), count)
        self.assertEqual(Setting.objects.get(key='store.name').value, 'Custom')
        call_command('seed_settings', overwrite=True, stdout=StringIO())
        self.assertEqual(Setting.objects.get(key='store.name').value, 'CE Industrial Supply')
