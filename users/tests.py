# users/tests.py
"""
Unit tests for role resolution and staff endpoints
"""
from django.test import TestCase, Client, override_settings
from django.urls import reverse

from core.models import SystemSetting
from .models import Role, User
from .roles import PRIVILEGED, STANDARD, resolve_role, module_permissions


class RoleModelTest(TestCase):
    """Test Role defaults"""

    def test_builtin_roles_get_default_permissions(self):
        admin_role = Role.objects.create(name=Role.ADMIN)
        doctor_role = Role.objects.create(name=Role.DOCTOR)

        self.assertEqual(admin_role.display_name, 'Administrador')
        self.assertTrue(admin_role.permissions['settlements'])
        self.assertFalse(doctor_role.permissions['settlements'])
        self.assertTrue(doctor_role.permissions['invoices'])


class ResolveRoleTest(TestCase):
    """Test the precedence metadata -> profile -> email allowlist"""

    def setUp(self):
        self.admin_role = Role.objects.create(name=Role.ADMIN)
        self.doctor_role = Role.objects.create(name=Role.DOCTOR)

    def make_user(self, username='vet', **kwargs):
        return User.objects.create_user(username=username, password='pass12345', **kwargs)

    def test_default_is_standard(self):
        self.assertEqual(resolve_role(self.make_user()), STANDARD)

    def test_anonymous_is_standard(self):
        self.assertEqual(resolve_role(None), STANDARD)

    def test_profile_role(self):
        user = self.make_user(role=self.admin_role)
        self.assertEqual(resolve_role(user), PRIVILEGED)

    def test_metadata_role_wins_over_profile(self):
        user = self.make_user(
            role=self.admin_role,
            auth_metadata={'app_metadata': {'role': 'doctor'}}
        )
        self.assertEqual(resolve_role(user), STANDARD)

        user.auth_metadata = {'user_metadata': {'role': 'admin'}}
        user.role = self.doctor_role
        self.assertEqual(resolve_role(user), PRIVILEGED)

    def test_archived_profile_role_is_ignored(self):
        self.admin_role.is_archived = True
        self.admin_role.save()
        user = self.make_user(role=self.admin_role)

        self.assertEqual(resolve_role(user), STANDARD)
        self.assertEqual(module_permissions(user), {})

    @override_settings(PRIVILEGED_EMAILS=['owner@clinic.gt'])
    def test_settings_allowlist_escalates(self):
        user = self.make_user(
            email='Owner@Clinic.gt',
            role=self.doctor_role,
            auth_metadata={'role': 'doctor'}
        )
        self.assertEqual(resolve_role(user), PRIVILEGED)

    def test_system_setting_allowlist_escalates(self):
        SystemSetting.set_setting('privileged_emails', 'boss@clinic.gt, other@clinic.gt')
        user = self.make_user(email='other@clinic.gt')
        self.assertEqual(resolve_role(user), PRIVILEGED)

    def test_has_permission(self):
        doctor = self.make_user(role=self.doctor_role)
        admin = self.make_user(username='admin', role=self.admin_role)

        self.assertTrue(doctor.has_permission('invoices'))
        self.assertFalse(doctor.has_permission('settlements'))
        self.assertTrue(admin.has_permission('settlements'))


class StaffViewsTest(TestCase):
    """Test profile and staff list endpoints"""

    def setUp(self):
        self.client = Client()
        self.admin = User.objects.create_user(
            username='admin', password='pass12345', role=Role.objects.create(name=Role.ADMIN)
        )
        self.doctor = User.objects.create_user(
            username='doctor', password='pass12345', first_name='Ana', last_name='López',
            is_active_doctor=True, role=Role.objects.create(name=Role.DOCTOR)
        )

    def test_current_profile(self):
        self.client.force_login(self.doctor)
        response = self.client.get(reverse('users:current_profile'))

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['role'], STANDARD)
        self.assertEqual(data['full_name'], 'Ana López')
        self.assertFalse(data['permissions']['settlements'])

    def test_staff_list_requires_privileged(self):
        self.client.force_login(self.doctor)
        response = self.client.get(reverse('users:staff_list'))
        self.assertEqual(response.status_code, 403)

    def test_staff_list(self):
        self.client.force_login(self.admin)
        response = self.client.get(reverse('users:staff_list'))

        self.assertEqual(response.status_code, 200)
        self.assertEqual([s['id'] for s in response.json()['staff']], [self.doctor.pk])
