"""
Authentication tests for Resellers Hub.

Tests cover:
- Registration with validation
- Login / logout through the session
- The current user endpoint
"""

from django.test import TestCase
from django.urls import reverse

from allauth.account.models import EmailAddress

from core.models import User

from .helpers import PASSWORD, make_agent, make_user


class RegisterViewTests(TestCase):

    def register(self, **overrides):
        payload = {'email': 'Ama@Example.com', 'password': PASSWORD, 'name': 'Ama Owusu', 'phone': '024 123 4567'}
        payload.update(overrides)
        return self.client.post(reverse('core:register'), payload, content_type='application/json')

    def test_register_creates_and_logs_in(self):
        response = self.register()

        self.assertEqual(response.status_code, 201)
        data = response.json()
        self.assertEqual(data['user']['email'], 'ama@example.com')
        self.assertEqual(data['user']['phone'], '0241234567')
        self.assertEqual(data['redirect'], '/user/dashboard')
        self.assertTrue(EmailAddress.objects.filter(email='ama@example.com', primary=True).exists())
        self.assertEqual(self.client.get(reverse('core:me')).status_code, 200)

    def test_duplicate_email(self):
        make_user(email='ama@example.com')
        response = self.register()
        self.assertEqual(response.status_code, 409)

    def test_weak_password(self):
        response = self.register(password='password')
        self.assertEqual(response.status_code, 400)
        self.assertFalse(User.objects.exists())

    def test_name_required(self):
        self.assertEqual(self.register(name=' ').status_code, 400)

    def test_invalid_json(self):
        response = self.client.post(reverse('core:register'), 'not json', content_type='application/json')
        self.assertEqual(response.status_code, 400)


class LoginViewTests(TestCase):

    def setUp(self):
        self.user = make_user(email='kofi@example.com', name='Kofi')

    def login(self, password=PASSWORD):
        return self.client.post(reverse('core:login'), {'email': 'KOFI@example.com', 'password': password},
                                content_type='application/json')

    def test_login(self):
        response = self.login()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['user']['id'], self.user.pk)

    def test_wrong_password(self):
        self.assertEqual(self.login(password='WrongPass1').status_code, 401)

    def test_missing_fields(self):
        response = self.client.post(reverse('core:login'), {'email': ''}, content_type='application/json')
        self.assertEqual(response.status_code, 400)

    def test_logout(self):
        self.login()
        self.assertEqual(self.client.post(reverse('core:logout')).json(), {'success': True})
        self.assertEqual(self.client.get(reverse('core:me')).status_code, 401)

    def test_agent_redirect(self):
        agent_user = make_user(email='agent@example.com', role='agent')
        make_agent(agent_user, 'ama')
        response = self.client.post(reverse('core:login'), {'email': 'agent@example.com', 'password': PASSWORD},
                                    content_type='application/json')
        self.assertEqual(response.json()['redirect'], '/agent/dashboard')


class MeViewTests(TestCase):

    def test_includes_storefront(self):
        user = make_user(email='agent@example.com', role='agent')
        make_agent(user, 'ama')
        self.client.force_login(user)

        data = self.client.get(reverse('core:me')).json()

        self.assertEqual(data['user']['role'], 'agent')
        self.assertEqual(data['agent']['storefront_slug'], 'ama')

    def test_anonymous(self):
        self.assertEqual(self.client.get(reverse('core:me')).status_code, 401)
