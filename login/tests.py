"""
Test suite for backend sign-in, registration, logout and access control.
Run with: python manage.py test login.tests
"""

from django.http import HttpResponse
from django.test import TestCase, Client, RequestFactory, SimpleTestCase, override_settings
from django.urls import reverse
from unittest.mock import patch, MagicMock
from backend_api import ApiResponse, BackendError
from login.decorators import client_ip, rate_limit


ADMIN_USER = {
    '_id': 'u1',
    'firstName': 'Asha',
    'lastName': 'Rao',
    'email': 'asha@example.com',
    'role': 'admin',
}


class LoginTestCase(TestCase):
    """Test signing in against the backend."""

    def setUp(self):
        self.client = Client()

    def test_login_page_renders(self):
        response = self.client.get(reverse('login:login_page'))
        self.assertEqual(response.status_code, 200)

    @patch('login.views.get_backend_client')
    @patch('login.views.get_anon_client')
    def test_admin_login_stores_session_and_redirects(self, mock_anon, mock_backend):
        anon = MagicMock()
        anon.post.return_value = ApiResponse(200, {'message': 'Login successful'}, cookies={'token': 'tok-123'})
        mock_anon.return_value = anon
        backend = MagicMock()
        backend.get.return_value = ApiResponse(200, ADMIN_USER)
        mock_backend.return_value = backend

        response = self.client.post(reverse('login:login_page'), {
            'email': 'asha@example.com',
            'password': 'secret1',
        }, REMOTE_ADDR='10.0.0.1')

        self.assertRedirects(response, reverse('admin_dashboard'), fetch_redirect_response=False)
        session = self.client.session
        self.assertEqual(session['user_id'], 'u1')
        self.assertEqual(session['backend_token'], 'tok-123')
        self.assertEqual(session['username'], 'Asha Rao')
        self.assertEqual(session['role'], 'admin')
        mock_backend.assert_called_with(token='tok-123')
        backend.get.assert_called_with('/users/me')

    @patch('login.views.get_backend_client')
    @patch('login.views.get_anon_client')
    def test_token_from_body_and_customer_redirect(self, mock_anon, mock_backend):
        anon = MagicMock()
        anon.post.return_value = ApiResponse(200, {'token': 'body-token'})
        mock_anon.return_value = anon
        backend = MagicMock()
        backend.get.return_value = ApiResponse(200, {'user': {**ADMIN_USER, 'role': 'user', 'firstName': '', 'lastName': ''}})
        mock_backend.return_value = backend

        response = self.client.post(reverse('login:login_page'), {
            'email': 'asha@example.com',
            'password': 'secret1',
        }, REMOTE_ADDR='10.0.0.2')

        self.assertRedirects(response, reverse('dashboard'), fetch_redirect_response=False)
        self.assertEqual(self.client.session['backend_token'], 'body-token')
        # Falls back to the email when the profile has no name
        self.assertEqual(self.client.session['username'], 'asha@example.com')

    @patch('login.views.get_anon_client')
    def test_invalid_credentials(self, mock_anon):
        anon = MagicMock()
        anon.post.return_value = ApiResponse(401, {'message': 'Invalid credentials'})
        mock_anon.return_value = anon

        response = self.client.post(reverse('login:login_page'), {
            'email': 'asha@example.com',
            'password': 'wrong',
        }, REMOTE_ADDR='10.0.0.3')

        self.assertEqual(response.status_code, 200)
        self.assertNotIn('user_id', self.client.session)
        messages = list(response.wsgi_request._messages)
        self.assertTrue(any('Invalid credentials' in str(m) for m in messages))

    @patch('login.views.get_anon_client')
    def test_backend_unreachable(self, mock_anon):
        anon = MagicMock()
        anon.post.side_effect = BackendError('Could not reach the backend')
        mock_anon.return_value = anon

        response = self.client.post(reverse('login:login_page'), {
            'email': 'asha@example.com',
            'password': 'secret1',
        }, REMOTE_ADDR='10.0.0.4')

        self.assertEqual(response.status_code, 200)
        messages = list(response.wsgi_request._messages)
        self.assertTrue(any('Login failed' in str(m) for m in messages))

    @patch('login.views.get_anon_client')
    def test_rate_limit_blocks_after_five_attempts(self, mock_anon):
        anon = MagicMock()
        anon.post.return_value = ApiResponse(401, {'message': 'Invalid credentials'})
        mock_anon.return_value = anon

        for _ in range(5):
            response = self.client.post(reverse('login:login_page'), {
                'email': 'asha@example.com',
                'password': 'wrong',
            }, REMOTE_ADDR='10.0.0.99')
            self.assertEqual(response.status_code, 200)

        response = self.client.post(reverse('login:login_page'), {
            'email': 'asha@example.com',
            'password': 'wrong',
        }, REMOTE_ADDR='10.0.0.99')
        self.assertEqual(response.status_code, 302)
        messages = list(response.wsgi_request._messages)
        self.assertTrue(any('Too many attempts' in str(m) for m in messages))
        self.assertEqual(anon.post.call_count, 5)

    @patch('login.views.get_anon_client')
    def test_forwarded_header_does_not_reset_limit(self, mock_anon):
        """A client rotating X-Forwarded-For is still counted by its socket address."""
        anon = MagicMock()
        anon.post.return_value = ApiResponse(401, {'message': 'Invalid credentials'})
        mock_anon.return_value = anon

        for n in range(6):
            response = self.client.post(reverse('login:login_page'), {
                'email': 'asha@example.com',
                'password': 'wrong',
            }, REMOTE_ADDR='10.0.0.98', HTTP_X_FORWARDED_FOR=f'203.0.113.{n}')

        self.assertEqual(response.status_code, 302)
        self.assertEqual(anon.post.call_count, 5)


class RateLimitTestCase(SimpleTestCase):
    """Test the throttling decorator on its own."""

    def setUp(self):
        self.factory = RequestFactory()

    def test_client_ip_ignores_forwarded_by_default(self):
        request = self.factory.post('/', REMOTE_ADDR='10.1.1.1', HTTP_X_FORWARDED_FOR='198.51.100.7')
        self.assertEqual(client_ip(request), '10.1.1.1')

    @override_settings(RATE_LIMIT_TRUST_FORWARDED=True)
    def test_client_ip_behind_trusted_proxy(self):
        request = self.factory.post('/', REMOTE_ADDR='10.1.1.1', HTTP_X_FORWARDED_FOR='198.51.100.7, 10.1.1.1')
        self.assertEqual(client_ip(request), '198.51.100.7')

    @patch('login.decorators.time')
    def test_expired_addresses_are_pruned(self, mock_time):
        view = rate_limit(max_attempts=2, window_seconds=60)(lambda request: HttpResponse('ok'))

        mock_time.return_value = 1000.0
        view(self.factory.post('/', REMOTE_ADDR='10.2.0.1'))
        view(self.factory.post('/', REMOTE_ADDR='10.2.0.2'))
        self.assertEqual(set(view.attempts), {'10.2.0.1', '10.2.0.2'})

        # Both windows have passed; only the new caller is remembered
        mock_time.return_value = 1100.0
        response = view(self.factory.post('/', REMOTE_ADDR='10.2.0.3'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(list(view.attempts), ['10.2.0.3'])

    def test_get_is_not_counted(self):
        view = rate_limit(max_attempts=1)(lambda request: HttpResponse('ok'))
        for _ in range(3):
            self.assertEqual(view(self.factory.get('/', REMOTE_ADDR='10.3.0.1')).status_code, 200)
        self.assertEqual(view.attempts, {})


class RegistrationTestCase(TestCase):
    """Test account creation."""

    def setUp(self):
        self.client = Client()

    @patch('login.views.get_anon_client')
    def test_password_mismatch_never_reaches_backend(self, mock_anon):
        response = self.client.post(reverse('login:register_page'), {
            'first_name': 'Asha',
            'email': 'asha@example.com',
            'password': 'secret1',
            'confirm_password': 'secret2',
        })
        self.assertEqual(response.status_code, 200)
        mock_anon.assert_not_called()

    @patch('login.views.get_anon_client')
    def test_successful_registration(self, mock_anon):
        anon = MagicMock()
        anon.post.return_value = ApiResponse(201, {'message': 'User registered'})
        mock_anon.return_value = anon

        response = self.client.post(reverse('login:register_page'), {
            'first_name': 'Asha',
            'last_name': 'Rao',
            'email': 'asha@example.com',
            'phone': '9999999999',
            'password': 'secret1',
            'confirm_password': 'secret1',
        })

        self.assertRedirects(response, reverse('login:login_page'), fetch_redirect_response=False)
        path, payload = anon.post.call_args[0]
        self.assertEqual(path, '/users/register')
        self.assertEqual(payload['firstName'], 'Asha')
        self.assertEqual(payload['phoneNumber'], '9999999999')

    @patch('login.views.get_anon_client')
    def test_backend_validation_errors_shown(self, mock_anon):
        anon = MagicMock()
        anon.post.return_value = ApiResponse(400, {'errors': [{'msg': 'Email already registered'}]})
        mock_anon.return_value = anon

        response = self.client.post(reverse('login:register_page'), {
            'first_name': 'Asha',
            'email': 'asha@example.com',
            'password': 'secret1',
            'confirm_password': 'secret1',
        })

        self.assertEqual(response.status_code, 200)
        messages = list(response.wsgi_request._messages)
        self.assertTrue(any('Email already registered' in str(m) for m in messages))


class SessionAccessTestCase(TestCase):
    """Test logout, profile and role-based access."""

    def setUp(self):
        self.client = Client()
        session = self.client.session
        session['user_id'] = 'u2'
        session['username'] = 'Ravi'
        session['email'] = 'ravi@example.com'
        session['first_name'] = 'Ravi'
        session['role'] = 'employee'
        session['backend_token'] = 'tok'
        session.save()

    def test_signed_in_user_skips_login_page(self):
        response = self.client.get('/login/')
        self.assertRedirects(response, reverse('dashboard'), fetch_redirect_response=False)

    @patch('login.views.get_backend_client')
    def test_logout_flushes_session(self, mock_backend):
        mock_backend.return_value = MagicMock()
        response = self.client.get(reverse('login:logout'))
        self.assertRedirects(response, reverse('login:login_page'), fetch_redirect_response=False)
        self.assertNotIn('user_id', self.client.session)
        mock_backend.return_value.post.assert_called_with('/users/logout')

    def test_employee_cannot_open_admin_pages(self):
        response = self.client.get(reverse('expenses:overview'))
        self.assertRedirects(response, reverse('dashboard'), fetch_redirect_response=False)
        messages = list(response.wsgi_request._messages)
        self.assertTrue(any("don't have permission" in str(m) for m in messages))

    def test_anonymous_user_redirected_to_login(self):
        response = Client().get(reverse('shop:cart'))
        self.assertRedirects(response, reverse('login:login_page'), fetch_redirect_response=False)

    @patch('login.views.get_backend_client')
    def test_profile_update(self, mock_backend):
        backend = MagicMock()
        backend.put.return_value = ApiResponse(200, {'_id': 'u2'})
        mock_backend.return_value = backend

        response = self.client.post(reverse('login:profile'), {
            'first_name': 'Ravi',
            'last_name': 'Kumar',
        })

        self.assertRedirects(response, reverse('login:profile'), fetch_redirect_response=False)
        backend.put.assert_called_with('/users/u2', {'firstName': 'Ravi', 'lastName': 'Kumar'})
        self.assertEqual(self.client.session['username'], 'Ravi Kumar')
