"""
Test suite for cash box sessions, daily openings and session types.
Run with: python manage.py test cashbox.tests
"""

from decimal import Decimal
from django.test import TestCase, Client
from django.urls import reverse
from unittest.mock import patch, MagicMock
from backend_api import ApiResponse, BackendError


def routed(responses):
    def handler(path, params=None):
        result = responses.get(path, ApiResponse(404, {'message': 'Not found'}))
        if isinstance(result, Exception):
            raise result
        return result
    return handler


class CashboxTestCase(TestCase):

    def setUp(self):
        self.client = Client()
        session = self.client.session
        session['user_id'] = 'u1'
        session['username'] = 'Asha Rao'
        session['role'] = 'admin'
        session.save()

    @patch('cashbox.views.get_backend_client')
    def test_overview_defaults_to_today(self, mock_backend):
        client = MagicMock()
        client.get.side_effect = routed({
            '/cashbox/sessions': ApiResponse(200, {'sessions': [
                {'_id': 's1', 'sessionName': 'Breakfast', 'status': 'closed', 'openingAmount': 1000, 'closingAmount': 1450},
                {'_id': 's2', 'sessionName': 'Lunch', 'status': 'open', 'openingAmount': 500},
            ], 'total': 2}),
            '/cashbox/summary': ApiResponse(200, {'summary': {
                'net': 450, 'sessionCount': 2,
                'sessionBreakdown': [{'sessionName': 'Breakfast', 'totalNet': 450, 'sessionCount': 1, 'sessions': []}],
            }}),
        })
        mock_backend.return_value = client

        response = self.client.get(reverse('cashbox:overview'))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['preset'], 'today')
        self.assertEqual(response.context['open_count'], 1)
        self.assertEqual(response.context['closed_count'], 1)
        self.assertEqual(response.context['sessions'][0]['net'], Decimal('450'))
        self.assertIsNone(response.context['sessions'][1]['net'])
        date_range = response.context['date_range']
        client.get.assert_any_call('/cashbox/summary', {'startDate': date_range['start'], 'endDate': date_range['end']})

    @patch('cashbox.views.get_backend_client')
    def test_inverted_custom_range_reports_error(self, mock_backend):
        client = MagicMock()
        client.get.side_effect = routed({
            '/cashbox/sessions': ApiResponse(200, {'sessions': []}),
            '/cashbox/summary': ApiResponse(200, {'summary': None}),
        })
        mock_backend.return_value = client

        response = self.client.get(reverse('cashbox:overview'), {
            'preset': 'custom', 'startDate': '2024-03-05', 'endDate': '2024-03-01',
        })

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['preset'], 'today')
        messages = list(response.wsgi_request._messages)
        self.assertTrue(any('Start date' in str(m) for m in messages))

    @patch('cashbox.views.get_backend_client')
    def test_session_list_pagination(self, mock_backend):
        client = MagicMock()
        client.get.side_effect = routed({
            '/cashbox/sessions': ApiResponse(200, {'sessions': [
                {'_id': 's3', 'sessionName': 'Dinner', 'status': 'open', 'openingAmount': 200},
            ], 'total': 25}),
            '/cashbox/session-types': ApiResponse(200, {'types': [{'_id': 't1', 'name': 'Dinner'}]}),
        })
        mock_backend.return_value = client

        response = self.client.get(reverse('cashbox:sessions'), {'status': 'open', 'page': '2'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['total_pages'], 3)
        self.assertEqual(response.context['prev_url'], '/admin/cashbox/sessions/?status=open')
        self.assertEqual(response.context['next_url'], '/admin/cashbox/sessions/?status=open&page=3')
        client.get.assert_any_call('/cashbox/sessions', {
            'sessionType': '', 'startDate': '', 'endDate': '', 'status': 'open', 'page': 2, 'limit': 10,
        })

    @patch('cashbox.views.get_backend_client')
    def test_open_session_rejects_negative_amount(self, mock_backend):
        mock_backend.return_value = MagicMock()
        response = self.client.post(reverse('cashbox:open_session'), {'openingAmount': '-5'})

        self.assertRedirects(response, reverse('cashbox:open_session'), fetch_redirect_response=False)
        mock_backend.return_value.post.assert_not_called()
        messages = list(response.wsgi_request._messages)
        self.assertTrue(any('≥ 0' in str(m) for m in messages))

    @patch('cashbox.views.get_backend_client')
    def test_open_session_goes_to_detail(self, mock_backend):
        client = MagicMock()
        client.post.return_value = ApiResponse(201, {'session': {'_id': 's9'}})
        mock_backend.return_value = client

        response = self.client.post(reverse('cashbox:open_session'), {
            'openingAmount': '1500.50', 'date': '2024-01-10', 'sessionTypeId': 't1', 'notes': ' float ',
        })

        self.assertRedirects(response, reverse('cashbox:session_detail', args=['s9']), fetch_redirect_response=False)
        client.post.assert_called_with('/cashbox/sessions', {
            'openingAmount': 1500.5, 'date': '2024-01-10', 'sessionTypeId': 't1', 'notes': 'float',
        })

    @patch('cashbox.views.get_backend_client')
    def test_close_session(self, mock_backend):
        client = MagicMock()
        client.post.return_value = ApiResponse(200, {'session': {'_id': 's1', 'status': 'closed'}})
        mock_backend.return_value = client

        response = self.client.post(reverse('cashbox:close_session', args=['s1']), {'closingAmount': '2000'})

        self.assertRedirects(response, reverse('cashbox:session_detail', args=['s1']), fetch_redirect_response=False)
        client.post.assert_called_with('/cashbox/sessions/s1/close', {'closingAmount': 2000.0})

    @patch('cashbox.views.get_backend_client')
    def test_detail_load_failure_returns_to_list(self, mock_backend):
        client = MagicMock()
        client.get.side_effect = BackendError('Could not reach the backend')
        mock_backend.return_value = client

        response = self.client.get(reverse('cashbox:session_detail', args=['s1']))

        self.assertRedirects(response, reverse('cashbox:sessions'), fetch_redirect_response=False)

    @patch('cashbox.views.get_backend_client')
    def test_delete_returns_to_filtered_list(self, mock_backend):
        client = MagicMock()
        client.delete.return_value = ApiResponse(200, {'message': 'Deleted'})
        mock_backend.return_value = client

        response = self.client.post(reverse('cashbox:delete_session', args=['s1']), {
            'returnUrl': '/admin/cashbox/sessions/?status=closed',
        })

        self.assertRedirects(response, '/admin/cashbox/sessions/?status=closed', fetch_redirect_response=False)
        client.delete.assert_called_with('/cashbox/sessions/s1')

    def test_delete_requires_post(self):
        response = self.client.get(reverse('cashbox:delete_session', args=['s1']))
        self.assertEqual(response.status_code, 405)

    @patch('cashbox.views.get_backend_client')
    def test_daily_sessions_payload(self, mock_backend):
        client = MagicMock()
        client.post.return_value = ApiResponse(201, {'sessions': []})
        mock_backend.return_value = client

        response = self.client.post(reverse('cashbox:daily_sessions'), {
            'date': '2024-01-10',
            'sessionTypeId': ['t1', 't2'],
            'openingAmount': ['1000', ''],
            'notes': ['', 'late start'],
        })

        self.assertRedirects(response, reverse('cashbox:overview'), fetch_redirect_response=False)
        client.post.assert_called_with('/cashbox/daily-sessions', {
            'date': '2024-01-10',
            'sessions': [
                {'sessionTypeId': 't1', 'openingAmount': 1000.0},
                {'sessionTypeId': 't2', 'openingAmount': 0.0, 'notes': 'late start'},
            ],
        })

    @patch('cashbox.views.get_backend_client')
    def test_session_type_create_requires_name(self, mock_backend):
        mock_backend.return_value = MagicMock()
        response = self.client.post(reverse('cashbox:settings'), {'action': 'create', 'name': ' '})

        self.assertRedirects(response, reverse('cashbox:settings'), fetch_redirect_response=False)
        mock_backend.return_value.post.assert_not_called()
