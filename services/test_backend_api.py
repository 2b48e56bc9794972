"""
Test suite for the backend REST client and the fan-out helper.
Run with: python manage.py test services.test_backend_api
"""

import time
from django.test import SimpleTestCase, override_settings
from unittest.mock import patch, MagicMock
import requests
from backend_api import (
    ApiResponse,
    BackendClient,
    BackendError,
    extract_error_message,
    fetch_all,
    get_backend_client,
    payload_list,
)


def fake_response(status_code=200, body=None, text='', json_error=False):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.cookies.get_dict.return_value = {}
    if json_error:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        response.json.return_value = body
    return response


class ErrorMessageTestCase(SimpleTestCase):
    """Test extraction of a readable message from error bodies."""

    def test_key_order(self):
        self.assertEqual(extract_error_message({'error': 'Bad', 'message': 'Nope'}), 'Nope')
        self.assertEqual(extract_error_message({'detail': 'Gone', 'error': 'Bad'}), 'Bad')
        self.assertEqual(extract_error_message({'detail': ' Gone '}), 'Gone')

    def test_nested_message(self):
        self.assertEqual(extract_error_message({'error': {'message': 'Coupon expired'}}), 'Coupon expired')

    def test_plain_text_and_default(self):
        self.assertEqual(extract_error_message('Bad Gateway'), 'Bad Gateway')
        self.assertEqual(extract_error_message({'message': '  '}, 'Failed'), 'Failed')
        self.assertEqual(extract_error_message(None, 'Failed'), 'Failed')


class ApiResponseTestCase(SimpleTestCase):

    def test_non_json_body(self):
        response = ApiResponse.from_requests(fake_response(502, text='<html>Bad Gateway</html>', json_error=True))
        self.assertFalse(response.ok)
        self.assertEqual(response.json(), {})
        self.assertEqual(response.error_message(), '<html>Bad Gateway</html>')

    def test_payload_list(self):
        self.assertEqual(payload_list(ApiResponse(200, [{'_id': 'a'}]), 'items'), [{'_id': 'a'}])
        self.assertEqual(payload_list(ApiResponse(200, {'items': [1, 2]}), 'items'), [1, 2])
        self.assertEqual(payload_list(ApiResponse(200, {'data': {'items': [3]}}), 'items'), [3])
        self.assertEqual(payload_list(ApiResponse(200, {'items': 'oops'}), 'items'), [])
        self.assertEqual(payload_list(ApiResponse(500, [{'_id': 'a'}]), 'items'), [])
        self.assertEqual(payload_list(None, 'items'), [])


@override_settings(BACKEND_API_URL='http://backend.test/api/', BACKEND_API_TIMEOUT=5)
class BackendClientTestCase(SimpleTestCase):

    @patch('backend_api.requests.request')
    def test_get_drops_empty_params(self, mock_request):
        mock_request.return_value = fake_response(200, {'expenses': []})
        client = BackendClient('http://backend.test/api/', token='tok')

        response = client.get('expenses', {'category': '', 'paymentType': 'cash', 'paidBy': None})

        self.assertTrue(response.ok)
        args, kwargs = mock_request.call_args
        self.assertEqual(args, ('GET', 'http://backend.test/api/expenses'))
        self.assertEqual(kwargs['params'], {'paymentType': 'cash'})
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer tok')
        self.assertEqual(kwargs['cookies'], {'token': 'tok'})
        self.assertEqual(kwargs['timeout'], 5)

    @patch('backend_api.requests.request')
    def test_all_empty_params_sent_as_none(self, mock_request):
        mock_request.return_value = fake_response(200, [])
        BackendClient('http://backend.test/api').get('/tasks', {'status': ''})
        self.assertIsNone(mock_request.call_args[1]['params'])

    @patch('backend_api.requests.request')
    def test_post_sends_json(self, mock_request):
        mock_request.return_value = fake_response(201, {'_id': 'x'})
        BackendClient('http://backend.test/api').post('/coupons', {'code': 'SAVE10'})
        args, kwargs = mock_request.call_args
        self.assertEqual(args[0], 'POST')
        self.assertEqual(kwargs['json'], {'code': 'SAVE10'})
        self.assertNotIn('Authorization', kwargs['headers'])

    @patch('backend_api.requests.request')
    def test_upload_sends_multipart(self, mock_request):
        mock_request.return_value = fake_response(200, {'imageUrl': 'http://cdn.test/a.png'})
        image = ('a.png', b'\x89PNG', 'image/png')

        response = BackendClient('http://backend.test/api', token='tok').upload('/upload/image', {'image': image})

        self.assertEqual(response.json()['imageUrl'], 'http://cdn.test/a.png')
        args, kwargs = mock_request.call_args
        self.assertEqual(args, ('POST', 'http://backend.test/api/upload/image'))
        self.assertEqual(kwargs['files'], {'image': image})
        self.assertIsNone(kwargs['json'])
        self.assertNotIn('Content-Type', kwargs['headers'])
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer tok')

    @patch('backend_api.requests.request')
    def test_connection_error_becomes_backend_error(self, mock_request):
        mock_request.side_effect = requests.ConnectionError("refused")
        with self.assertRaises(BackendError):
            BackendClient('http://backend.test/api').get('/products')

    def test_session_token_used(self):
        request = MagicMock()
        request.session = {'backend_token': 'abc'}
        client = get_backend_client(request)
        self.assertEqual(client.token, 'abc')
        self.assertEqual(client.base_url, 'http://backend.test/api')


class FetchAllTestCase(SimpleTestCase):
    """Test the all-of fan-out."""

    def test_failed_calls_leave_none(self):
        def broken():
            raise KeyError('x')

        def unreachable():
            raise BackendError("down")

        results = fetch_all({
            'ok': lambda: ApiResponse(200, {}),
            'broken': broken,
            'down': unreachable,
        })

        self.assertEqual(list(results), ['ok', 'broken', 'down'])
        self.assertTrue(results['ok'].ok)
        self.assertIsNone(results['broken'])
        self.assertIsNone(results['down'])

    @override_settings(BACKEND_FANOUT_TIMEOUT=0.2)
    def test_late_result_dropped(self):
        def slow():
            time.sleep(1)
            return ApiResponse(200, {'late': True})

        started = time.monotonic()
        results = fetch_all({'fast': lambda: ApiResponse(200, {}), 'slow': slow})

        self.assertLess(time.monotonic() - started, 0.9)
        self.assertIsNotNone(results['fast'])
        self.assertIsNone(results['slow'])

    def test_empty(self):
        self.assertEqual(fetch_all({}), {})
