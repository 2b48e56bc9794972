"""
Test suite for the product catalogue and the admin snapshot.
Run with: python manage.py test dashboard.tests
"""

from decimal import Decimal
from django.test import TestCase, Client
from django.urls import reverse
from unittest.mock import patch, MagicMock
from backend_api import ApiResponse, BackendError


def routed(responses):
    """GET side effect answering by path; a BackendError value is raised."""
    def handler(path, params=None):
        result = responses.get(path, ApiResponse(404, {'message': 'Not found'}))
        if isinstance(result, Exception):
            raise result
        return result
    return handler


class CatalogueTestCase(TestCase):

    def setUp(self):
        self.client = Client()
        session = self.client.session
        session['user_id'] = 'u3'
        session['username'] = 'Guest'
        session['role'] = 'user'
        session.save()

    @patch('dashboard.views.get_backend_client')
    def test_filters_inactive_category_and_search(self, mock_backend):
        client = MagicMock()
        client.get.side_effect = routed({
            '/products': ApiResponse(200, [
                {'_id': 'p1', 'name': 'Masala Dosa', 'price': 80, 'category': {'_id': 'c1', 'name': 'Tiffin'}},
                {'_id': 'p2', 'name': 'Plain Dosa', 'price': 60, 'category': 'c1', 'isActive': False},
                {'_id': 'p3', 'name': 'Veg Biryani', 'price': 180, 'category': 'c2'},
            ]),
            '/categories': ApiResponse(200, [{'_id': 'c1', 'name': 'Tiffin'}, {'_id': 'c2', 'name': 'Rice'}]),
        })
        mock_backend.return_value = client

        response = self.client.get(reverse('dashboard'), {'category': 'c1', 'search': 'dosa'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual([p['_id'] for p in response.context['products']], ['p1'])
        self.assertEqual(response.context['state'], {'category': 'c1', 'search': 'dosa'})

    @patch('dashboard.views.get_backend_client')
    def test_failed_products_show_error(self, mock_backend):
        client = MagicMock()
        client.get.side_effect = routed({
            '/products': ApiResponse(500, {'message': 'boom'}),
            '/categories': ApiResponse(200, []),
        })
        mock_backend.return_value = client

        response = self.client.get(reverse('dashboard'))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['products'], [])
        messages = list(response.wsgi_request._messages)
        self.assertTrue(any('Failed to load products' in str(m) for m in messages))

    def test_customer_cannot_open_admin_dashboard(self):
        response = self.client.get(reverse('admin_dashboard'))
        self.assertRedirects(response, reverse('dashboard'), fetch_redirect_response=False)


class AdminDashboardTestCase(TestCase):

    def setUp(self):
        self.client = Client()
        session = self.client.session
        session['user_id'] = 'u1'
        session['username'] = 'Asha Rao'
        session['role'] = 'admin'
        session.save()

    @patch('dashboard.views.get_backend_client')
    def test_snapshot_with_one_failed_slice(self, mock_backend):
        client = MagicMock()
        client.get.side_effect = routed({
            '/cashbox/summary': ApiResponse(200, {'summary': {'net': 1500, 'sessionCount': 2, 'sessionBreakdown': []}}),
            '/expenses': ApiResponse(200, {'expenses': [{'amount': 100}, {'amount': 250.5}], 'pagination': {'total': 2}}),
            '/tasks/stats': BackendError('Could not reach the backend'),
            '/raw-materials/low-stock': ApiResponse(200, {'rawMaterials': [
                {'_id': 'r1', 'name': 'Rice', 'currentStock': 2, 'minimumStock': 10, 'unit': 'kg'},
            ]}),
        })
        mock_backend.return_value = client

        response = self.client.get(reverse('admin_dashboard'))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['cash_summary']['net'], 1500)
        self.assertEqual(response.context['expense_total'], Decimal('350.5'))
        self.assertEqual(response.context['expense_count'], 2)
        self.assertIsNone(response.context['task_overview'])
        self.assertEqual(response.context['failed'], ['tasks'])
        self.assertEqual(len(response.context['low_stock']), 1)
        self.assertContains(response, 'Unavailable')
