"""
Test suite for expense validation, CRUD operations and the summary pages.
Run with: python manage.py test expenses.tests
"""

from decimal import Decimal
from io import StringIO
from django.test import TestCase, Client
from django.urls import reverse
from django.contrib.messages import get_messages
from django.core.management import call_command
from django.core.management.base import CommandError
from unittest.mock import patch, MagicMock
from backend_api import ApiResponse
from expenses.views import validate_expense


CATEGORIES = [
    {'_id': 'c1', 'name': 'Groceries', 'isActive': True},
    {'_id': 'c2', 'name': 'Utilities', 'isActive': True},
]

USERS = [
    {'_id': 'u1', 'firstName': 'Asha', 'lastName': 'Rao'},
    {'_id': 'u2', 'firstName': 'Ravi', 'lastName': 'Kumar'},
]


def routed(responses):
    def handler(path, params=None):
        return responses.get(path, ApiResponse(404, {'message': 'Not found'}))
    return handler


def valid_expense(**overrides):
    data = {
        'amount': '50.75',
        'paymentType': 'cash',
        'category': 'c1',
        'paidBy': 'u1',
        'date': '2025-10-15',
        'description': 'Vegetables for lunch',
    }
    data.update(overrides)
    return data


class ExpenseValidationTestCase(TestCase):
    """Test expense form validation."""

    def setUp(self):
        """Set up test client and mock admin session."""
        self.client = Client()
        session = self.client.session
        session['user_id'] = 'u1'
        session['username'] = 'Asha Rao'
        session['email'] = 'asha@example.com'
        session['role'] = 'admin'
        session.save()

    @patch('expenses.views.get_backend_client')
    def test_valid_expense_submission(self, mock_backend):
        """Test that valid expense data is sent to the backend."""
        mock_client = MagicMock()
        mock_client.post.return_value = ApiResponse(201, {'expense': {'_id': 'e1'}})
        mock_backend.return_value = mock_client

        response = self.client.post(reverse('expenses:create'), valid_expense())

        self.assertEqual(response.status_code, 302)
        self.assertRedirects(response, reverse('expenses:overview'), fetch_redirect_response=False)
        mock_client.post.assert_called_with('/expenses', {
            'amount': 50.75,
            'paymentType': 'cash',
            'category': 'c1',
            'paidBy': 'u1',
            'date': '2025-10-15',
            'description': 'Vegetables for lunch',
        })

    def test_negative_amount_rejected(self):
        """Test that negative amounts are rejected."""
        response = self.client.post(reverse('expenses:create'), valid_expense(amount='-50'))

        self.assertEqual(response.status_code, 302)
        messages = list(response.wsgi_request._messages)
        self.assertTrue(any('greater than zero' in str(m) for m in messages))

    def test_zero_amount_rejected(self):
        """Test that zero amount is rejected."""
        response = self.client.post(reverse('expenses:create'), valid_expense(amount='0'))

        self.assertEqual(response.status_code, 302)
        messages = list(response.wsgi_request._messages)
        self.assertTrue(any('greater than zero' in str(m) for m in messages))

    def test_invalid_amount_format_rejected(self):
        """Test that non-numeric amounts are rejected."""
        response = self.client.post(reverse('expenses:create'), valid_expense(amount='abc'))

        self.assertEqual(response.status_code, 302)
        messages = list(response.wsgi_request._messages)
        self.assertTrue(any('valid number' in str(m) for m in messages))

    def test_amount_too_large_rejected(self):
        """Test that amounts exceeding maximum are rejected."""
        response = self.client.post(reverse('expenses:create'), valid_expense(amount='9999999999'))

        self.assertEqual(response.status_code, 302)
        messages = list(response.wsgi_request._messages)
        self.assertTrue(any('too large' in str(m) for m in messages))

    def test_invalid_payment_type_rejected(self):
        """Test that unknown payment types are rejected."""
        response = self.client.post(reverse('expenses:create'), valid_expense(paymentType='cheque'))

        self.assertEqual(response.status_code, 302)
        messages = list(response.wsgi_request._messages)
        self.assertTrue(any('Invalid payment type' in str(m) for m in messages))

    def test_missing_required_fields(self):
        """Test that missing required fields are rejected."""
        data = valid_expense()
        del data['amount']
        response = self.client.post(reverse('expenses:create'), data)

        self.assertEqual(response.status_code, 302)
        messages = list(response.wsgi_request._messages)
        self.assertTrue(any('required' in str(m) for m in messages))

    def test_invalid_date_format_rejected(self):
        """Test that invalid date formats are rejected."""
        response = self.client.post(reverse('expenses:create'), valid_expense(date='15-10-2025'))

        self.assertEqual(response.status_code, 302)
        messages = list(response.wsgi_request._messages)
        self.assertTrue(any('Invalid date' in str(m) for m in messages))

    def test_validate_expense_directly(self):
        """Test the validator returns a JSON-ready payload."""
        payload, error = validate_expense(valid_expense(amount=' 10 ', description='  '))
        self.assertIsNone(error)
        self.assertEqual(payload['amount'], 10.0)
        self.assertEqual(payload['description'], '')

        payload, error = validate_expense(valid_expense(amount='NaN'))
        self.assertIsNone(payload)
        self.assertIn('valid number', error)

    def test_unauthenticated_user_redirected(self):
        """Test that unauthenticated users are redirected to login."""
        response = Client().get(reverse('expenses:overview'))

        self.assertEqual(response.status_code, 302)
        self.assertTrue(response.url.startswith('/login/'))

    @patch('expenses.views.get_backend_client')
    def test_backend_rejection_shown(self, mock_backend):
        """Test that backend validation errors reach the user."""
        mock_client = MagicMock()
        mock_client.post.return_value = ApiResponse(400, {'message': 'Category is inactive'})
        mock_backend.return_value = mock_client

        response = self.client.post(reverse('expenses:create'), valid_expense())

        self.assertRedirects(response, reverse('expenses:create'), fetch_redirect_response=False)
        messages = list(get_messages(response.wsgi_request))
        self.assertTrue(any('Category is inactive' in str(m) for m in messages))


class ExpenseFetchTestCase(TestCase):
    """Test expense fetching and display."""

    def setUp(self):
        """Set up test client and mock admin session."""
        self.client = Client()
        session = self.client.session
        session['user_id'] = 'u1'
        session['username'] = 'Asha Rao'
        session['email'] = 'asha@example.com'
        session['role'] = 'admin'
        session.save()

    @patch('expenses.views.get_backend_client')
    def test_overview_summary(self, mock_backend):
        """Test that the overview aggregates expenses for the range."""
        mock_client = MagicMock()
        mock_client.get.side_effect = routed({
            '/expenses': ApiResponse(200, {'expenses': [
                {'_id': 'e1', 'amount': 300, 'paymentType': 'cash', 'category': 'c1', 'paidBy': 'u1', 'date': '2024-01-09'},
                {'_id': 'e2', 'amount': 100, 'paymentType': 'online', 'category': 'c2', 'paidBy': 'u2', 'date': '2024-01-10'},
                {'_id': 'e3', 'amount': 100, 'paymentType': 'cash', 'category': 'gone', 'paidBy': 'u1', 'date': '2024-01-08'},
            ], 'pagination': {'total': 3, 'pages': 1}}),
            '/expense-categories': ApiResponse(200, {'categories': CATEGORIES}),
            '/users': ApiResponse(200, {'users': USERS}),
        })
        mock_backend.return_value = mock_client

        response = self.client.get(reverse('expenses:overview'), {
            'preset': 'custom', 'startDate': '2024-01-08', 'endDate': '2024-01-14',
        })

        self.assertEqual(response.status_code, 200)
        summary = response.context['summary']
        self.assertEqual(summary['total'], Decimal('500'))
        self.assertEqual(summary['by_type'][0], {'name': 'cash', 'value': Decimal('400'), 'percentage': '80.0'})
        self.assertIn('Unknown', [row['name'] for row in summary['by_category']])
        recent = response.context['recent_expenses']
        self.assertEqual([e['_id'] for e in recent], ['e2', 'e1', 'e3'])
        self.assertEqual(recent[0]['category_name'], 'Utilities')
        self.assertEqual(recent[0]['paid_by_name'], 'Ravi Kumar')

    @patch('expenses.views.get_backend_client')
    def test_overview_survives_failed_lookups(self, mock_backend):
        """Test that failed lookups render as Unknown instead of erroring."""
        mock_client = MagicMock()
        mock_client.get.side_effect = routed({
            '/expenses': ApiResponse(200, {'expenses': [
                {'_id': 'e1', 'amount': 40, 'paymentType': 'cash', 'category': 'c1', 'paidBy': 'u1', 'date': '2024-01-09'},
            ]}),
        })
        mock_backend.return_value = mock_client

        response = self.client.get(reverse('expenses:overview'))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['summary']['by_category'][0]['name'], 'Unknown')

    @patch('expenses.views.get_backend_client')
    def test_expense_list_keeps_filters(self, mock_backend):
        """Test that list filters go to the backend and into the page links."""
        mock_client = MagicMock()
        mock_client.get.side_effect = routed({
            '/expenses': ApiResponse(200, {'expenses': [], 'pagination': {'total': 45, 'pages': 3}}),
            '/expense-categories': ApiResponse(200, {'categories': CATEGORIES}),
            '/users': ApiResponse(200, {'users': USERS}),
        })
        mock_backend.return_value = mock_client

        response = self.client.get(reverse('expenses:list'), {'paymentType': 'cash', 'page': '2'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['total'], 45)
        self.assertEqual(response.context['next_url'], '/admin/expenses/list/?paymentType=cash&page=3')
        self.assertEqual(response.context['prev_url'], '/admin/expenses/list/?paymentType=cash')
        params = [c for c in mock_client.get.call_args_list if c[0][0] == '/expenses'][0][0][1]
        self.assertEqual(params['paymentType'], 'cash')
        self.assertEqual(params['page'], 2)

    @patch('expenses.views.get_backend_client')
    def test_expense_list_accepts_bare_list(self, mock_backend):
        """Test that a list body without pagination renders as a single page."""
        mock_client = MagicMock()
        mock_client.get.side_effect = routed({
            '/expenses': ApiResponse(200, [
                {'_id': 'e1', 'amount': 40, 'paymentType': 'cash', 'category': 'c1', 'paidBy': 'u1', 'date': '2024-01-09'},
            ]),
            '/expense-categories': ApiResponse(200, {'categories': CATEGORIES}),
            '/users': ApiResponse(200, {'users': USERS}),
        })
        mock_backend.return_value = mock_client

        response = self.client.get(reverse('expenses:list'))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['total'], 1)
        self.assertEqual(response.context['total_pages'], 1)
        self.assertIsNone(response.context['next_url'])
        self.assertEqual(response.context['expenses'][0]['category_name'], 'Groceries')

    @patch('expenses.views.get_backend_client')
    def test_edit_expense_get(self, mock_backend):
        """Test fetching expense data for editing (GET request)."""
        mock_client = MagicMock()
        mock_client.get.side_effect = routed({
            '/expenses/e1': ApiResponse(200, {'expense': {
                '_id': 'e1', 'amount': 500, 'paymentType': 'online',
                'category': {'_id': 'c2', 'name': 'Utilities'},
                'paidBy': {'_id': 'u2', 'firstName': 'Ravi'},
                'date': '2024-01-15T00:00:00.000Z',
            }}),
            '/expense-categories': ApiResponse(200, {'categories': CATEGORIES}),
            '/users': ApiResponse(200, {'users': USERS}),
        })
        mock_backend.return_value = mock_client

        response = self.client.get(reverse('expenses:edit', args=['e1']))

        self.assertEqual(response.status_code, 200)
        expense = response.context['expense']
        self.assertEqual(expense['date'], '2024-01-15')
        self.assertEqual(expense['category'], 'c2')
        self.assertEqual(expense['paidBy'], 'u2')

    @patch('expenses.views.get_backend_client')
    def test_edit_expense_post_valid(self, mock_backend):
        """Test updating an expense with valid data."""
        mock_client = MagicMock()
        mock_client.put.return_value = ApiResponse(200, {'expense': {'_id': 'e1'}})
        mock_backend.return_value = mock_client

        response = self.client.post(reverse('expenses:edit', args=['e1']), valid_expense(
            amount='750.50', returnUrl='/admin/expenses/list/?page=2',
        ))

        self.assertRedirects(response, '/admin/expenses/list/?page=2', fetch_redirect_response=False)
        messages = list(get_messages(response.wsgi_request))
        self.assertTrue(any('updated successfully' in str(m) for m in messages))
        self.assertEqual(mock_client.put.call_args[0][0], '/expenses/e1')

    @patch('expenses.views.get_backend_client')
    def test_delete_expense(self, mock_backend):
        """Test deleting an expense."""
        mock_client = MagicMock()
        mock_client.delete.return_value = ApiResponse(200, {'message': 'Expense deleted'})
        mock_backend.return_value = mock_client

        response = self.client.post(reverse('expenses:delete', args=['e1']), {
            'returnUrl': 'https://evil.example.com/',
        })

        self.assertRedirects(response, reverse('expenses:list'), fetch_redirect_response=False)
        mock_client.delete.assert_called_with('/expenses/e1')

    @patch('expenses.views.get_backend_client')
    def test_category_toggle(self, mock_backend):
        """Test that toggling flips the posted active flag."""
        mock_client = MagicMock()
        mock_client.put.return_value = ApiResponse(200, {'category': {'_id': 'c1'}})
        mock_backend.return_value = mock_client

        response = self.client.post(reverse('expenses:categories'), {
            'action': 'toggle', 'category_id': 'c1', 'isActive': 'true',
        })

        self.assertRedirects(response, reverse('expenses:categories'), fetch_redirect_response=False)
        mock_client.put.assert_called_with('/expense-categories/c1', {'isActive': False})


class ExpenseReportCommandTestCase(TestCase):
    """Test the expense_report management command."""

    @patch('expenses.management.commands.expense_report.get_backend_client')
    def test_report_tables(self, mock_backend):
        mock_client = MagicMock()
        mock_client.get.side_effect = routed({
            '/expenses': ApiResponse(200, {'expenses': [
                {'amount': 120, 'paymentType': 'cash', 'category': 'c1', 'paidBy': 'u1'},
            ]}),
            '/expense-categories': ApiResponse(200, {'categories': CATEGORIES}),
            '/users': ApiResponse(200, {'users': USERS}),
        })
        mock_backend.return_value = mock_client

        out = StringIO()
        call_command('expense_report', '--start', '2024-01-01', '--end', '2024-01-31', '--token', 't', stdout=out)

        output = out.getvalue()
        self.assertIn('Groceries', output)
        self.assertIn('Asha Rao', output)
        self.assertIn('Total: 120.00', output)

    def test_inverted_range_is_an_error(self):
        with self.assertRaises(CommandError):
            call_command('expense_report', '--start', '2024-02-01', '--end', '2024-01-01', stdout=StringIO())
