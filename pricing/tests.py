"""
Test suite for coupon / discount management and store pricing settings.
Run with: python manage.py test pricing.tests
"""

from datetime import date
from django.test import TestCase, Client, SimpleTestCase
from django.urls import reverse
from unittest.mock import patch, MagicMock
from backend_api import ApiResponse
from pricing.forms import CouponForm, DiscountForm
from pricing.views import promotion_status


def coupon_data(**overrides):
    data = {
        'code': 'save10',
        'name': 'Save 10',
        'description': '',
        'discount_type': 'percentage',
        'discount_value': '10',
        'minimum_order_amount': '200',
        'maximum_discount': '50',
        'valid_from': '2024-01-01',
        'valid_until': '2024-01-31',
        'usage_limit': '100',
        'is_active': 'on',
    }
    data.update(overrides)
    return data


class PromotionFormTestCase(SimpleTestCase):
    """Test coupon and discount form validation."""

    def test_coupon_code_uppercased(self):
        form = CouponForm(coupon_data())
        self.assertTrue(form.is_valid(), form.errors)
        payload = form.to_payload()
        self.assertEqual(payload['code'], 'SAVE10')
        self.assertEqual(payload['discountValue'], 10.0)
        self.assertEqual(payload['validUntil'], '2024-01-31')
        self.assertTrue(payload['isActive'])

    def test_coupon_code_must_be_alphanumeric(self):
        form = CouponForm(coupon_data(code='SAVE-10'))
        self.assertFalse(form.is_valid())
        self.assertIn('code', form.errors)

    def test_percentage_over_100_rejected(self):
        form = CouponForm(coupon_data(discount_value='150'))
        self.assertFalse(form.is_valid())
        self.assertIn('discount_value', form.errors)

    def test_fixed_amount_may_exceed_100(self):
        form = CouponForm(coupon_data(discount_type='fixed', discount_value='150'))
        self.assertTrue(form.is_valid(), form.errors)

    def test_valid_until_before_valid_from_rejected(self):
        form = CouponForm(coupon_data(valid_from='2024-02-01', valid_until='2024-01-01'))
        self.assertFalse(form.is_valid())
        self.assertIn('valid_until', form.errors)

    def test_buy_x_get_y_conditions(self):
        data = coupon_data(discount_type='buy_x_get_y', buy_quantity='2', get_quantity='1')
        form = DiscountForm(data)
        self.assertTrue(form.is_valid(), form.errors)
        payload = form.to_payload()
        self.assertEqual(payload['type'], 'buy_x_get_y')
        self.assertEqual(payload['conditions'], {'buyQuantity': 2, 'getQuantity': 1})

    def test_bulk_requires_threshold(self):
        form = DiscountForm(coupon_data(discount_type='bulk', bulk_discount='5'))
        self.assertFalse(form.is_valid())
        self.assertIn('bulk_threshold', form.errors)

    def test_initial_from_record(self):
        initial = CouponForm.initial_from({
            'code': 'WELCOME', 'discountType': 'fixed', 'discountValue': 50,
            'validFrom': '2024-01-01T00:00:00.000Z', 'validUntil': '2024-03-01T00:00:00.000Z',
        })
        self.assertEqual(initial['valid_from'], '2024-01-01')
        self.assertEqual(initial['discount_type'], 'fixed')


class PromotionStatusTestCase(SimpleTestCase):

    def test_statuses(self):
        today = date(2024, 1, 15)
        base = {'isActive': True, 'validFrom': '2024-01-01', 'validUntil': '2024-01-31'}
        self.assertEqual(promotion_status({**base, 'isActive': False}, today), 'Inactive')
        self.assertEqual(promotion_status({**base, 'validFrom': '2024-01-20'}, today), 'Upcoming')
        self.assertEqual(promotion_status({**base, 'validUntil': '2024-01-10'}, today), 'Expired')
        self.assertEqual(promotion_status({**base, 'usageLimit': 5, 'usedCount': 5}, today), 'Limit Reached')
        self.assertEqual(promotion_status({**base, 'usageLimit': 0, 'usedCount': 50}, today), 'Active')


class PricingViewsTestCase(TestCase):

    def setUp(self):
        self.client = Client()
        session = self.client.session
        session['user_id'] = 'u1'
        session['username'] = 'Asha Rao'
        session['role'] = 'admin'
        session.save()

    @patch('pricing.views.get_backend_client')
    def test_coupon_list(self, mock_backend):
        client = MagicMock()
        client.get.return_value = ApiResponse(200, [
            {'_id': 'k1', 'code': 'SAVE10', 'name': 'Save 10', 'isActive': True},
        ])
        mock_backend.return_value = client

        response = self.client.get(reverse('pricing:coupons'))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['coupons'][0]['status'], 'Active')
        client.get.assert_called_with('/coupons')

    @patch('pricing.views.get_backend_client')
    def test_create_coupon(self, mock_backend):
        client = MagicMock()
        client.post.return_value = ApiResponse(201, {'_id': 'k2'})
        mock_backend.return_value = client

        response = self.client.post(reverse('pricing:coupon_create'), coupon_data())

        self.assertRedirects(response, reverse('pricing:coupons'), fetch_redirect_response=False)
        path, payload = client.post.call_args[0]
        self.assertEqual(path, '/coupons')
        self.assertEqual(payload['code'], 'SAVE10')

    @patch('pricing.views.get_backend_client')
    def test_invalid_coupon_not_sent(self, mock_backend):
        client = MagicMock()
        mock_backend.return_value = client

        response = self.client.post(reverse('pricing:coupon_create'), coupon_data(code='bad code!'))

        self.assertEqual(response.status_code, 200)
        client.post.assert_not_called()

    @patch('pricing.views.get_backend_client')
    def test_edit_unknown_discount_redirects(self, mock_backend):
        client = MagicMock()
        client.get.return_value = ApiResponse(200, [])
        mock_backend.return_value = client

        response = self.client.get(reverse('pricing:discount_edit', args=['missing']))

        self.assertRedirects(response, reverse('pricing:discounts'), fetch_redirect_response=False)

    @patch('pricing.views.get_backend_client')
    def test_toggle_discount(self, mock_backend):
        client = MagicMock()
        client.put.return_value = ApiResponse(200, {'_id': 'd1', 'isActive': True})
        mock_backend.return_value = client

        response = self.client.post(reverse('pricing:discount_toggle', args=['d1']), {'isActive': 'false'})

        self.assertRedirects(response, reverse('pricing:discounts'), fetch_redirect_response=False)
        client.put.assert_called_with('/discounts/d1', {'isActive': True})

    @patch('pricing.views.get_backend_client')
    def test_save_settings(self, mock_backend):
        client = MagicMock()
        client.get.return_value = ApiResponse(200, [
            {'key': 'tax_rate', 'value': 0.05, 'description': 'GST', 'category': 'pricing', 'isActive': True},
            {'key': 'store_name', 'value': 'Potlam', 'description': 'Name', 'category': 'general', 'isActive': True},
        ])
        client.put.return_value = ApiResponse(200, {'message': 'Saved'})
        mock_backend.return_value = client

        response = self.client.post(reverse('pricing:settings'), {
            'setting__tax_rate': '0.18',
            'setting__store_name': ' Potlam Kitchen ',
        })

        self.assertRedirects(response, reverse('pricing:settings'), fetch_redirect_response=False)
        path, payload = client.put.call_args[0]
        self.assertEqual(path, '/settings/multiple')
        values = {s['key']: s['value'] for s in payload['settings']}
        self.assertEqual(values, {'tax_rate': 0.18, 'store_name': 'Potlam Kitchen'})

    @patch('pricing.views.get_backend_client')
    def test_tax_rate_above_one_rejected(self, mock_backend):
        client = MagicMock()
        client.get.return_value = ApiResponse(200, [
            {'key': 'tax_rate', 'value': 0.05, 'category': 'pricing'},
        ])
        mock_backend.return_value = client

        response = self.client.post(reverse('pricing:settings'), {'setting__tax_rate': '18'})

        self.assertRedirects(response, reverse('pricing:settings'), fetch_redirect_response=False)
        client.put.assert_not_called()
        messages = list(response.wsgi_request._messages)
        self.assertTrue(any('cannot exceed 1' in str(m) for m in messages))

    def test_employee_redirected_to_dashboard(self):
        session = self.client.session
        session['role'] = 'employee'
        session.save()

        response = self.client.get(reverse('pricing:coupons'))

        self.assertRedirects(response, reverse('dashboard'), fetch_redirect_response=False)
