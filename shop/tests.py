"""
Test suite for the cart, coupon application, checkout and orders.
Run with: python manage.py test shop.tests
"""

from decimal import Decimal
from django.test import TestCase, Client, SimpleTestCase
from django.urls import reverse
from unittest.mock import patch, MagicMock
from backend_api import ApiResponse, BackendError
from shop.cart import CART_SESSION_KEY, COUPON_SESSION_KEY, PRICING_SIGNATURE_KEY, Cart, OrderDraft


DOSA = {'_id': 'p1', 'name': 'Masala Dosa', 'price': 80, 'imageUrl': '/dosa.png'}
LASSI = {'_id': 'p2', 'name': 'Sweet Lassi', 'price': '45.50'}

# subtotal 160 + 5% tax = 168
PLAIN_BREAKDOWN = {
    'subtotal': 160, 'couponDiscount': 0, 'amountAfterCoupon': 160,
    'taxRate': 0.05, 'taxAmount': 8, 'shippingCost': 0,
    'automaticDiscounts': [], 'totalAutomaticDiscount': 0, 'finalTotal': 168,
}

# subtotal 160 - coupon 16 + 5% tax on 144 = 151.20
COUPON_BREAKDOWN = {
    'subtotal': 160, 'couponDiscount': 16, 'amountAfterCoupon': 144,
    'taxRate': 0.05, 'taxAmount': 7.2, 'shippingCost': 0,
    'automaticDiscounts': [], 'totalAutomaticDiscount': 0, 'finalTotal': 151.2,
    'appliedCoupon': {'coupon': {'code': 'SAVE10'}},
}


class FakeSession(dict):
    modified = False


def messages_of(response):
    return [str(m) for m in response.wsgi_request._messages]


class CartTestCase(SimpleTestCase):
    """Test the session cart."""

    def setUp(self):
        self.session = FakeSession()
        self.cart = Cart(self.session)

    def test_add_increments_existing_line(self):
        self.assertTrue(self.cart.add(DOSA, 1))
        self.assertTrue(self.cart.add(DOSA, 2))
        self.cart.add(LASSI)

        self.assertEqual(self.session[CART_SESSION_KEY]['p1']['quantity'], 3)
        self.assertEqual(len(self.cart), 4)
        self.assertEqual(self.cart.total(), Decimal('285.50'))
        self.assertTrue(self.session.modified)

    def test_add_zero_ignored(self):
        self.assertFalse(self.cart.add(DOSA, 0))
        self.assertTrue(self.cart.is_empty())

    def test_snapshot(self):
        self.cart.add(LASSI)
        product = self.session[CART_SESSION_KEY]['p2']['product']
        self.assertEqual(product, {'_id': 'p2', 'name': 'Sweet Lassi', 'price': 45.5, 'imageUrl': ''})

    def test_update_below_one_ignored(self):
        self.cart.add(DOSA, 2)
        self.assertFalse(self.cart.update('p1', 0))
        self.assertEqual(self.cart.lines['p1']['quantity'], 2)
        self.assertTrue(self.cart.update('p1', 5))
        self.assertEqual(self.cart.lines['p1']['quantity'], 5)
        self.assertFalse(self.cart.update('missing', 1))

    def test_remove(self):
        self.cart.add(DOSA)
        removed = self.cart.remove('p1')
        self.assertEqual(removed['product']['name'], 'Masala Dosa')
        self.assertIsNone(self.cart.remove('p1'))
        self.assertTrue(self.cart.is_empty())

    def test_clear_drops_coupon_and_signature(self):
        self.cart.add(DOSA)
        self.cart.apply_coupon({'coupon': {'_id': 'k1', 'code': 'SAVE10'}, 'discount': 8})
        self.session[PRICING_SIGNATURE_KEY] = 'abc'

        self.cart.clear()

        self.assertTrue(self.cart.is_empty())
        self.assertNotIn(COUPON_SESSION_KEY, self.session)
        self.assertNotIn(PRICING_SIGNATURE_KEY, self.session)

    def test_item_payloads(self):
        self.cart.add(DOSA, 2)
        self.assertEqual(self.cart.calculate_items(), [{'product': 'p1', 'quantity': 2}])
        self.assertEqual(self.cart.order_items(), [{'product': 'p1', 'quantity': 2, 'price': 80.0}])


class ShopViewsTestCase(TestCase):

    def setUp(self):
        self.client = Client()
        session = self.client.session
        session['user_id'] = 'u3'
        session['username'] = 'Guest'
        session['role'] = 'user'
        session.save()

    def fill_cart(self, coupon=None):
        session = self.client.session
        session[CART_SESSION_KEY] = {
            'p1': {'product': {'_id': 'p1', 'name': 'Masala Dosa', 'price': 80.0, 'imageUrl': ''}, 'quantity': 2},
        }
        if coupon:
            session[COUPON_SESSION_KEY] = coupon
        session.save()

    @patch('shop.views.get_backend_client')
    def test_add_to_cart(self, mock_backend):
        client = MagicMock()
        client.get.return_value = ApiResponse(200, {'product': DOSA})
        mock_backend.return_value = client

        response = self.client.post(reverse('shop:add_to_cart'), {
            'product_id': 'p1', 'quantity': '2', 'returnUrl': '/?category=c1',
        })

        self.assertRedirects(response, '/?category=c1', fetch_redirect_response=False)
        client.get.assert_called_once_with('/products/p1')
        self.assertEqual(self.client.session[CART_SESSION_KEY]['p1']['quantity'], 2)

    @patch('shop.views.get_backend_client')
    def test_add_to_cart_rejects_external_return(self, mock_backend):
        client = MagicMock()
        client.get.return_value = ApiResponse(200, DOSA)
        mock_backend.return_value = client

        response = self.client.post(reverse('shop:add_to_cart'), {
            'product_id': 'p1', 'returnUrl': 'https://evil.example.com/',
        })

        self.assertRedirects(response, reverse('dashboard'), fetch_redirect_response=False)

    @patch('shop.views.get_backend_client')
    def test_cart_pricing_message_once(self, mock_backend):
        """The pricing message appears for a new breakdown only."""
        self.fill_cart()
        client = MagicMock()
        client.post.return_value = ApiResponse(200, PLAIN_BREAKDOWN)
        mock_backend.return_value = client

        first = self.client.get(reverse('shop:cart'))
        second = self.client.get(reverse('shop:cart'))

        notice = "ℹ️ No automatic discounts or coupons applied."
        self.assertIn(notice, messages_of(first))
        self.assertNotIn(notice, messages_of(second))
        client.post.assert_called_with('/orders/calculate', {
            'items': [{'product': 'p1', 'quantity': 2}],
            'couponCode': None,
        })
        labels = [line['label'] for line in second.context['pricing']['lines']]
        self.assertEqual(labels, ['Subtotal', 'Tax (5%)', 'Total'])

    @patch('shop.views.get_backend_client')
    def test_cart_pricing_with_coupon(self, mock_backend):
        self.fill_cart(coupon={'_id': 'k1', 'code': 'SAVE10', 'discount': 16})
        client = MagicMock()
        client.post.return_value = ApiResponse(200, COUPON_BREAKDOWN)
        mock_backend.return_value = client

        response = self.client.get(reverse('shop:cart'))

        self.assertEqual(client.post.call_args[0][1]['couponCode'], 'SAVE10')
        keys = [line['key'] for line in response.context['pricing']['lines']]
        self.assertEqual(keys, ['subtotal', 'coupon', 'after_coupon', 'tax', 'savings', 'total'])
        self.assertEqual(response.context['pricing']['final_total'], Decimal('151.20'))

    @patch('shop.views.get_backend_client')
    def test_cart_calculation_failure(self, mock_backend):
        self.fill_cart()
        client = MagicMock()
        client.post.side_effect = BackendError("connection refused")
        mock_backend.return_value = client

        response = self.client.get(reverse('shop:cart'))

        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.context['pricing'])
        self.assertIn("Failed to calculate pricing.", messages_of(response))

    def test_update_to_zero_keeps_line(self):
        self.fill_cart()

        response = self.client.post(reverse('shop:cart'), {'action': 'update', 'product_id': 'p1', 'quantity': '0'})

        self.assertRedirects(response, reverse('shop:cart'), fetch_redirect_response=False)
        self.assertEqual(self.client.session[CART_SESSION_KEY]['p1']['quantity'], 2)

    def test_apply_empty_coupon_code(self):
        self.fill_cart()

        response = self.client.post(reverse('shop:cart'), {'action': 'apply_coupon', 'code': '  '})

        self.assertIn("Please enter a coupon code", messages_of(response))

    def test_apply_coupon_to_empty_cart(self):
        response = self.client.post(reverse('shop:cart'), {'action': 'apply_coupon', 'code': 'save10'})

        self.assertIn("Your cart is empty", messages_of(response))

    @patch('shop.views.get_backend_client')
    def test_apply_coupon(self, mock_backend):
        self.fill_cart()
        client = MagicMock()
        client.post.return_value = ApiResponse(200, {
            'valid': True,
            'coupon': {'_id': 'k1', 'code': 'SAVE10', 'name': 'Save 10', 'discountType': 'percentage', 'discountValue': 10},
            'discount': 16,
        })
        mock_backend.return_value = client

        response = self.client.post(reverse('shop:cart'), {'action': 'apply_coupon', 'code': 'save10'})

        self.assertRedirects(response, reverse('shop:cart'), fetch_redirect_response=False)
        client.post.assert_called_once_with('/coupons/validate', {'code': 'SAVE10', 'orderAmount': 160.0})
        self.assertEqual(self.client.session[COUPON_SESSION_KEY]['code'], 'SAVE10')
        self.assertIn("Coupon SAVE10 applied!", messages_of(response))

    @patch('shop.views.get_backend_client')
    def test_invalid_coupon(self, mock_backend):
        self.fill_cart()
        client = MagicMock()
        client.post.return_value = ApiResponse(400, {'message': 'Coupon has expired'})
        mock_backend.return_value = client

        response = self.client.post(reverse('shop:cart'), {'action': 'apply_coupon', 'code': 'OLD'})

        self.assertIn("Coupon has expired", messages_of(response))
        self.assertNotIn(COUPON_SESSION_KEY, self.client.session)

    def test_checkout_empty_cart(self):
        response = self.client.get(reverse('shop:checkout'))
        self.assertRedirects(response, reverse('shop:cart'), fetch_redirect_response=False)

    @patch('shop.views.get_backend_client')
    def test_place_order(self, mock_backend):
        """A placed order clears the cart and lands on the confirmation."""
        self.fill_cart(coupon={'_id': 'k1', 'code': 'SAVE10', 'discount': 16})
        client = MagicMock()
        client.post.return_value = ApiResponse(201, {'order': {'_id': 'o1', 'status': 'pending'}})
        mock_backend.return_value = client

        response = self.client.post(reverse('shop:checkout'))

        self.assertRedirects(response, reverse('shop:orders') + '?orderId=o1', fetch_redirect_response=False)
        path, payload = client.post.call_args[0]
        self.assertEqual(path, '/orders')
        self.assertEqual(payload['items'], [{'product': 'p1', 'quantity': 2, 'price': 80.0}])
        self.assertEqual(payload['couponCode'], 'SAVE10')
        self.assertEqual(payload['paymentDetails'], {'method': 'COD', 'status': 'pending'})
        self.assertEqual(payload['shippingDetails']['type'], 'take-in')
        session = self.client.session
        self.assertEqual(session[CART_SESSION_KEY], {})
        self.assertNotIn(COUPON_SESSION_KEY, session)

    @patch('shop.views.get_backend_client')
    def test_place_order_failure_keeps_cart(self, mock_backend):
        self.fill_cart()
        client = MagicMock()
        client.post.return_value = ApiResponse(400, {'message': 'Product out of stock'})
        mock_backend.return_value = client

        response = self.client.post(reverse('shop:checkout'))

        self.assertRedirects(response, reverse('shop:checkout'), fetch_redirect_response=False)
        self.assertIn('p1', self.client.session[CART_SESSION_KEY])
        self.assertIn("Product out of stock", messages_of(response))

    @patch('shop.views.get_backend_client')
    def test_orders_confirmation_shown_once(self, mock_backend):
        session = self.client.session
        session['confirmed_order'] = 'o1'
        session.save()
        client = MagicMock()
        client.get.return_value = ApiResponse(200, [
            {'_id': 'o0', 'status': 'delivered', 'createdAt': '2024-03-01T10:00:00Z',
             'pricing': {'subtotal': 100, 'taxAmount': 0, 'totalAmount': 100}},
            {'_id': 'o1', 'status': 'pending', 'createdAt': '2024-03-05T10:00:00Z',
             'pricing': {'subtotal': 160, 'taxRate': 0.05, 'taxAmount': 8, 'totalAmount': 168}},
        ])
        mock_backend.return_value = client

        first = self.client.get(reverse('shop:orders'), {'orderId': 'o1'})
        second = self.client.get(reverse('shop:orders'), {'orderId': 'o1'})

        client.get.assert_called_with('/orders/my-orders')
        self.assertEqual(first.context['confirmed_id'], 'o1')
        self.assertIsNone(second.context['confirmed_id'])
        self.assertEqual([o['_id'] for o in first.context['orders']], ['o1', 'o0'])
        labels = [line['label'] for line in first.context['orders'][0]['pricing_lines']]
        self.assertEqual(labels, ['Subtotal', 'Tax (5%)', 'Total'])

    @patch('shop.views.get_backend_client')
    def test_admin_sees_all_orders_filtered(self, mock_backend):
        session = self.client.session
        session['role'] = 'admin'
        session.save()
        client = MagicMock()
        client.get.return_value = ApiResponse(200, {'orders': [
            {'_id': 'o1', 'status': 'pending', 'user': {'firstName': 'Meena', 'email': 'meena@example.com'}},
            {'_id': 'o2', 'status': 'pending', 'user': {'firstName': 'Ravi', 'email': 'ravi@example.com'}},
            {'_id': 'o3', 'status': 'cancelled', 'user': {'firstName': 'Meena', 'email': 'meena@example.com'}},
        ]})
        mock_backend.return_value = client

        response = self.client.get(reverse('shop:orders'), {'status': 'pending', 'customer': 'meena'})

        client.get.assert_called_with('/orders/all')
        self.assertEqual([o['_id'] for o in response.context['orders']], ['o1'])
        counts = {value: count for value, _, count in response.context['status_counts']}
        self.assertEqual(counts['pending'], 2)
        self.assertEqual(counts['cancelled'], 1)

    @patch('shop.views.get_backend_client')
    def test_cancel_pending_order(self, mock_backend):
        client = MagicMock()
        client.get.return_value = ApiResponse(200, [{'_id': 'o1', 'status': 'pending'}])
        client.patch.return_value = ApiResponse(200, {'order': {'_id': 'o1', 'status': 'cancelled'}})
        mock_backend.return_value = client

        response = self.client.post(reverse('shop:cancel_order', args=['o1']))

        self.assertRedirects(response, reverse('shop:orders'), fetch_redirect_response=False)
        client.patch.assert_called_once_with('/orders/o1/status', {'status': 'cancelled'})

    @patch('shop.views.get_backend_client')
    def test_cannot_cancel_confirmed_order(self, mock_backend):
        client = MagicMock()
        client.get.return_value = ApiResponse(200, [{'_id': 'o1', 'status': 'confirmed'}])
        mock_backend.return_value = client

        response = self.client.post(reverse('shop:cancel_order', args=['o1']))

        client.patch.assert_not_called()
        self.assertIn(
            "Cannot cancel confirmed orders. Only pending orders can be cancelled.",
            messages_of(response),
        )

    @patch('shop.views.get_backend_client')
    def test_status_update_requires_admin(self, mock_backend):
        response = self.client.post(reverse('shop:update_order_status', args=['o1']), {'status': 'confirmed'})

        self.assertRedirects(response, reverse('dashboard'), fetch_redirect_response=False)
        mock_backend.assert_not_called()

    @patch('shop.views.get_backend_client')
    def test_admin_status_update(self, mock_backend):
        session = self.client.session
        session['role'] = 'admin'
        session.save()
        client = MagicMock()
        client.patch.return_value = ApiResponse(200, {'order': {'_id': 'o1', 'status': 'delivered'}})
        mock_backend.return_value = client

        response = self.client.post(reverse('shop:update_order_status', args=['o1']), {'status': 'delivered'})

        self.assertRedirects(response, reverse('shop:orders'), fetch_redirect_response=False)
        client.patch.assert_called_once_with('/orders/o1/status', {'status': 'delivered'})


PENDING_ORDER = {
    '_id': 'o7',
    'status': 'pending',
    'items': [
        {'product': {'_id': 'p1', 'name': 'Masala Dosa', 'price': 90}, 'quantity': 2, 'priceAtOrder': 80},
        {'product': 'p2', 'name': 'Sweet Lassi', 'quantity': 1, 'price': 45.5},
    ],
    'pricing': {'subtotal': 205.5, 'taxRate': 0.05, 'taxAmount': 10.28, 'totalAmount': 215.78},
}

DISCOUNTED_ORDER = dict(
    PENDING_ORDER,
    appliedCoupon={'couponId': 'k1', 'code': 'SAVE10', 'discountAmount': 20.55},
)


class OrderDraftTestCase(SimpleTestCase):
    """Test the session copy of an order being edited."""

    def setUp(self):
        self.session = FakeSession()

    def test_start_from_order(self):
        draft = OrderDraft.start(self.session, PENDING_ORDER)

        self.assertEqual(draft.order_id, 'o7')
        self.assertTrue(draft.is_for('o7'))
        self.assertFalse(draft.is_for('o8'))
        # The price the order was placed at wins over today's catalogue price
        self.assertEqual(draft.lines['p1']['product']['price'], 80.0)
        self.assertEqual(draft.lines['p2']['product']['name'], 'Sweet Lassi')
        self.assertEqual(draft.total(), Decimal('205.50'))
        self.assertIsNone(draft.coupon)
        self.assertEqual(draft.calculate_payload(), {
            'items': [{'product': 'p1', 'quantity': 2}, {'product': 'p2', 'quantity': 1}],
            'couponCode': None,
            'preserveOriginalPricing': True,
        })

    def test_start_keeps_existing_coupon(self):
        draft = OrderDraft.start(self.session, DISCOUNTED_ORDER)

        self.assertEqual(draft.coupon_code, 'SAVE10')
        self.assertFalse(draft.calculate_payload()['preserveOriginalPricing'])
        self.assertEqual(draft.update_payload()['couponCode'], 'SAVE10')

    def test_cart_untouched(self):
        cart = Cart(self.session)
        cart.add(DOSA, 3)
        cart.apply_coupon({'coupon': {'code': 'CART5'}})

        draft = OrderDraft.start(self.session, DISCOUNTED_ORDER)
        draft.remove('p1')
        draft.discard()

        self.assertEqual(Cart(self.session).lines['p1']['quantity'], 3)
        self.assertEqual(Cart(self.session).coupon_code, 'CART5')
        self.assertIsNone(OrderDraft(self.session).order_id)
        self.assertTrue(OrderDraft(self.session).is_empty())

    def test_update_payload_without_coupon(self):
        draft = OrderDraft.start(self.session, PENDING_ORDER)
        draft.update('p2', 4)
        self.assertEqual(draft.update_payload(), {
            'items': [{'product': 'p1', 'quantity': 2}, {'product': 'p2', 'quantity': 4}],
        })


class OrderEditViewsTestCase(TestCase):

    def setUp(self):
        self.client = Client()
        session = self.client.session
        session['user_id'] = 'u3'
        session['role'] = 'user'
        session.save()

    def start_draft(self, order=PENDING_ORDER):
        session = self.client.session
        OrderDraft.start(session, order)
        session.save()

    @patch('shop.views.get_backend_client')
    def test_open_pending_order(self, mock_backend):
        """Opening the editor copies the order into the session and reprices it."""
        client = MagicMock()
        client.get.return_value = ApiResponse(200, {'orders': [PENDING_ORDER]})
        client.post.return_value = ApiResponse(200, PLAIN_BREAKDOWN)
        mock_backend.return_value = client

        response = self.client.get(reverse('shop:edit_order', args=['o7']))

        self.assertEqual(response.status_code, 200)
        client.get.assert_called_once_with('/orders/my-orders')
        self.assertEqual([item['product_id'] for item in response.context['items']], ['p1', 'p2'])
        path, payload = client.post.call_args[0]
        self.assertEqual(path, '/orders/calculate')
        self.assertTrue(payload['preserveOriginalPricing'])
        self.assertEqual(response.context['pricing']['final_total'], Decimal('168.00'))

    @patch('shop.views.get_backend_client')
    def test_confirmed_order_not_editable(self, mock_backend):
        client = MagicMock()
        client.get.return_value = ApiResponse(200, [dict(PENDING_ORDER, status='confirmed')])
        mock_backend.return_value = client

        response = self.client.get(reverse('shop:edit_order', args=['o7']))

        self.assertRedirects(response, reverse('shop:orders'), fetch_redirect_response=False)
        self.assertIn(
            "Cannot edit confirmed orders. Only pending and processing orders can be edited.",
            messages_of(response),
        )
        client.post.assert_not_called()

    @patch('shop.views.get_backend_client')
    def test_change_without_draft(self, mock_backend):
        response = self.client.post(reverse('shop:edit_order', args=['o7']), {'action': 'save'})

        self.assertRedirects(response, reverse('shop:edit_order', args=['o7']), fetch_redirect_response=False)
        mock_backend.assert_not_called()

    @patch('shop.views.get_backend_client')
    def test_edit_and_save(self, mock_backend):
        """Quantity and removal changes go out in one PUT."""
        self.start_draft()
        client = MagicMock()
        client.put.return_value = ApiResponse(200, {'order': {'_id': 'o7'}})
        mock_backend.return_value = client

        url = reverse('shop:edit_order', args=['o7'])
        self.client.post(url, {'action': 'update', 'product_id': 'p1', 'quantity': '3'})
        self.client.post(url, {'action': 'remove', 'product_id': 'p2'})
        mock_backend.assert_not_called()

        response = self.client.post(url, {'action': 'save'})

        self.assertRedirects(response, reverse('shop:orders'), fetch_redirect_response=False)
        client.put.assert_called_once_with('/orders/o7', {'items': [{'product': 'p1', 'quantity': 3}]})
        self.assertIn("Order updated successfully", messages_of(response))
        self.assertIsNone(OrderDraft(self.client.session).order_id)

    @patch('shop.views.get_backend_client')
    def test_save_failure_keeps_draft(self, mock_backend):
        self.start_draft()
        client = MagicMock()
        client.put.return_value = ApiResponse(400, {'message': 'Insufficient stock'})
        mock_backend.return_value = client

        response = self.client.post(reverse('shop:edit_order', args=['o7']), {'action': 'save'})

        self.assertRedirects(response, reverse('shop:edit_order', args=['o7']), fetch_redirect_response=False)
        self.assertIn("Failed to update order: Insufficient stock", messages_of(response))
        self.assertTrue(OrderDraft(self.client.session).is_for('o7'))

    @patch('shop.views.get_backend_client')
    def test_removing_every_item_cancels(self, mock_backend):
        self.start_draft()
        client = MagicMock()
        client.patch.return_value = ApiResponse(200, {'order': {'_id': 'o7', 'status': 'cancelled'}})
        mock_backend.return_value = client

        url = reverse('shop:edit_order', args=['o7'])
        self.client.post(url, {'action': 'remove', 'product_id': 'p1'})
        self.client.post(url, {'action': 'remove', 'product_id': 'p2'})
        response = self.client.post(url, {'action': 'save'})

        self.assertRedirects(response, reverse('shop:orders'), fetch_redirect_response=False)
        client.patch.assert_called_once_with('/orders/o7/status', {'status': 'cancelled'})
        client.put.assert_not_called()
        self.assertIn("Order cancelled as all items were removed", messages_of(response))

    @patch('shop.views.get_backend_client')
    def test_replace_coupon(self, mock_backend):
        self.start_draft(DISCOUNTED_ORDER)
        client = MagicMock()
        client.post.return_value = ApiResponse(200, {
            'coupon': {'_id': 'k2', 'code': 'FEST20', 'name': 'Festival', 'discountType': 'percentage', 'discountValue': 20},
            'discount': 41.1,
        })
        client.put.return_value = ApiResponse(200, {})
        mock_backend.return_value = client

        url = reverse('shop:edit_order', args=['o7'])
        self.client.post(url, {'action': 'apply_coupon', 'code': 'fest20'})
        self.client.post(url, {'action': 'save'})

        client.post.assert_called_once_with('/coupons/validate', {'code': 'FEST20', 'orderAmount': 205.5})
        self.assertEqual(client.put.call_args[0][1]['couponCode'], 'FEST20')

    @patch('shop.views.get_backend_client')
    def test_remove_coupon(self, mock_backend):
        self.start_draft(DISCOUNTED_ORDER)
        client = MagicMock()
        client.put.return_value = ApiResponse(200, {})
        mock_backend.return_value = client

        url = reverse('shop:edit_order', args=['o7'])
        response = self.client.post(url, {'action': 'remove_coupon'})
        self.assertIn("Coupon removed. You can now apply a new coupon.", messages_of(response))
        self.client.post(url, {'action': 'save'})

        self.assertNotIn('couponCode', client.put.call_args[0][1])

    def test_discard(self):
        self.start_draft()

        response = self.client.post(reverse('shop:edit_order', args=['o7']), {'action': 'discard'})

        self.assertRedirects(response, reverse('shop:orders'), fetch_redirect_response=False)
        self.assertIsNone(OrderDraft(self.client.session).order_id)
