from django.shortcuts import render, redirect
from django.contrib import messages
from django.urls import reverse
from django.views.decorators.http import require_POST
import logging
from login.decorators import require_admin, require_authentication
from backend_api import BackendError, get_backend_client, payload_dict, payload_list
from services.pricing_summary import breakdown_from_order, pricing_signature, summarize_pricing
from services.query_state import parse_query_state, safe_return_url
from .cart import Cart, OrderDraft

logger = logging.getLogger(__name__)

ORDER_STATUSES = [
    ('pending', 'Pending'),
    ('confirmed', 'Confirmed'),
    ('processing', 'Processing'),
    ('delivered', 'Delivered'),
    ('cancelled', 'Cancelled'),
]

ORDER_FILTER_DEFAULTS = {'status': '', 'customer': '', 'search': ''}

CONFIRMED_ORDER_KEY = 'confirmed_order'

EDITABLE_ORDER_STATUSES = ('pending', 'processing')

TOAST_LEVELS = {
    'success': messages.SUCCESS,
    'info': messages.INFO,
}

TAKE_IN_SHIPPING = {
    'type': 'take-in',
    'address': 'Store Pickup',
    'city': 'Local Store',
    'state': 'Andhra Pradesh',
    'zipCode': '500000',
    'country': 'India',
}


def _parse_quantity(raw, default=None):
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def _calculate_pricing(request, cart):
    """
    Ask the backend to price the cart and project the result for display.

    The informational message is only added when the breakdown differs from
    the last one this session has seen.
    """
    try:
        response = get_backend_client(request).post('/orders/calculate', cart.calculate_payload())
    except BackendError as e:
        logger.error(f"Error calculating pricing: {e}", exc_info=True)
        messages.error(request, "Failed to calculate pricing.")
        return None

    if not response.ok:
        messages.error(request, response.error_message("Failed to calculate pricing"))
        return None

    breakdown = payload_dict(response)
    summary = summarize_pricing(breakdown)

    signature = pricing_signature(breakdown)
    if request.session.get(cart.signature_key) != signature:
        request.session[cart.signature_key] = signature
        toast = summary['toast']
        messages.add_message(request, TOAST_LEVELS[toast['level']], toast['message'])
    return summary


@require_authentication
@require_POST
def add_to_cart(request):
    product_id = request.POST.get('product_id')
    quantity = _parse_quantity(request.POST.get('quantity'), 1)
    return_url = safe_return_url(request.POST.get('returnUrl'), reverse('dashboard'))
    if not product_id or quantity < 1:
        messages.error(request, "⚠️ Choose a product and a quantity of at least 1.")
        return redirect(return_url)

    try:
        response = get_backend_client(request).get(f'/products/{product_id}')
    except BackendError as e:
        logger.error(f"Error loading product {product_id}: {e}", exc_info=True)
        messages.error(request, "Failed to add item to cart.")
        return redirect(return_url)

    if not response.ok:
        messages.error(request, response.error_message("Product not found"))
        return redirect(return_url)

    body = payload_dict(response)
    product = body.get('product') or body
    Cart(request.session).add(product, quantity)
    logger.info(f"User {request.session.get('user_id')} added {quantity} x {product_id} to cart")
    messages.success(request, f"{product.get('name', 'Item')} added to cart!")
    return redirect(return_url)


@require_authentication
def cart_view(request):
    """
    GET: cart lines plus the backend-computed pricing.
    POST: update / remove / clear lines, apply or remove a coupon (PRG).
    """
    cart = Cart(request.session)

    if request.method == 'POST':
        action = request.POST.get('action')
        product_id = request.POST.get('product_id')

        if action == 'update':
            quantity = _parse_quantity(request.POST.get('quantity'))
            if quantity is None or not cart.update(product_id, quantity):
                messages.warning(request, "Quantity must be at least 1. Use remove to drop an item.")
        elif action == 'remove':
            line = cart.remove(product_id)
            if line:
                messages.info(request, f"{line['product']['name']} removed from cart")
        elif action == 'clear':
            cart.clear()
            messages.info(request, "Cart cleared")
        elif action == 'apply_coupon':
            _apply_coupon(request, cart)
        elif action == 'remove_coupon':
            if cart.remove_coupon():
                messages.info(request, "Coupon removed")
        else:
            messages.error(request, "Unknown action.")
        return redirect('shop:cart')

    pricing = None if cart.is_empty() else _calculate_pricing(request, cart)
    return render(request, 'shop/cart.html', {
        'cart': cart,
        'items': list(cart),
        'coupon': cart.coupon,
        'pricing': pricing,
    })


def _apply_coupon(request, cart, empty_message="Your cart is empty"):
    code = (request.POST.get('code') or '').strip().upper()
    if not code:
        messages.error(request, "Please enter a coupon code")
        return
    if cart.is_empty():
        messages.error(request, empty_message)
        return

    try:
        response = get_backend_client(request).post('/coupons/validate', {
            'code': code,
            'orderAmount': float(cart.total()),
        })
    except BackendError as e:
        logger.error(f"Error validating coupon {code}: {e}", exc_info=True)
        messages.error(request, "Failed to apply coupon")
        return

    if not response.ok:
        messages.error(request, response.error_message("Invalid coupon code"))
        return

    validation = payload_dict(response)
    cart.apply_coupon(validation)
    logger.info(f"Coupon {code} applied for user {request.session.get('user_id')}")
    messages.success(request, f"Coupon {code} applied!")


@require_authentication
def checkout(request):
    """
    Review the priced order and place it (take-in, cash on delivery).

    The backend recomputes every amount from the items and coupon code.
    """
    cart = Cart(request.session)
    if cart.is_empty():
        messages.info(request, "Your cart is empty")
        return redirect('shop:cart')

    if request.method == 'POST':
        payload = {
            'items': cart.order_items(),
            'shippingDetails': TAKE_IN_SHIPPING,
            'paymentDetails': {'method': 'COD', 'status': 'pending'},
            'couponCode': cart.coupon_code,
            'status': 'pending',
        }
        try:
            response = get_backend_client(request).post('/orders', payload)
        except BackendError as e:
            logger.error(f"Error placing order: {e}", exc_info=True)
            messages.error(request, "Failed to place order")
            return redirect('shop:checkout')

        if not response.ok:
            messages.error(request, response.error_message("Failed to place order"))
            return redirect('shop:checkout')

        order = payload_dict(response)
        order = order.get('order') or order
        order_id = order.get('_id') or ''
        cart.clear()
        request.session[CONFIRMED_ORDER_KEY] = order_id
        logger.info(f"Order {order_id} placed by user {request.session.get('user_id')}")
        messages.success(request, "Order placed successfully!")
        return redirect(f"{reverse('shop:orders')}?orderId={order_id}")

    return render(request, 'shop/checkout.html', {
        'items': list(cart),
        'coupon': cart.coupon,
        'pricing': _calculate_pricing(request, cart),
    })


def _customer_matches(order, needle):
    user = order.get('user')
    if not isinstance(user, dict):
        return needle in str(user or '').lower()
    name = f"{user.get('firstName') or ''} {user.get('lastName') or ''}".lower()
    return needle in name or needle in (user.get('email') or '').lower()


def _load_orders(request):
    is_admin = request.session.get('role') == 'admin'
    path = '/orders/all' if is_admin else '/orders/my-orders'
    try:
        response = get_backend_client(request).get(path)
    except BackendError as e:
        logger.error(f"Error loading orders: {e}", exc_info=True)
        response = None
    if response is None or not response.ok:
        messages.error(request, "Failed to load orders")
    return payload_list(response, 'orders')


@require_authentication
def orders_view(request):
    """
    The user's orders (every order for admins), newest first.

    Each order carries its pricing lines rebuilt from the stored totals.
    ``?orderId=`` shows the confirmation banner right after checkout.
    """
    state = parse_query_state(request.GET, ORDER_FILTER_DEFAULTS)
    orders = _load_orders(request)

    status_counts = {value: 0 for value, _ in ORDER_STATUSES}
    for order in orders:
        status_counts[order.get('status')] = status_counts.get(order.get('status'), 0) + 1

    if state['status']:
        orders = [o for o in orders if o.get('status') == state['status']]
    if state['customer']:
        needle = state['customer'].lower()
        orders = [o for o in orders if _customer_matches(o, needle)]
    if state['search']:
        needle = state['search'].lower()
        orders = [o for o in orders if needle in str(o.get('_id') or '').lower()]

    orders = sorted(orders, key=lambda o: o.get('createdAt') or '', reverse=True)
    for order in orders:
        order['pricing_lines'] = summarize_pricing(breakdown_from_order(order), strict=False)['lines']

    confirmed_id = None
    requested = request.GET.get('orderId')
    if requested and request.session.get(CONFIRMED_ORDER_KEY) == requested:
        confirmed_id = request.session.pop(CONFIRMED_ORDER_KEY)

    return render(request, 'shop/orders.html', {
        'orders': orders,
        'state': state,
        'status_choices': ORDER_STATUSES,
        'status_counts': [(value, label, status_counts.get(value, 0)) for value, label in ORDER_STATUSES],
        'confirmed_id': confirmed_id,
    })


def _set_order_status(request, order_id, status):
    try:
        response = get_backend_client(request).patch(f'/orders/{order_id}/status', {'status': status})
    except BackendError as e:
        logger.error(f"Error updating order {order_id} to {status}: {e}", exc_info=True)
        return False, "Failed to update order status"
    if not response.ok:
        return False, response.error_message("Failed to update order status")
    logger.info(f"Order {order_id} set to {status} by user {request.session.get('user_id')}")
    return True, None


def _find_order(request, order_id):
    return next((o for o in _load_orders(request) if str(o.get('_id')) == str(order_id)), None)


@require_authentication
@require_POST
def cancel_order(request, order_id):
    """Customers may cancel their own orders while they are still pending."""
    order = _find_order(request, order_id)
    if order is None:
        messages.error(request, "Order not found")
        return redirect('shop:orders')
    if order.get('status') != 'pending':
        messages.error(request, f"Cannot cancel {order.get('status')} orders. Only pending orders can be cancelled.")
        return redirect('shop:orders')

    ok, error = _set_order_status(request, order_id, 'cancelled')
    if ok:
        messages.success(request, "Order cancelled")
    else:
        messages.error(request, error)
    return redirect('shop:orders')


def _save_order_draft(request, draft):
    """PUT the edited items; a draft with no items left cancels the order instead."""
    order_id = draft.order_id

    if draft.is_empty():
        ok, error = _set_order_status(request, order_id, 'cancelled')
        if not ok:
            messages.error(request, error)
            return redirect('shop:edit_order', order_id=order_id)
        draft.discard()
        messages.success(request, "Order cancelled as all items were removed")
        return redirect('shop:orders')

    try:
        response = get_backend_client(request).put(f'/orders/{order_id}', draft.update_payload())
    except BackendError as e:
        logger.error(f"Error updating order {order_id}: {e}", exc_info=True)
        messages.error(request, "Failed to update order")
        return redirect('shop:edit_order', order_id=order_id)

    if not response.ok:
        messages.error(request, f"Failed to update order: {response.error_message('Unknown error')}")
        return redirect('shop:edit_order', order_id=order_id)

    draft.discard()
    logger.info(f"Order {order_id} items updated by user {request.session.get('user_id')}")
    messages.success(request, "Order updated successfully")
    return redirect('shop:orders')


@require_authentication
def edit_order(request, order_id):
    """
    Change the items and coupon of an order that is not confirmed yet.

    GET starts (or resumes) a session draft of the order and shows it
    repriced through /orders/calculate. POST applies one change to the
    draft (PRG); ``save`` writes it back with PUT /orders/:id.
    """
    draft = OrderDraft(request.session)

    if request.method == 'POST':
        if not draft.is_for(order_id):
            messages.error(request, "This order is no longer being edited. Please start again.")
            return redirect('shop:edit_order', order_id=order_id)

        action = request.POST.get('action')
        product_id = request.POST.get('product_id')

        if action == 'update':
            quantity = _parse_quantity(request.POST.get('quantity'))
            if quantity is None or not draft.update(product_id, quantity):
                messages.warning(request, "Quantity must be at least 1. Use remove to drop an item.")
        elif action == 'remove':
            line = draft.remove(product_id)
            if line:
                messages.info(request, f"{line['product']['name']} removed from order")
        elif action == 'apply_coupon':
            _apply_coupon(request, draft, "This order has no items")
        elif action == 'remove_coupon':
            if draft.remove_coupon():
                messages.info(request, "Coupon removed. You can now apply a new coupon.")
        elif action == 'save':
            return _save_order_draft(request, draft)
        elif action == 'discard':
            draft.discard()
            messages.info(request, "Changes discarded")
            return redirect('shop:orders')
        else:
            messages.error(request, "Unknown action.")
        return redirect('shop:edit_order', order_id=order_id)

    if not draft.is_for(order_id):
        order = _find_order(request, order_id)
        if order is None:
            messages.error(request, "Order not found")
            return redirect('shop:orders')
        status = order.get('status')
        if status not in EDITABLE_ORDER_STATUSES:
            messages.error(request, f"Cannot edit {status} orders. Only pending and processing orders can be edited.")
            return redirect('shop:orders')
        draft = OrderDraft.start(request.session, order)

    return render(request, 'shop/order_edit.html', {
        'order_id': order_id,
        'items': list(draft),
        'coupon': draft.coupon,
        'pricing': None if draft.is_empty() else _calculate_pricing(request, draft),
    })


@require_admin
@require_POST
def update_order_status(request, order_id):
    status = request.POST.get('status')
    if status not in dict(ORDER_STATUSES):
        messages.error(request, "⚠️ Invalid status.")
        return redirect('shop:orders')

    ok, error = _set_order_status(request, order_id, status)
    if ok:
        messages.success(request, "Order status updated successfully")
    else:
        messages.error(request, error)
    return redirect('shop:orders')
