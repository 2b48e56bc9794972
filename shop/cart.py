# shop/cart.py

"""
Session-backed shopping cart.

Lines are keyed by product ID and hold a snapshot of the product (name,
price, image) taken when it was added, plus the quantity. Prices shown here
are only indicative; the backend reprices every order.
"""
from decimal import Decimal

from services.expense_summary import to_decimal

CART_SESSION_KEY = 'cart'
COUPON_SESSION_KEY = 'applied_coupon'
PRICING_SIGNATURE_KEY = 'pricing_signature'


def product_snapshot(product):
    return {
        '_id': product.get('_id'),
        'name': product.get('name') or 'Product',
        'price': float(to_decimal(product.get('price'))),
        'imageUrl': product.get('imageUrl') or '',
    }


class Cart:
    lines_key = CART_SESSION_KEY
    coupon_key = COUPON_SESSION_KEY
    signature_key = PRICING_SIGNATURE_KEY

    def __init__(self, session):
        self.session = session
        self.lines = session.get(self.lines_key) or {}

    def save(self):
        self.session[self.lines_key] = self.lines
        self.session.modified = True

    def add(self, product, quantity=1):
        """Add ``quantity`` of ``product``; an existing line is increased."""
        quantity = int(quantity)
        if quantity < 1:
            return False
        product_id = str(product.get('_id'))
        line = self.lines.get(product_id)
        if line:
            line['quantity'] += quantity
        else:
            self.lines[product_id] = {'product': product_snapshot(product), 'quantity': quantity}
        self.save()
        return True

    def update(self, product_id, quantity):
        """Set a line's quantity; anything below 1 is ignored."""
        product_id = str(product_id)
        if product_id not in self.lines or quantity < 1:
            return False
        self.lines[product_id]['quantity'] = quantity
        self.save()
        return True

    def remove(self, product_id):
        removed = self.lines.pop(str(product_id), None)
        if removed is not None:
            self.save()
        return removed

    def clear(self):
        self.lines = {}
        self.save()
        self.session.pop(self.coupon_key, None)
        self.session.pop(self.signature_key, None)

    def __iter__(self):
        for product_id, line in self.lines.items():
            price = to_decimal(line['product'].get('price'))
            yield {
                'product_id': product_id,
                'product': line['product'],
                'quantity': line['quantity'],
                'line_total': price * line['quantity'],
            }

    def __len__(self):
        return sum(line['quantity'] for line in self.lines.values())

    def is_empty(self):
        return not self.lines

    def total(self):
        return sum((item['line_total'] for item in self), Decimal('0'))

    def calculate_items(self):
        """``items`` for /orders/calculate."""
        return [{'product': product_id, 'quantity': line['quantity']} for product_id, line in self.lines.items()]

    def calculate_payload(self):
        """Body for POST /orders/calculate."""
        return {'items': self.calculate_items(), 'couponCode': self.coupon_code}

    def order_items(self):
        """``items`` for POST /orders, with the price seen at checkout."""
        return [
            {'product': product_id, 'quantity': line['quantity'], 'price': line['product'].get('price')}
            for product_id, line in self.lines.items()
        ]

    # Applied coupon, handed from the cart page to checkout

    @property
    def coupon(self):
        return self.session.get(self.coupon_key)

    @property
    def coupon_code(self):
        coupon = self.coupon
        return coupon.get('code') if coupon else None

    def apply_coupon(self, validation):
        coupon = validation.get('coupon') or {}
        self.session[self.coupon_key] = {
            '_id': coupon.get('_id'),
            'code': coupon.get('code'),
            'name': coupon.get('name'),
            'discountType': coupon.get('discountType'),
            'discountValue': coupon.get('discountValue'),
            'discount': validation.get('discount'),
        }

    def remove_coupon(self):
        return self.session.pop(self.coupon_key, None)


ORDER_DRAFT_ID_KEY = 'order_edit_id'
ORDER_DRAFT_PRESERVE_KEY = 'order_edit_preserve_pricing'


def order_had_discounts(order):
    pricing = order.get('pricing') or {}
    return bool(
        order.get('automaticDiscounts')
        or order.get('appliedCoupon')
        or to_decimal(pricing.get('discountAmount')) > 0
    )


class OrderDraft(Cart):
    """
    Working copy of a placed order while its items are being edited.

    It behaves like the cart but lives under its own session keys, so a
    customer can edit an order without touching what is in their cart.
    Nothing reaches the backend until the draft is saved.
    """
    lines_key = 'order_edit_lines'
    coupon_key = 'order_edit_coupon'
    signature_key = 'order_edit_pricing_signature'

    @classmethod
    def start(cls, session, order):
        draft = cls(session)
        draft.discard()
        for item in order.get('items') or []:
            product = item.get('product')
            if not isinstance(product, dict):
                product = {'_id': product, 'name': item.get('name')}
            price = item.get('priceAtOrder')
            if price is None:
                price = item.get('price', product.get('price'))
            product = dict(product, price=price)
            quantity = int(item.get('quantity') or 1)
            draft.lines[str(product.get('_id'))] = {'product': product_snapshot(product), 'quantity': quantity}
        draft.save()

        applied = order.get('appliedCoupon') or {}
        if applied.get('code'):
            session[cls.coupon_key] = {
                '_id': applied.get('couponId'),
                'code': applied.get('code'),
                'name': applied.get('code'),
                'discount': applied.get('discountAmount'),
            }
        session[ORDER_DRAFT_ID_KEY] = str(order.get('_id'))
        # Orders placed without any discount keep the prices they were placed at
        session[ORDER_DRAFT_PRESERVE_KEY] = not order_had_discounts(order)
        return draft

    @property
    def order_id(self):
        return self.session.get(ORDER_DRAFT_ID_KEY)

    def is_for(self, order_id):
        return self.order_id is not None and self.order_id == str(order_id)

    def calculate_payload(self):
        payload = super().calculate_payload()
        payload['preserveOriginalPricing'] = bool(self.session.get(ORDER_DRAFT_PRESERVE_KEY))
        return payload

    def update_payload(self):
        """Body for PUT /orders/:id; the backend reprices from items and coupon."""
        payload = {'items': self.calculate_items()}
        if self.coupon_code:
            payload['couponCode'] = self.coupon_code
        return payload

    def discard(self):
        self.lines = {}
        for key in (self.lines_key, self.coupon_key, self.signature_key,
                    ORDER_DRAFT_ID_KEY, ORDER_DRAFT_PRESERVE_KEY):
            self.session.pop(key, None)
        self.session.modified = True
