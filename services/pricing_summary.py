# services/pricing_summary.py

"""
Display projection of the server-computed order pricing.

The backend (``POST /orders/calculate``) owns every number here; this module
only turns a pricing breakdown into ordered display lines, picks the
informational message shown when a new breakdown arrives, and optionally
re-checks the totals identity so backend regressions surface during
development.
"""
import hashlib
import json
import logging
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings

from services.expense_summary import to_decimal

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal('0.01')
IDENTITY_TOLERANCE = Decimal('0.01')

TOAST_AUTO = 'auto_discounts'
TOAST_AUTO_WITH_COUPON = 'auto_discounts_with_coupon'
TOAST_COUPON = 'coupon_only'
TOAST_NONE = 'none'


class PricingIdentityError(ValueError):
    """finalTotal does not match the components it is derived from."""


def money(value):
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _currency():
    return getattr(settings, 'CURRENCY_SYMBOL', '₹')


def _coupon_code(breakdown):
    applied = breakdown.get('appliedCoupon') or {}
    coupon = applied.get('coupon') or {}
    return coupon.get('code') or applied.get('code') or 'COUPON'


def _format_rate(tax_rate):
    percent = (to_decimal(tax_rate) * 100).normalize()
    # normalize() may yield exponent notation (10 -> 1E+1)
    return f"{percent:f}"


def total_savings(breakdown):
    return money(to_decimal(breakdown.get('totalAutomaticDiscount')) + to_decimal(breakdown.get('couponDiscount')))


def project_pricing(breakdown):
    """
    Ordered display lines for a pricing breakdown.

    Each line is a dict with key, label, amount (Decimal, 2dp), negative
    (rendered with a minus sign) and emphasis (savings / grand total).
    """
    coupon_discount = money(breakdown.get('couponDiscount'))
    tax_amount = money(breakdown.get('taxAmount'))
    shipping_cost = money(breakdown.get('shippingCost'))

    lines = [{
        'key': 'subtotal', 'label': 'Subtotal',
        'amount': money(breakdown.get('subtotal')), 'negative': False, 'emphasis': False,
    }]

    if coupon_discount > 0:
        lines.append({
            'key': 'coupon', 'label': f"Coupon Discount ({_coupon_code(breakdown)})",
            'amount': coupon_discount, 'negative': True, 'emphasis': False,
        })
        lines.append({
            'key': 'after_coupon', 'label': 'Amount after coupon',
            'amount': money(breakdown.get('amountAfterCoupon')), 'negative': False, 'emphasis': False,
        })

    if tax_amount > 0:
        lines.append({
            'key': 'tax', 'label': f"Tax ({_format_rate(breakdown.get('taxRate'))}%)",
            'amount': tax_amount, 'negative': False, 'emphasis': False,
        })

    if shipping_cost > 0:
        lines.append({
            'key': 'shipping', 'label': 'Shipping',
            'amount': shipping_cost, 'negative': False, 'emphasis': False,
        })

    for auto in (breakdown.get('automaticDiscounts') or []):
        discount = auto.get('discount') or {}
        lines.append({
            'key': 'auto_discount', 'label': f"Auto Discount ({discount.get('name') or 'Discount'})",
            'amount': money(auto.get('discountAmount')), 'negative': True, 'emphasis': False,
        })

    savings = total_savings(breakdown)
    if savings > 0:
        lines.append({
            'key': 'savings', 'label': 'Total Savings',
            'amount': savings, 'negative': True, 'emphasis': True,
        })

    lines.append({
        'key': 'total', 'label': 'Total',
        'amount': money(breakdown.get('finalTotal')), 'negative': False, 'emphasis': True,
    })
    return lines


def select_pricing_toast(breakdown):
    """
    Pick the message for a freshly received breakdown.

    Returns (variant, level, message); level is a django.contrib.messages
    level name ('success' or 'info').
    """
    currency = _currency()
    auto_discounts = breakdown.get('automaticDiscounts') or []
    coupon_discount = to_decimal(breakdown.get('couponDiscount'))
    has_coupon = coupon_discount > 0

    if auto_discounts:
        auto_total = sum((to_decimal(d.get('discountAmount')) for d in auto_discounts), Decimal('0'))
        count = len(auto_discounts)
        if has_coupon:
            return (
                TOAST_AUTO_WITH_COUPON, 'success',
                f"🎉 {count} automatic discount(s) + coupon applied! "
                f"Total savings: {currency}{money(auto_total + coupon_discount)}",
            )
        return (
            TOAST_AUTO, 'success',
            f"🎉 {count} automatic discount(s) applied! Total savings: {currency}{money(auto_total)}",
        )

    if has_coupon:
        return (
            TOAST_COUPON, 'info',
            f"✅ Coupon applied! No automatic discounts available. "
            f"Total savings: {currency}{money(coupon_discount)}",
        )
    return TOAST_NONE, 'info', "ℹ️ No automatic discounts or coupons applied."


def expected_final_total(breakdown):
    return (
        to_decimal(breakdown.get('subtotal'))
        - to_decimal(breakdown.get('couponDiscount'))
        - to_decimal(breakdown.get('totalAutomaticDiscount'))
        + to_decimal(breakdown.get('taxAmount'))
        + to_decimal(breakdown.get('shippingCost'))
    )


def check_pricing_identity(breakdown, strict=False):
    """
    Recompute finalTotal from its components.

    Returns True when consistent. On mismatch raises PricingIdentityError in
    strict mode, otherwise logs a warning and returns False.
    """
    expected = expected_final_total(breakdown)
    actual = to_decimal(breakdown.get('finalTotal'))
    if abs(expected - actual) <= IDENTITY_TOLERANCE:
        return True

    message = f"Pricing identity mismatch: finalTotal={actual}, recomputed={expected}"
    if strict:
        raise PricingIdentityError(message)
    logger.warning(message)
    return False


def pricing_signature(breakdown):
    """Stable fingerprint of a breakdown, used to detect a new one."""
    encoded = json.dumps(breakdown, sort_keys=True, default=str).encode('utf-8')
    return hashlib.sha1(encoded).hexdigest()


def summarize_pricing(breakdown, strict=None):
    """Everything the cart / checkout / orders pages render for a breakdown."""
    if strict is None:
        strict = getattr(settings, 'PRICING_STRICT_CHECK', False)
    consistent = check_pricing_identity(breakdown, strict=strict)
    variant, level, message = select_pricing_toast(breakdown)
    return {
        'lines': project_pricing(breakdown),
        'total_savings': total_savings(breakdown),
        'final_total': money(breakdown.get('finalTotal')),
        'toast': {'variant': variant, 'level': level, 'message': message},
        'consistent': consistent,
    }


def breakdown_from_order(order):
    """
    Adapt a stored order document to the breakdown shape.

    Orders keep ``pricing`` (subtotal, taxRate, taxAmount, shippingCost,
    discountAmount, discountCode, totalAmount) plus appliedCoupon and
    automaticDiscounts at the top level.
    """
    pricing = order.get('pricing') or {}
    auto_discounts = order.get('automaticDiscounts') or []
    applied = order.get('appliedCoupon') or {}

    subtotal = to_decimal(pricing.get('subtotal'))
    coupon_discount = to_decimal(applied.get('discountAmount', pricing.get('discountAmount')))
    total_auto = sum((to_decimal(d.get('discountAmount')) for d in auto_discounts), Decimal('0'))
    code = applied.get('code') or pricing.get('discountCode')

    return {
        'subtotal': subtotal,
        'couponDiscount': coupon_discount,
        'amountAfterCoupon': subtotal - coupon_discount,
        'taxRate': pricing.get('taxRate') or 0,
        'taxAmount': pricing.get('taxAmount') or 0,
        'shippingCost': pricing.get('shippingCost') or 0,
        'automaticDiscounts': auto_discounts,
        'totalAutomaticDiscount': total_auto,
        'finalTotal': pricing.get('totalAmount', order.get('totalAmount', 0)),
        'appliedCoupon': {'coupon': {'code': code}} if code else None,
    }
