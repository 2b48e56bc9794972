from django import template

from services.expense_summary import format_user_name, to_decimal
from services.pricing_summary import money as round_money

register = template.Library()


@register.filter
def money(value):
    """Two-decimal amount prefixed with the configured currency symbol."""
    from django.conf import settings
    amount = round_money(value)
    sign = '-' if amount < 0 else ''
    return f"{sign}{getattr(settings, 'CURRENCY_SYMBOL', '₹')}{abs(amount):,.2f}"


@register.filter
def get_item(mapping, key):
    if isinstance(mapping, dict):
        return mapping.get(key)
    return None


@register.filter
def display_name(value):
    """Name of a populated reference (user, category, product) or the raw value."""
    if isinstance(value, dict):
        if value.get('firstName') or value.get('lastName'):
            return format_user_name(value)
        return value.get('name') or value.get('email') or value.get('_id') or ''
    return value or ''


@register.filter
def stock_status(material):
    """low / medium / good for a raw material's current vs minimum stock."""
    current = to_decimal(material.get('currentStock'))
    minimum = to_decimal(material.get('minimumStock'))
    if current <= minimum:
        return 'low'
    if current <= minimum * to_decimal('1.5'):
        return 'medium'
    return 'good'


@register.filter
def ref_id(value):
    if isinstance(value, dict):
        return value.get('_id') or value.get('id') or ''
    return value or ''


@register.filter
def humanize(value):
    """'in_progress' -> 'In Progress'"""
    return str(value or '').replace('_', ' ').title()
