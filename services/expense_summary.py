# services/expense_summary.py

"""
Client-side aggregation of expense records for the summary tables.

Expenses arrive from the backend with ``category`` and ``paidBy`` either as raw
ID strings or as populated objects. Raw IDs are resolved through the lookup
lists fetched alongside the expenses.
"""
from collections import defaultdict
from decimal import Decimal, InvalidOperation

PAYMENT_TYPES = ('cash', 'online')
UNKNOWN_TYPE = 'unknown'
UNKNOWN_NAME = 'Unknown'


def to_decimal(value):
    """Convert a JSON number (or numeric string) to Decimal; junk becomes 0."""
    if value is None or value == '':
        return Decimal('0')
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal('0')


def _index_by_id(records):
    return {str(r.get('_id')): r for r in (records or []) if isinstance(r, dict) and r.get('_id')}


def resolve_category_name(category, categories=None, _index=None):
    """Display name for an expense's category reference."""
    if isinstance(category, dict):
        return category.get('name') or UNKNOWN_NAME
    if not category:
        return UNKNOWN_NAME
    index = _index if _index is not None else _index_by_id(categories)
    match = index.get(str(category))
    return (match or {}).get('name') or UNKNOWN_NAME


def format_user_name(user):
    name = f"{user.get('firstName') or ''} {user.get('lastName') or ''}".strip()
    return name or UNKNOWN_NAME


def resolve_user_name(user, users=None, _index=None):
    """Display name ("firstName lastName") for a paidBy / owner reference."""
    if isinstance(user, dict):
        return format_user_name(user)
    if not user:
        return UNKNOWN_NAME
    index = _index if _index is not None else _index_by_id(users)
    match = index.get(str(user))
    return format_user_name(match) if match else UNKNOWN_NAME


def total_amount(expenses):
    return sum((to_decimal(e.get('amount')) for e in (expenses or [])), Decimal('0'))


def amount_by_type(expenses):
    totals = defaultdict(Decimal)
    for exp in (expenses or []):
        payment_type = exp.get('paymentType')
        if payment_type not in PAYMENT_TYPES:
            payment_type = UNKNOWN_TYPE
        totals[payment_type] += to_decimal(exp.get('amount'))
    return dict(totals)


def _sorted_rows(totals):
    # sorted() is stable: equal sums keep first-appearance order
    return [
        {'name': name, 'value': value}
        for name, value in sorted(totals.items(), key=lambda x: x[1], reverse=True)
    ]


def amount_by_category(expenses, categories):
    index = _index_by_id(categories)
    totals = {}
    for exp in (expenses or []):
        name = resolve_category_name(exp.get('category'), _index=index)
        totals[name] = totals.get(name, Decimal('0')) + to_decimal(exp.get('amount'))
    return _sorted_rows(totals)


def amount_by_user(expenses, users):
    index = _index_by_id(users)
    totals = {}
    for exp in (expenses or []):
        name = resolve_user_name(exp.get('paidBy'), _index=index)
        totals[name] = totals.get(name, Decimal('0')) + to_decimal(exp.get('amount'))
    return _sorted_rows(totals)


def with_percentages(rows, total):
    """Attach a one-decimal percentage string of ``total`` to each row."""
    result = []
    for row in rows:
        percent = (row['value'] / total * 100) if total else Decimal('0')
        result.append({**row, 'percentage': f"{percent:.1f}"})
    return result


def build_expense_summary(expenses, categories, users):
    """
    Everything the expense overview renders in its summary cards.

    Returns:
        dict with total, count, by_type / by_category / by_user rows (each
        row carries name, value and percentage)
    """
    total = total_amount(expenses)
    type_rows = _sorted_rows(amount_by_type(expenses))
    return {
        'total': total,
        'count': len(expenses or []),
        'by_type': with_percentages(type_rows, total),
        'by_category': with_percentages(amount_by_category(expenses, categories), total),
        'by_user': with_percentages(amount_by_user(expenses, users), total),
    }
