from django.shortcuts import render, redirect
from django.contrib import messages
from django.conf import settings
from django.urls import reverse
from django.views.decorators.http import require_POST
from datetime import datetime, date
from decimal import Decimal, InvalidOperation
import logging
from login.decorators import require_admin
from backend_api import BackendError, fetch_all, get_backend_client, payload_dict, payload_list
from services.date_ranges import THIS_WEEK, range_context
from services.expense_summary import (
    PAYMENT_TYPES,
    build_expense_summary,
    resolve_category_name,
    resolve_user_name,
)
from services.query_state import build_url, parse_query_state, safe_return_url

logger = logging.getLogger(__name__)

MAX_AMOUNT = Decimal('999999999.99')
RECENT_LIMIT = 10

EXPENSE_LIST_DEFAULTS = {
    'startDate': '',
    'endDate': '',
    'paymentType': '',
    'category': '',
    'paidBy': '',
    'page': 1,
}


def validate_expense(data):
    """
    Validate posted expense fields before anything is sent to the backend.

    Returns (payload, None) when valid, otherwise (None, error message).
    """
    amount = (data.get('amount') or '').strip()
    payment_type = data.get('paymentType') or ''
    category = data.get('category') or ''
    paid_by = data.get('paidBy') or ''
    date_str = (data.get('date') or '').strip()
    description = (data.get('description') or '').strip()

    # Validation 1: Check required fields
    if not amount or not payment_type or not category or not paid_by or not date_str:
        return None, "⚠️ Amount, payment type, category, paid by and date are required."

    # Validation 2: Check if amount is a valid number
    try:
        amount_decimal = Decimal(amount)
    except (InvalidOperation, ValueError, TypeError):
        return None, "⚠️ Amount must be a valid number."
    if not amount_decimal.is_finite():
        return None, "⚠️ Amount must be a valid number."

    # Validation 3: Check if amount is positive
    if amount_decimal <= 0:
        return None, "⚠️ Amount must be greater than zero."

    # Validation 4: Check if amount is reasonable (not too large)
    if amount_decimal > MAX_AMOUNT:
        return None, "⚠️ Amount is too large. Maximum is ₹999,999,999.99."

    # Validation 5: Check payment type
    if payment_type not in PAYMENT_TYPES:
        return None, f"⚠️ Invalid payment type. Please select from: {', '.join(PAYMENT_TYPES)}."

    # Validation 6: Check if date is valid format
    try:
        datetime.strptime(date_str, '%Y-%m-%d')
    except ValueError:
        return None, "⚠️ Invalid date format. Please use YYYY-MM-DD."

    return {
        'amount': float(amount_decimal),
        'paymentType': payment_type,
        'category': category,
        'paidBy': paid_by,
        'date': date_str,
        'description': description,
    }, None


def _form_lookups(client):
    """Active categories and users for the expense form selects."""
    results = fetch_all({
        'categories': lambda: client.get('/expense-categories', {'isActive': 'true'}),
        'users': lambda: client.get('/users'),
    })
    return payload_list(results['categories'], 'categories'), payload_list(results['users'], 'users')


@require_admin
def expenses_overview(request):
    """
    Expense dashboard for the selected range (defaults to this week).

    Shows:
    - Total and count for the range
    - Breakdown by payment type, category and user with percentages
    - The most recent expenses
    """
    ctx = range_context(request.GET, THIS_WEEK)
    if ctx['range_error']:
        messages.error(request, ctx['range_error'])

    date_range = ctx['date_range']
    client = get_backend_client(request)
    results = fetch_all({
        'expenses': lambda: client.get('/expenses', {
            'startDate': date_range['start'],
            'endDate': date_range['end'],
            'limit': settings.EXPENSE_SUMMARY_LIMIT,
        }),
        'categories': lambda: client.get('/expense-categories'),
        'users': lambda: client.get('/users'),
    })

    if results['expenses'] is None or not results['expenses'].ok:
        messages.error(request, "Failed to load expenses.")

    expenses = payload_list(results['expenses'], 'expenses')
    categories = payload_list(results['categories'], 'categories')
    users = payload_list(results['users'], 'users')

    summary = build_expense_summary(expenses, categories, users)
    recent = sorted(expenses, key=lambda e: e.get('date') or '', reverse=True)[:RECENT_LIMIT]
    for expense in recent:
        expense['category_name'] = resolve_category_name(expense.get('category'), categories)
        expense['paid_by_name'] = resolve_user_name(expense.get('paidBy'), users)

    ctx.update({
        'summary': summary,
        'recent_expenses': recent,
    })
    return render(request, 'expenses/overview.html', ctx)


@require_admin
def expense_list(request):
    """Paginated expense list; filters are kept in the querystring."""
    state = parse_query_state(request.GET, EXPENSE_LIST_DEFAULTS)
    params = dict(state)
    params['limit'] = settings.EXPENSE_PAGE_SIZE

    client = get_backend_client(request)
    results = fetch_all({
        'expenses': lambda: client.get('/expenses', params),
        'categories': lambda: client.get('/expense-categories'),
        'users': lambda: client.get('/users'),
    })

    expenses_response = results['expenses']
    pagination = {}
    if expenses_response is None or not expenses_response.ok:
        messages.error(request, "Failed to load expenses.")
    else:
        pagination = payload_dict(expenses_response).get('pagination') or {}

    categories = payload_list(results['categories'], 'categories')
    users = payload_list(results['users'], 'users')
    expenses = payload_list(expenses_response, 'expenses')
    for expense in expenses:
        expense['category_name'] = resolve_category_name(expense.get('category'), categories)
        expense['paid_by_name'] = resolve_user_name(expense.get('paidBy'), users)

    total_pages = pagination.get('pages') or 1
    path = reverse('expenses:list')
    return render(request, 'expenses/list.html', {
        'expenses': expenses,
        'categories': categories,
        'users': users,
        'payment_types': PAYMENT_TYPES,
        'state': state,
        'total': pagination.get('total') or len(expenses),
        'total_pages': total_pages,
        'current_url': build_url(path, state, EXPENSE_LIST_DEFAULTS),
        'prev_url': build_url(path, state, EXPENSE_LIST_DEFAULTS, page=state['page'] - 1) if state['page'] > 1 else None,
        'next_url': build_url(path, state, EXPENSE_LIST_DEFAULTS, page=state['page'] + 1) if state['page'] < total_pages else None,
    })


@require_admin
def create_expense(request):
    """
    GET: expense form with active categories and users.
    POST: validate, create on the backend and redirect (PRG).
    """
    client = get_backend_client(request)

    if request.method == 'POST':
        payload, error = validate_expense(request.POST)
        if error:
            messages.error(request, error)
            return redirect('expenses:create')

        try:
            response = client.post('/expenses', payload)
        except BackendError as e:
            logger.error(f"Error creating expense: {e}", exc_info=True)
            messages.error(request, "❌ Failed to add expense. Please try again.")
            return redirect('expenses:create')

        if not response.ok:
            messages.error(request, response.error_message("Failed to add expense"))
            return redirect('expenses:create')

        logger.info(f"Expense created by user {request.session.get('user_id')}: {payload['amount']} ({payload['paymentType']})")
        messages.success(request, f"✅ Expense of ₹{payload['amount']:.2f} added successfully!")
        return redirect(safe_return_url(request.POST.get('returnUrl'), reverse('expenses:overview')))

    categories, users = _form_lookups(client)
    return render(request, 'expenses/form.html', {
        'expense': {'date': date.today().isoformat(), 'paidBy': request.session.get('user_id')},
        'categories': categories,
        'users': users,
        'payment_types': PAYMENT_TYPES,
        'return_url': safe_return_url(request.GET.get('returnUrl'), reverse('expenses:overview')),
    })


@require_admin
def edit_expense(request, expense_id):
    """Edit an existing expense with the same validation as create."""
    client = get_backend_client(request)

    if request.method == 'POST':
        payload, error = validate_expense(request.POST)
        if error:
            messages.error(request, error)
            return redirect('expenses:edit', expense_id=expense_id)

        try:
            response = client.put(f'/expenses/{expense_id}', payload)
        except BackendError as e:
            logger.error(f"Error updating expense {expense_id}: {e}", exc_info=True)
            messages.error(request, "❌ Failed to update expense. Please try again.")
            return redirect('expenses:edit', expense_id=expense_id)

        if not response.ok:
            messages.error(request, response.error_message("Failed to update expense"))
            return redirect('expenses:edit', expense_id=expense_id)

        logger.info(f"Expense {expense_id} updated by user {request.session.get('user_id')}")
        messages.success(request, "✅ Expense updated successfully!")
        return redirect(safe_return_url(request.POST.get('returnUrl'), reverse('expenses:list')))

    try:
        response = client.get(f'/expenses/{expense_id}')
    except BackendError as e:
        logger.error(f"Error loading expense {expense_id}: {e}", exc_info=True)
        response = None

    if response is None or not response.ok:
        messages.error(request, "⚠️ Expense not found.")
        return redirect('expenses:list')

    expense = payload_dict(response).get('expense') or payload_dict(response)
    expense['date'] = (expense.get('date') or '')[:10]
    for key in ('category', 'paidBy'):
        if isinstance(expense.get(key), dict):
            expense[key] = expense[key].get('_id')

    categories, users = _form_lookups(client)
    return render(request, 'expenses/form.html', {
        'expense': expense,
        'expense_id': expense_id,
        'categories': categories,
        'users': users,
        'payment_types': PAYMENT_TYPES,
        'return_url': safe_return_url(request.GET.get('returnUrl'), reverse('expenses:list')),
    })


@require_admin
@require_POST
def delete_expense(request, expense_id):
    return_url = safe_return_url(request.POST.get('returnUrl'), reverse('expenses:list'))
    try:
        response = get_backend_client(request).delete(f'/expenses/{expense_id}')
    except BackendError as e:
        logger.error(f"Error deleting expense {expense_id}: {e}", exc_info=True)
        messages.error(request, "❌ Failed to delete expense. Please try again.")
        return redirect(return_url)

    if response.ok:
        logger.info(f"Expense {expense_id} deleted by user {request.session.get('user_id')}")
        messages.success(request, "🗑️ Expense deleted successfully.")
    else:
        messages.error(request, response.error_message("Failed to delete expense"))
    return redirect(return_url)


@require_admin
def expense_categories(request):
    """List, create, rename, toggle and delete expense categories."""
    client = get_backend_client(request)

    if request.method == 'POST':
        action = request.POST.get('action')
        category_id = request.POST.get('category_id')
        name = request.POST.get('name', '').strip()
        description = request.POST.get('description', '').strip()

        if action in ('create', 'update') and not name:
            messages.error(request, "⚠️ Category name is required.")
            return redirect('expenses:categories')

        try:
            if action == 'create':
                response = client.post('/expense-categories', {'name': name, 'description': description})
            elif action == 'update' and category_id:
                response = client.put(f'/expense-categories/{category_id}', {
                    'name': name,
                    'description': description,
                    'isActive': request.POST.get('isActive') == 'on',
                })
            elif action == 'toggle' and category_id:
                response = client.put(f'/expense-categories/{category_id}', {
                    'isActive': request.POST.get('isActive') != 'true',
                })
            elif action == 'delete' and category_id:
                response = client.delete(f'/expense-categories/{category_id}')
            else:
                messages.error(request, "Unknown action.")
                return redirect('expenses:categories')
        except BackendError as e:
            logger.error(f"Error saving expense category ({action}): {e}", exc_info=True)
            messages.error(request, "❌ Failed to save category.")
            return redirect('expenses:categories')

        if response.ok:
            logger.info(f"Expense category {action}: {category_id or name}")
            messages.success(request, f"✅ Category {action}d successfully." if action != 'toggle' else "✅ Category status updated.")
        else:
            messages.error(request, response.error_message(f"Failed to {action} category"))
        return redirect('expenses:categories')

    try:
        response = client.get('/expense-categories')
    except BackendError as e:
        logger.error(f"Error loading expense categories: {e}", exc_info=True)
        response = None
    if response is None or not response.ok:
        messages.error(request, "Failed to load categories.")

    return render(request, 'expenses/categories.html', {
        'categories': payload_list(response, 'categories'),
    })
