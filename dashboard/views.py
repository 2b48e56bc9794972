from django.shortcuts import render
from django.contrib import messages
from django.conf import settings
import logging
from login.decorators import require_authentication, require_admin
from backend_api import fetch_all, get_backend_client, payload_dict, payload_list
from services.date_ranges import TODAY, resolve_date_range
from services.expense_summary import total_amount
from services.query_state import parse_query_state

logger = logging.getLogger(__name__)

CATALOGUE_DEFAULTS = {'category': '', 'search': ''}


def _category_id(product):
    category = product.get('category')
    if isinstance(category, dict):
        return str(category.get('_id') or '')
    return str(category or '')


@require_authentication
def dashboard_view(request):
    """Product catalogue with category and text filters kept in the URL."""
    state = parse_query_state(request.GET, CATALOGUE_DEFAULTS)
    client = get_backend_client(request)

    results = fetch_all({
        'products': lambda: client.get('/products'),
        'categories': lambda: client.get('/categories'),
    })

    if results['products'] is None or not results['products'].ok:
        logger.error("Error loading catalogue products")
        messages.error(request, "Failed to load products.")

    products = payload_list(results.get('products'), 'products')
    categories = payload_list(results.get('categories'), 'categories')

    products = [p for p in products if p.get('isActive', True)]
    if state['category']:
        products = [p for p in products if _category_id(p) == state['category']]
    if state['search']:
        needle = state['search'].lower()
        products = [
            p for p in products
            if needle in (p.get('name') or '').lower() or needle in (p.get('description') or '').lower()
        ]

    return render(request, 'dashboard/catalogue.html', {
        'products': products,
        'categories': categories,
        'state': state,
    })


@require_admin
def admin_dashboard_view(request):
    """
    Today's snapshot for admins.

    Shows:
    - Cash box net and session count
    - Expense total for today
    - Task overview counts
    - Raw materials at or below minimum stock

    Each slice is fetched independently; a failed slice renders as unavailable.
    """
    today = resolve_date_range(TODAY)
    client = get_backend_client(request)
    results = fetch_all({
        'cashbox': lambda: client.get('/cashbox/summary', {
            'startDate': today['start'], 'endDate': today['end'],
        }),
        'expenses': lambda: client.get('/expenses', {
            'startDate': today['start'], 'endDate': today['end'],
            'limit': settings.EXPENSE_SUMMARY_LIMIT,
        }),
        'tasks': lambda: client.get('/tasks/stats', {
            'startDate': today['start'], 'endDate': today['end'],
        }),
        'low_stock': lambda: client.get('/raw-materials/low-stock'),
    })

    failed = [name for name, response in results.items() if response is None or not response.ok]
    if failed:
        logger.warning(f"Admin dashboard slices unavailable: {', '.join(sorted(failed))}")

    cash_summary = None
    if 'cashbox' not in failed:
        cash_summary = payload_dict(results['cashbox']).get('summary')

    expense_total = None
    expense_count = 0
    if 'expenses' not in failed:
        expenses = payload_list(results['expenses'], 'expenses')
        expense_total = total_amount(expenses)
        expense_count = len(expenses)

    task_overview = None
    if 'tasks' not in failed:
        task_overview = payload_dict(results['tasks']).get('overview') or {}

    context = {
        'date_range': today,
        'cash_summary': cash_summary,
        'expense_total': expense_total,
        'expense_count': expense_count,
        'task_overview': task_overview,
        'low_stock': payload_list(results.get('low_stock'), 'rawMaterials'),
        'low_stock_available': 'low_stock' not in failed,
        'failed': failed,
    }
    return render(request, 'dashboard/admin.html', context)
