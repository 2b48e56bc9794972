from django.shortcuts import render, redirect
from django.contrib import messages
from django.views.decorators.http import require_POST
from datetime import date
from decimal import Decimal, InvalidOperation
import logging
from login.decorators import require_admin
from backend_api import BackendError, get_backend_client, payload_list
from .forms import CouponForm, DiscountForm

logger = logging.getLogger(__name__)

SETTING_CATEGORIES = [
    ('pricing', 'Pricing'),
    ('shipping', 'Shipping'),
    ('general', 'General'),
]

NUMERIC_SETTINGS = {'tax_rate', 'shipping_cost', 'free_shipping_threshold'}

# name -> (collection path, form class, list url name, label)
PROMOTIONS = {
    'coupon': ('/coupons', CouponForm, 'pricing:coupons', 'Coupon'),
    'discount': ('/discounts', DiscountForm, 'pricing:discounts', 'Discount'),
}


def promotion_status(record, today=None):
    """Inactive / Upcoming / Expired / Limit Reached / Active for a coupon or discount."""
    today = today or date.today()
    if not record.get('isActive'):
        return 'Inactive'
    valid_from = (record.get('validFrom') or '')[:10]
    valid_until = (record.get('validUntil') or '')[:10]
    if valid_from and today.isoformat() < valid_from:
        return 'Upcoming'
    if valid_until and today.isoformat() > valid_until:
        return 'Expired'
    usage_limit = record.get('usageLimit') or 0
    if usage_limit and (record.get('usedCount') or 0) >= usage_limit:
        return 'Limit Reached'
    return 'Active'


def _load_promotions(request, kind):
    path, _, _, label = PROMOTIONS[kind]
    try:
        response = get_backend_client(request).get(path)
    except BackendError as e:
        logger.error(f"Error loading {kind}s: {e}", exc_info=True)
        response = None
    if response is None or not response.ok:
        messages.error(request, f"Failed to load {label.lower()}s")
    records = payload_list(response, f'{kind}s')
    for record in records:
        record['status'] = promotion_status(record)
    return records


def _find(records, record_id):
    for record in records:
        if str(record.get('_id')) == str(record_id):
            return record
    return None


def _promotion_list(request, kind):
    template = f'pricing/{kind}s.html'
    return render(request, template, {kind + 's': _load_promotions(request, kind)})


def _promotion_form(request, kind, record_id=None):
    """Create (record_id None) or edit a coupon / discount."""
    path, form_class, list_url, label = PROMOTIONS[kind]
    client = get_backend_client(request)

    if request.method == 'POST':
        form = form_class(request.POST)
        if form.is_valid():
            payload = form.to_payload()
            try:
                if record_id:
                    response = client.put(f'{path}/{record_id}', payload)
                else:
                    response = client.post(path, payload)
            except BackendError as e:
                logger.error(f"Error saving {kind} {record_id or ''}: {e}", exc_info=True)
                messages.error(request, f"Failed to save {label.lower()}")
                return render(request, 'pricing/promotion_form.html', {
                    'form': form, 'kind': kind, 'label': label, 'record_id': record_id,
                })

            if response.ok:
                action = 'updated' if record_id else 'created'
                logger.info(f"{label} {record_id or payload.get('code') or payload.get('name')} {action}")
                messages.success(request, f"{label} {action} successfully")
                return redirect(list_url)
            messages.error(request, response.error_message(f"Failed to save {label.lower()}"))
        else:
            messages.error(request, "Please correct the errors below.")
    elif record_id:
        record = _find(_load_promotions(request, kind), record_id)
        if record is None:
            messages.error(request, f"{label} not found")
            return redirect(list_url)
        form = form_class(initial=form_class.initial_from(record))
    else:
        form = form_class()

    return render(request, 'pricing/promotion_form.html', {
        'form': form, 'kind': kind, 'label': label, 'record_id': record_id,
    })


def _promotion_toggle(request, kind, record_id):
    path, _, list_url, label = PROMOTIONS[kind]
    is_active = request.POST.get('isActive') != 'true'
    try:
        response = get_backend_client(request).put(f'{path}/{record_id}', {'isActive': is_active})
    except BackendError as e:
        logger.error(f"Error toggling {kind} {record_id}: {e}", exc_info=True)
        messages.error(request, f"Failed to update {label.lower()}")
        return redirect(list_url)

    if response.ok:
        logger.info(f"{label} {record_id} {'activated' if is_active else 'deactivated'}")
        messages.success(request, f"{label} {'activated' if is_active else 'deactivated'}")
    else:
        messages.error(request, response.error_message(f"Failed to update {label.lower()}"))
    return redirect(list_url)


def _promotion_delete(request, kind, record_id):
    path, _, list_url, label = PROMOTIONS[kind]
    try:
        response = get_backend_client(request).delete(f'{path}/{record_id}')
    except BackendError as e:
        logger.error(f"Error deleting {kind} {record_id}: {e}", exc_info=True)
        messages.error(request, f"Failed to delete {label.lower()}")
        return redirect(list_url)

    if response.ok:
        logger.info(f"{label} {record_id} deleted")
        messages.success(request, f"{label} deleted successfully")
    else:
        messages.error(request, response.error_message(f"Failed to delete {label.lower()}"))
    return redirect(list_url)


@require_admin
def coupon_list(request):
    return _promotion_list(request, 'coupon')


@require_admin
def coupon_create(request):
    return _promotion_form(request, 'coupon')


@require_admin
def coupon_edit(request, coupon_id):
    return _promotion_form(request, 'coupon', coupon_id)


@require_admin
@require_POST
def coupon_toggle(request, coupon_id):
    return _promotion_toggle(request, 'coupon', coupon_id)


@require_admin
@require_POST
def coupon_delete(request, coupon_id):
    return _promotion_delete(request, 'coupon', coupon_id)


@require_admin
def discount_list(request):
    return _promotion_list(request, 'discount')


@require_admin
def discount_create(request):
    return _promotion_form(request, 'discount')


@require_admin
def discount_edit(request, discount_id):
    return _promotion_form(request, 'discount', discount_id)


@require_admin
@require_POST
def discount_toggle(request, discount_id):
    return _promotion_toggle(request, 'discount', discount_id)


@require_admin
@require_POST
def discount_delete(request, discount_id):
    return _promotion_delete(request, 'discount', discount_id)


def _coerce_setting(key, raw):
    """Numeric settings are sent as numbers; returns (value, error)."""
    if key not in NUMERIC_SETTINGS:
        return raw.strip(), None
    try:
        value = Decimal(raw.strip() or '0')
    except InvalidOperation:
        return None, f"{key.replace('_', ' ').capitalize()} must be a number."
    if not value.is_finite() or value < 0:
        return None, f"{key.replace('_', ' ').capitalize()} must be 0 or greater."
    if key == 'tax_rate' and value > 1:
        return None, "Tax rate is a decimal fraction (0.18 = 18%) and cannot exceed 1."
    return float(value), None


@require_admin
def pricing_settings(request):
    """
    Store-wide settings (tax rate, shipping, store details) grouped by category.

    POST with action=initialize seeds the backend defaults; otherwise every
    listed setting is saved in one PUT /settings/multiple.
    """
    client = get_backend_client(request)

    try:
        response = client.get('/settings')
    except BackendError as e:
        logger.error(f"Error loading settings: {e}", exc_info=True)
        response = None
    if response is None or not response.ok:
        messages.error(request, "Failed to load settings")
    settings_list = payload_list(response, 'settings')

    if request.method == 'POST':
        if request.POST.get('action') == 'initialize':
            try:
                init_response = client.post('/settings/initialize')
            except BackendError as e:
                logger.error(f"Error initializing settings: {e}", exc_info=True)
                messages.error(request, "Failed to initialize settings")
                return redirect('pricing:settings')
            if init_response.ok:
                logger.info("Default settings initialized")
                messages.success(request, "Default settings initialized")
            else:
                messages.error(request, init_response.error_message("Failed to initialize settings"))
            return redirect('pricing:settings')

        to_update = []
        for setting in settings_list:
            key = setting.get('key')
            field = f'setting__{key}'
            value = setting.get('value')
            if field in request.POST:
                value, error = _coerce_setting(key, request.POST[field])
                if error:
                    messages.error(request, error)
                    return redirect('pricing:settings')
            to_update.append({
                'key': key,
                'value': value,
                'description': setting.get('description'),
                'category': setting.get('category'),
                'isActive': setting.get('isActive', True),
            })

        if not to_update:
            messages.error(request, "No settings to save. Initialize the defaults first.")
            return redirect('pricing:settings')

        try:
            save_response = client.put('/settings/multiple', {'settings': to_update})
        except BackendError as e:
            logger.error(f"Error saving settings: {e}", exc_info=True)
            messages.error(request, "Failed to save settings")
            return redirect('pricing:settings')

        if save_response.ok:
            logger.info(f"Saved {len(to_update)} settings")
            messages.success(request, "Settings saved successfully")
        else:
            messages.error(request, save_response.error_message("Failed to save settings"))
        return redirect('pricing:settings')

    grouped = []
    for category, label in SETTING_CATEGORIES:
        rows = [s for s in settings_list if s.get('category') == category]
        if rows:
            grouped.append({'label': label, 'settings': rows})
    known = {c for c, _ in SETTING_CATEGORIES}
    other = [s for s in settings_list if s.get('category') not in known]
    if other:
        grouped.append({'label': 'Other', 'settings': other})

    return render(request, 'pricing/settings.html', {
        'groups': grouped,
        'has_settings': bool(settings_list),
    })
