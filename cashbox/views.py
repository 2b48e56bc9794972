from django.shortcuts import render, redirect
from django.contrib import messages
from django.conf import settings
from django.urls import reverse
from django.views.decorators.http import require_POST
from decimal import Decimal, InvalidOperation
from datetime import date
import logging
from login.decorators import require_admin
from backend_api import BackendError, fetch_all, get_backend_client, payload_dict, payload_list
from services.date_ranges import TODAY, range_context
from services.expense_summary import to_decimal
from services.query_state import build_url, page_count, parse_query_state, safe_return_url

logger = logging.getLogger(__name__)

SESSION_STATUSES = ['open', 'closed']

SESSION_LIST_DEFAULTS = {
    'sessionType': '',
    'startDate': '',
    'endDate': '',
    'status': '',
    'page': 1,
}


def _parse_amount(raw, label):
    """
    Parse a non-negative money amount from form input.

    Returns (Decimal, None) or (None, error message).
    """
    raw = (raw or '').strip()
    if not raw:
        return None, f"{label} is required."
    try:
        amount = Decimal(raw)
    except (InvalidOperation, ValueError):
        return None, f"{label} must be a valid number."
    if not amount.is_finite():
        return None, f"{label} must be a valid number."
    if amount < 0:
        return None, f"Please enter a valid {label.lower()} (≥ 0)."
    return amount, None


def _session_net(session):
    if session.get('status') != 'closed' or session.get('closingAmount') is None:
        return None
    return to_decimal(session.get('closingAmount')) - to_decimal(session.get('openingAmount'))


@require_admin
def cashbox_overview(request):
    """Summary and sessions for the selected range (defaults to today)."""
    ctx = range_context(request.GET, TODAY)
    if ctx['range_error']:
        messages.error(request, ctx['range_error'])

    date_range = ctx['date_range']
    params = {'startDate': date_range['start'], 'endDate': date_range['end']}
    client = get_backend_client(request)
    results = fetch_all({
        'sessions': lambda: client.get('/cashbox/sessions', params),
        'summary': lambda: client.get('/cashbox/summary', params),
    })

    if results['sessions'] is None or not results['sessions'].ok:
        messages.error(request, "Failed to load cash sessions.")
    summary = None
    if results['summary'] is not None and results['summary'].ok:
        summary = payload_dict(results['summary']).get('summary')

    sessions = payload_list(results['sessions'], 'sessions')
    for session in sessions:
        session['net'] = _session_net(session)

    ctx.update({
        'sessions': sessions,
        'summary': summary,
        'open_count': sum(1 for s in sessions if s.get('status') == 'open'),
        'closed_count': sum(1 for s in sessions if s.get('status') == 'closed'),
    })
    return render(request, 'cashbox/overview.html', ctx)


@require_admin
def session_list(request):
    """Paginated, filterable session list; the filters live in the querystring."""
    state = parse_query_state(request.GET, SESSION_LIST_DEFAULTS)
    page_size = settings.CASHBOX_PAGE_SIZE
    params = {key: value for key, value in state.items() if key != 'page'}
    params.update({'page': state['page'], 'limit': page_size})

    client = get_backend_client(request)
    results = fetch_all({
        'sessions': lambda: client.get('/cashbox/sessions', params),
        'types': lambda: client.get('/cashbox/session-types'),
    })

    sessions_response = results['sessions']
    total = 0
    if sessions_response is None or not sessions_response.ok:
        messages.error(request, "Failed to load cash sessions.")
    else:
        total = payload_dict(sessions_response).get('total') or 0

    sessions = payload_list(sessions_response, 'sessions')
    for session in sessions:
        session['net'] = _session_net(session)

    total_pages = page_count(total, page_size)
    path = reverse('cashbox:sessions')
    current_url = build_url(path, state, SESSION_LIST_DEFAULTS)
    context = {
        'sessions': sessions,
        'session_types': payload_list(results['types'], 'types'),
        'statuses': SESSION_STATUSES,
        'state': state,
        'total': total,
        'total_pages': total_pages,
        'current_url': current_url,
        'prev_url': build_url(path, state, SESSION_LIST_DEFAULTS, page=state['page'] - 1) if state['page'] > 1 else None,
        'next_url': build_url(path, state, SESSION_LIST_DEFAULTS, page=state['page'] + 1) if state['page'] < total_pages else None,
    }
    return render(request, 'cashbox/sessions.html', context)


@require_admin
def open_session(request):
    """Open a single cash session and go to its detail page."""
    client = get_backend_client(request)

    if request.method == 'POST':
        amount, error = _parse_amount(request.POST.get('openingAmount'), 'Opening amount')
        if error:
            messages.error(request, error)
            return redirect('cashbox:open_session')

        payload = {
            'openingAmount': float(amount),
            'date': request.POST.get('date') or date.today().isoformat(),
        }
        if request.POST.get('sessionTypeId'):
            payload['sessionTypeId'] = request.POST['sessionTypeId']
        notes = request.POST.get('notes', '').strip()
        if notes:
            payload['notes'] = notes

        try:
            response = client.post('/cashbox/sessions', payload)
        except BackendError as e:
            logger.error(f"Error opening cash session: {e}", exc_info=True)
            messages.error(request, "Failed to open session. Please try again.")
            return redirect('cashbox:open_session')

        if not response.ok:
            messages.error(request, response.error_message("Failed to open session"))
            return redirect('cashbox:open_session')

        session = payload_dict(response).get('session') or {}
        logger.info(f"Cash session {session.get('_id')} opened by user {request.session.get('user_id')}")
        messages.success(request, "Session opened")
        if session.get('_id'):
            return redirect('cashbox:session_detail', session_id=session['_id'])
        return redirect('cashbox:sessions')

    try:
        types = payload_list(client.get('/cashbox/session-types', {'isActive': 'true'}), 'types')
    except BackendError as e:
        logger.error(f"Error loading session types: {e}", exc_info=True)
        types = []

    return render(request, 'cashbox/open.html', {
        'session_types': types,
        'today': date.today().isoformat(),
    })


@require_admin
def session_detail(request, session_id):
    """
    Show one session and edit its opening / closing amounts and notes.

    Each edit is its own POST with an ``action`` of opening, closing or notes.
    """
    client = get_backend_client(request)

    if request.method == 'POST':
        action = request.POST.get('action')
        if action == 'opening':
            amount, error = _parse_amount(request.POST.get('openingAmount'), 'Opening amount')
            payload = {'openingAmount': float(amount)} if not error else None
        elif action == 'closing':
            amount, error = _parse_amount(request.POST.get('closingAmount'), 'Closing amount')
            payload = {'closingAmount': float(amount)} if not error else None
        elif action == 'notes':
            error = None
            payload = {'notes': request.POST.get('notes', '').strip()}
        else:
            error = "Unknown action."
            payload = None

        if error:
            messages.error(request, error)
            return redirect('cashbox:session_detail', session_id=session_id)

        try:
            response = client.put(f'/cashbox/sessions/{session_id}', payload)
        except BackendError as e:
            logger.error(f"Error updating cash session {session_id}: {e}", exc_info=True)
            messages.error(request, "Failed to update session.")
            return redirect('cashbox:session_detail', session_id=session_id)

        if response.ok:
            logger.info(f"Cash session {session_id} updated ({action})")
            messages.success(request, f"{action.capitalize()} updated")
        else:
            messages.error(request, response.error_message(f"Failed to update {action}"))
        return redirect('cashbox:session_detail', session_id=session_id)

    try:
        response = client.get(f'/cashbox/sessions/{session_id}')
    except BackendError as e:
        logger.error(f"Error loading cash session {session_id}: {e}", exc_info=True)
        response = None

    if response is None or not response.ok:
        messages.error(request, "Failed to load session")
        return redirect('cashbox:sessions')

    session = payload_dict(response).get('session') or payload_dict(response)
    session['net'] = _session_net(session)
    return_url = safe_return_url(request.GET.get('returnUrl'), reverse('cashbox:sessions'))
    return render(request, 'cashbox/detail.html', {
        'cash_session': session,
        'return_url': return_url,
    })


@require_admin
def close_session(request, session_id):
    if request.method == 'POST':
        amount, error = _parse_amount(request.POST.get('closingAmount'), 'Closing amount')
        if error:
            messages.error(request, error)
            return redirect('cashbox:close_session', session_id=session_id)

        payload = {'closingAmount': float(amount)}
        notes = request.POST.get('notes', '').strip()
        if notes:
            payload['notes'] = notes

        try:
            response = get_backend_client(request).post(f'/cashbox/sessions/{session_id}/close', payload)
        except BackendError as e:
            logger.error(f"Error closing cash session {session_id}: {e}", exc_info=True)
            messages.error(request, "Failed to close session.")
            return redirect('cashbox:close_session', session_id=session_id)

        if not response.ok:
            messages.error(request, response.error_message("Failed to close session"))
            return redirect('cashbox:close_session', session_id=session_id)

        logger.info(f"Cash session {session_id} closed by user {request.session.get('user_id')}")
        messages.success(request, "Session closed")
        return redirect('cashbox:session_detail', session_id=session_id)

    return render(request, 'cashbox/close.html', {'session_id': session_id})


@require_admin
@require_POST
def delete_session(request, session_id):
    """Delete a session, then return to the page it was deleted from."""
    return_url = safe_return_url(request.POST.get('returnUrl'), reverse('cashbox:sessions'))
    try:
        response = get_backend_client(request).delete(f'/cashbox/sessions/{session_id}')
    except BackendError as e:
        logger.error(f"Error deleting cash session {session_id}: {e}", exc_info=True)
        messages.error(request, "Failed to delete session.")
        return redirect(return_url)

    if response.ok:
        logger.info(f"Cash session {session_id} deleted by user {request.session.get('user_id')}")
        messages.success(request, "Session deleted successfully")
    else:
        messages.error(request, response.error_message("Failed to delete session"))
    return redirect(return_url)


@require_admin
def daily_sessions(request):
    """Open one session per active session type for a date."""
    client = get_backend_client(request)
    day = request.POST.get('date') or request.GET.get('date') or date.today().isoformat()
    try:
        date.fromisoformat(day)
    except ValueError:
        messages.error(request, "Invalid date. Please use YYYY-MM-DD.")
        return redirect('cashbox:daily_sessions')

    if request.method == 'POST':
        type_ids = request.POST.getlist('sessionTypeId')
        amounts = request.POST.getlist('openingAmount')
        notes = request.POST.getlist('notes')

        if not type_ids:
            messages.error(request, "No session types to open.")
            return redirect(f"{reverse('cashbox:daily_sessions')}?date={day}")

        sessions = []
        for index, type_id in enumerate(type_ids):
            if not type_id:
                messages.error(request, "All sessions must have a valid session type")
                return redirect(f"{reverse('cashbox:daily_sessions')}?date={day}")
            raw_amount = amounts[index] if index < len(amounts) else ''
            amount, error = _parse_amount(raw_amount or '0', 'Opening amount')
            if error:
                messages.error(request, "All sessions must have a valid opening amount (0 or greater)")
                return redirect(f"{reverse('cashbox:daily_sessions')}?date={day}")
            entry = {'sessionTypeId': type_id, 'openingAmount': float(amount)}
            note = notes[index].strip() if index < len(notes) else ''
            if note:
                entry['notes'] = note
            sessions.append(entry)

        try:
            response = client.post('/cashbox/daily-sessions', {'date': day, 'sessions': sessions})
        except BackendError as e:
            logger.error(f"Error creating daily sessions for {day}: {e}", exc_info=True)
            messages.error(request, "Failed to create sessions")
            return redirect(f"{reverse('cashbox:daily_sessions')}?date={day}")

        if not response.ok:
            messages.error(request, response.error_message("Failed to create sessions"))
            return redirect(f"{reverse('cashbox:daily_sessions')}?date={day}")

        logger.info(f"Created {len(sessions)} daily cash sessions for {day}")
        messages.success(request, "Daily sessions created successfully")
        return redirect(safe_return_url(request.POST.get('returnUrl'), reverse('cashbox:overview')))

    results = fetch_all({
        'types': lambda: client.get('/cashbox/session-types', {'isActive': 'true'}),
        'existing': lambda: client.get('/cashbox/sessions', {'startDate': day, 'endDate': day}),
    })
    if results['types'] is None or not results['types'].ok:
        messages.error(request, "Failed to load data")

    return render(request, 'cashbox/daily.html', {
        'date': day,
        'session_types': payload_list(results['types'], 'types'),
        'existing_sessions': payload_list(results['existing'], 'sessions'),
    })


@require_admin
def session_type_settings(request):
    """List, create, rename and delete the cash session types."""
    client = get_backend_client(request)

    if request.method == 'POST':
        action = request.POST.get('action')
        type_id = request.POST.get('type_id')
        name = request.POST.get('name', '').strip()
        description = request.POST.get('description', '').strip()

        try:
            if action == 'create':
                if not name:
                    messages.error(request, "Name is required")
                    return redirect('cashbox:settings')
                response = client.post('/cashbox/session-types', {'name': name, 'description': description})
                success = "Session type created"
            elif action == 'update' and type_id:
                if not name:
                    messages.error(request, "Name is required")
                    return redirect('cashbox:settings')
                response = client.put(f'/cashbox/session-types/{type_id}', {
                    'name': name,
                    'description': description,
                    'isActive': request.POST.get('isActive') == 'on',
                })
                success = "Session type updated"
            elif action == 'delete' and type_id:
                response = client.delete(f'/cashbox/session-types/{type_id}')
                success = "Session type deleted"
            else:
                messages.error(request, "Unknown action.")
                return redirect('cashbox:settings')
        except BackendError as e:
            logger.error(f"Error saving session type ({action}): {e}", exc_info=True)
            messages.error(request, "Failed to save session type.")
            return redirect('cashbox:settings')

        if response.ok:
            logger.info(f"Session type {action}: {type_id or name}")
            messages.success(request, success)
        else:
            messages.error(request, response.error_message(f"Failed to {action} session type"))
        return redirect('cashbox:settings')

    try:
        response = client.get('/cashbox/session-types')
    except BackendError as e:
        logger.error(f"Error loading session types: {e}", exc_info=True)
        response = None
    if response is None or not response.ok:
        messages.error(request, "Failed to load session types")

    return render(request, 'cashbox/settings.html', {
        'session_types': payload_list(response, 'types'),
    })
