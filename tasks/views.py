from django.shortcuts import render, redirect
from django.contrib import messages
from django.conf import settings
from django.urls import reverse
from django.views.decorators.http import require_POST
from datetime import date
import logging
from login.decorators import require_admin
from backend_api import BackendError, fetch_all, get_backend_client, payload_dict, payload_list
from services.date_ranges import CUSTOM, THIS_WEEK, InvalidDateRange, range_context, resolve_date_range
from services.query_state import build_url, parse_query_state, safe_return_url
from .forms import (
    CHECKLIST_TYPE_CHOICES,
    PRIORITY_CHOICES,
    STATUS_CHOICES,
    TASK_FOR_CHOICES,
    TaskForm,
    TaskTemplateForm,
)

logger = logging.getLogger(__name__)

OVERVIEW_TASK_LIMIT = 10

TASK_LIST_DEFAULTS = {
    'startDate': '',
    'endDate': '',
    'status': '',
    'priority': '',
    'taskFor': '',
    'checklistType': '',
    'page': 1,
}

TEMPLATE_LIST_DEFAULTS = {'checklistType': '', 'taskFor': '', 'isActive': ''}

TRIGGERS = ('daily', 'weekly', 'monthly')

EMPTY_STATS = {
    'total': 0,
    'pending': 0,
    'inProgress': 0,
    'completed': 0,
    'cancelled': 0,
    'onHold': 0,
}


def _get_or_none(client, path, params=None):
    try:
        return client.get(path, params)
    except BackendError as e:
        logger.error(f"Error loading {path}: {e}", exc_info=True)
        return None


def _users(client):
    return payload_list(_get_or_none(client, '/users'), 'users')


def _filter_context():
    return {
        'status_choices': STATUS_CHOICES,
        'priority_choices': PRIORITY_CHOICES,
        'task_for_choices': TASK_FOR_CHOICES,
        'checklist_choices': CHECKLIST_TYPE_CHOICES,
    }


@require_admin
def tasks_overview(request):
    """
    Task dashboard for the selected range (defaults to this week).

    Shows the status counters, the checklist breakdown and the latest tasks.
    """
    ctx = range_context(request.GET, THIS_WEEK)
    if ctx['range_error']:
        messages.error(request, ctx['range_error'])

    date_range = ctx['date_range']
    range_params = {'startDate': date_range['start'], 'endDate': date_range['end']}
    client = get_backend_client(request)
    results = fetch_all({
        'tasks': lambda: client.get('/tasks', {**range_params, 'limit': OVERVIEW_TASK_LIMIT}),
        'stats': lambda: client.get('/tasks/stats', range_params),
        'users': lambda: client.get('/users'),
    })

    if results['tasks'] is None or not results['tasks'].ok:
        messages.error(request, "Failed to load tasks.")

    stats_body = payload_dict(results['stats'])
    if results['stats'] is None or not results['stats'].ok:
        messages.error(request, "Failed to load task statistics.")

    ctx.update({
        'tasks': payload_list(results['tasks'], 'tasks'),
        'overview': {**EMPTY_STATS, **(stats_body.get('overview') or {})},
        'checklist_breakdown': stats_body.get('checklistBreakdown') or [],
        'users': payload_list(results['users'], 'users'),
    })
    return render(request, 'tasks/overview.html', ctx)


@require_admin
def task_list(request):
    """Paginated task list; the filters travel in the URL and into returnUrl."""
    state = parse_query_state(request.GET, TASK_LIST_DEFAULTS)
    params = dict(state)
    params['limit'] = settings.TASK_PAGE_SIZE

    client = get_backend_client(request)
    response = _get_or_none(client, '/tasks', params)
    pagination = {}
    if response is None or not response.ok:
        messages.error(request, "Failed to load tasks.")
    else:
        pagination = payload_dict(response).get('pagination') or {}

    total_pages = pagination.get('pages') or 1
    path = reverse('tasks:list')
    ctx = _filter_context()
    tasks = payload_list(response, 'tasks')
    ctx.update({
        'tasks': tasks,
        'state': state,
        'total': pagination.get('total') or len(tasks),
        'total_pages': total_pages,
        'current_url': build_url(path, state, TASK_LIST_DEFAULTS),
        'prev_url': build_url(path, state, TASK_LIST_DEFAULTS, page=state['page'] - 1) if state['page'] > 1 else None,
        'next_url': build_url(path, state, TASK_LIST_DEFAULTS, page=state['page'] + 1) if state['page'] < total_pages else None,
    })
    return render(request, 'tasks/list.html', ctx)


def _template_prefill(client, template_id):
    response = _get_or_none(client, f'/task-templates/{template_id}')
    if response is None or not response.ok:
        return None
    body = payload_dict(response)
    return body.get('template') or body


@require_admin
def create_task(request):
    """
    GET: task form, optionally pre-filled from ``?template=<id>``.
    POST: validate and create on the backend.
    """
    client = get_backend_client(request)
    users = _users(client)
    return_url = safe_return_url(request.POST.get('returnUrl') or request.GET.get('returnUrl'), reverse('tasks:list'))

    if request.method == 'POST':
        form = TaskForm(request.POST, users=users)
        if form.is_valid():
            payload = form.to_payload()
            try:
                response = client.post('/tasks', payload)
            except BackendError as e:
                logger.error(f"Error creating task: {e}", exc_info=True)
                response = None
                messages.error(request, "❌ Failed to create task. Please try again.")

            if response is not None and response.ok:
                logger.info(f"Task '{payload['title']}' created for owner {payload['taskOwner']}")
                messages.success(request, "✅ Task created successfully!")
                return redirect(return_url)
            if response is not None:
                messages.error(request, response.error_message("Failed to create task"))
        else:
            messages.error(request, "Please correct the errors below.")
    else:
        initial = {'task_owner': request.session.get('user_id')}
        template_id = request.GET.get('template')
        if template_id:
            template = _template_prefill(client, template_id)
            if template is None:
                messages.error(request, "⚠️ Task template not found.")
            else:
                initial.update(TaskForm.initial_from_template(template))
        form = TaskForm(initial=initial, users=users)

    return render(request, 'tasks/task_form.html', {
        'form': form,
        'return_url': return_url,
    })


@require_admin
def edit_task(request, task_id):
    client = get_backend_client(request)
    users = _users(client)
    return_url = safe_return_url(request.POST.get('returnUrl') or request.GET.get('returnUrl'), reverse('tasks:list'))

    if request.method == 'POST':
        form = TaskForm(request.POST, users=users)
        if form.is_valid():
            try:
                response = client.put(f'/tasks/{task_id}', form.to_payload())
            except BackendError as e:
                logger.error(f"Error updating task {task_id}: {e}", exc_info=True)
                response = None
                messages.error(request, "❌ Failed to update task. Please try again.")

            if response is not None and response.ok:
                logger.info(f"Task {task_id} updated by user {request.session.get('user_id')}")
                messages.success(request, "✅ Task updated successfully!")
                return redirect(return_url)
            if response is not None:
                messages.error(request, response.error_message("Failed to update task"))
        else:
            messages.error(request, "Please correct the errors below.")
        return render(request, 'tasks/task_form.html', {
            'form': form, 'task_id': task_id, 'return_url': return_url,
        })

    response = _get_or_none(client, f'/tasks/{task_id}')
    if response is None or not response.ok:
        messages.error(request, "⚠️ Task not found.")
        return redirect(return_url)

    task = payload_dict(response).get('task') or payload_dict(response)
    form = TaskForm(initial=TaskForm.initial_from(task), users=users)
    return render(request, 'tasks/task_form.html', {
        'form': form, 'task_id': task_id, 'return_url': return_url,
    })


@require_admin
def task_detail(request, task_id):
    """Task details; POST changes the status only."""
    client = get_backend_client(request)
    return_url = safe_return_url(request.POST.get('returnUrl') or request.GET.get('returnUrl'), reverse('tasks:list'))

    if request.method == 'POST':
        status = request.POST.get('status')
        if status not in dict(STATUS_CHOICES):
            messages.error(request, "⚠️ Invalid status.")
            return redirect(build_url(reverse('tasks:detail', args=[task_id]), {'returnUrl': return_url}))
        try:
            response = client.put(f'/tasks/{task_id}', {'status': status})
        except BackendError as e:
            logger.error(f"Error updating status of task {task_id}: {e}", exc_info=True)
            messages.error(request, "❌ Failed to update task status.")
            return redirect(return_url)

        if response.ok:
            logger.info(f"Task {task_id} status set to {status}")
            messages.success(request, f"✅ Task marked as {dict(STATUS_CHOICES)[status]}.")
        else:
            messages.error(request, response.error_message("Failed to update task status"))
        return redirect(return_url)

    response = _get_or_none(client, f'/tasks/{task_id}')
    if response is None or not response.ok:
        messages.error(request, "⚠️ Task not found.")
        return redirect(return_url)

    return render(request, 'tasks/detail.html', {
        'task': payload_dict(response).get('task') or payload_dict(response),
        'task_id': task_id,
        'status_choices': STATUS_CHOICES,
        'return_url': return_url,
    })


@require_admin
@require_POST
def delete_task(request, task_id):
    return_url = safe_return_url(request.POST.get('returnUrl'), reverse('tasks:list'))
    try:
        response = get_backend_client(request).delete(f'/tasks/{task_id}')
    except BackendError as e:
        logger.error(f"Error deleting task {task_id}: {e}", exc_info=True)
        messages.error(request, "❌ Failed to delete task.")
        return redirect(return_url)

    if response.ok:
        logger.info(f"Task {task_id} deleted by user {request.session.get('user_id')}")
        messages.success(request, "🗑️ Task deleted successfully.")
    else:
        messages.error(request, response.error_message("Failed to delete task"))
    return redirect(return_url)


@require_admin
def template_list(request):
    state = parse_query_state(request.GET, TEMPLATE_LIST_DEFAULTS)
    response = _get_or_none(get_backend_client(request), '/task-templates', state)
    if response is None or not response.ok:
        messages.error(request, "Failed to load task templates.")

    ctx = _filter_context()
    ctx.update({
        'templates': payload_list(response, 'templates'),
        'state': state,
    })
    return render(request, 'tasks/templates.html', ctx)


@require_admin
def template_form(request, template_id=None):
    """Create (template_id None) or edit a task template."""
    client = get_backend_client(request)

    if request.method == 'POST':
        form = TaskTemplateForm(request.POST)
        if form.is_valid():
            payload = form.to_payload()
            try:
                if template_id:
                    response = client.put(f'/task-templates/{template_id}', payload)
                else:
                    response = client.post('/task-templates', payload)
            except BackendError as e:
                logger.error(f"Error saving task template {template_id or ''}: {e}", exc_info=True)
                response = None
                messages.error(request, "❌ Failed to save task template.")

            if response is not None and response.ok:
                action = 'updated' if template_id else 'created'
                logger.info(f"Task template {template_id or payload['name']} {action}")
                messages.success(request, f"✅ Task template {action} successfully!")
                return redirect('tasks:templates')
            if response is not None:
                messages.error(request, response.error_message("Failed to save task template"))
        else:
            messages.error(request, "Please correct the errors below.")
    elif template_id:
        template = _template_prefill(client, template_id)
        if template is None:
            messages.error(request, "⚠️ Task template not found.")
            return redirect('tasks:templates')
        form = TaskTemplateForm(initial=TaskTemplateForm.initial_from(template))
    else:
        form = TaskTemplateForm()

    return render(request, 'tasks/template_form.html', {'form': form, 'template_id': template_id})


def _template_action(request, template_id, method, path, done_message, fail_message):
    try:
        response = getattr(get_backend_client(request), method)(path)
    except BackendError as e:
        logger.error(f"Error on task template {template_id} ({method} {path}): {e}", exc_info=True)
        messages.error(request, f"❌ {fail_message}.")
        return redirect('tasks:templates')

    if response.ok:
        logger.info(f"Task template {template_id}: {done_message}")
        messages.success(request, f"✅ {done_message}.")
    else:
        messages.error(request, response.error_message(fail_message))
    return redirect('tasks:templates')


@require_admin
@require_POST
def delete_template(request, template_id):
    return _template_action(
        request, template_id, 'delete', f'/task-templates/{template_id}',
        "Task template deleted", "Failed to delete task template",
    )


@require_admin
@require_POST
def duplicate_template(request, template_id):
    return _template_action(
        request, template_id, 'post', f'/task-templates/{template_id}/duplicate',
        "Task template duplicated", "Failed to duplicate task template",
    )


@require_admin
def generate_tasks(request):
    """
    Generate tasks from the active templates of a checklist type over a date range.

    The backend does the generation; this page validates the range and shows
    which tasks were created and which were skipped as duplicates.
    """
    checklist_type = request.POST.get('checklistType') or request.GET.get('checklistType') or 'daily'
    if checklist_type not in dict(CHECKLIST_TYPE_CHOICES):
        checklist_type = 'daily'
    today = date.today().isoformat()
    start = request.POST.get('startDate') or today
    end = request.POST.get('endDate') or start
    client = get_backend_client(request)
    result = None

    if request.method == 'POST':
        try:
            date_range = resolve_date_range(CUSTOM, start=start, end=end)
        except InvalidDateRange as e:
            messages.error(request, f"⚠️ {e}")
            date_range = None

        if date_range:
            try:
                response = client.post('/tasks/generate-date-range', {
                    'startDate': date_range['start'],
                    'endDate': date_range['end'],
                    'checklistType': checklist_type,
                })
            except BackendError as e:
                logger.error(f"Error generating {checklist_type} tasks: {e}", exc_info=True)
                response = None
                messages.error(request, "❌ Failed to generate tasks.")

            if response is not None and response.ok:
                result = payload_dict(response)
                logger.info(
                    f"Generated {result.get('totalGenerated', 0)} {checklist_type} task(s) "
                    f"for {date_range['start']}..{date_range['end']}"
                )
                messages.success(request, result.get('message') or "Tasks generated successfully")
            elif response is not None:
                messages.error(request, response.error_message("Failed to generate tasks"))

    templates_response = _get_or_none(client, '/task-templates', {'checklistType': checklist_type, 'isActive': 'true'})
    if templates_response is None or not templates_response.ok:
        messages.error(request, "Failed to load task templates.")

    return render(request, 'tasks/generate.html', {
        'checklist_type': checklist_type,
        'checklist_choices': CHECKLIST_TYPE_CHOICES,
        'start_date': start,
        'end_date': end,
        'templates': payload_list(templates_response, 'templates'),
        'result': result,
    })


def _scheduler_post(request, path, payload, default_message, fail_message):
    try:
        response = get_backend_client(request).post(path, payload)
    except BackendError as e:
        logger.error(f"Scheduler call {path} failed: {e}", exc_info=True)
        messages.error(request, f"❌ {fail_message}")
        return
    if response.ok:
        body = payload_dict(response)
        logger.info(f"Scheduler call {path} succeeded")
        messages.success(request, body.get('message') or default_message)
    else:
        messages.error(request, response.error_message(fail_message))


@require_admin
def scheduler(request):
    """
    Scheduler status with start / stop, manual daily / weekly / monthly
    triggers and single-date generation.
    """
    if request.method == 'POST':
        action = request.POST.get('action')
        if action == 'start':
            _scheduler_post(request, '/tasks/scheduler/start', None, "Task scheduler started", "Failed to start scheduler")
        elif action == 'stop':
            _scheduler_post(request, '/tasks/scheduler/stop', None, "Task scheduler stopped", "Failed to stop scheduler")
        elif action in TRIGGERS:
            _scheduler_post(
                request, f'/tasks/trigger/{action}', None,
                f"{action.capitalize()} tasks generated successfully",
                f"Failed to generate {action} tasks",
            )
        elif action == 'generate_date':
            day = request.POST.get('date') or ''
            checklist_type = request.POST.get('checklistType') or 'daily'
            try:
                date.fromisoformat(day)
            except ValueError:
                messages.error(request, "⚠️ Invalid date format. Please use YYYY-MM-DD.")
                return redirect('tasks:scheduler')
            _scheduler_post(
                request, '/tasks/generate-date', {'date': day, 'checklistType': checklist_type},
                "Tasks generated successfully", "Failed to generate tasks",
            )
        else:
            messages.error(request, "Unknown action.")
        return redirect('tasks:scheduler')

    response = _get_or_none(get_backend_client(request), '/tasks/scheduler/status')
    if response is not None and response.ok:
        status = payload_dict(response)
    else:
        status = {'isRunning': False, 'message': 'Unable to fetch scheduler status'}

    return render(request, 'tasks/scheduler.html', {
        'status': status,
        'today': date.today().isoformat(),
        'checklist_choices': CHECKLIST_TYPE_CHOICES,
    })
