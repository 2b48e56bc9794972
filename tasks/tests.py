"""
Test suite for tasks, task templates, generation and the scheduler.
Run with: python manage.py test tasks.tests
"""

from io import StringIO
from django.test import TestCase, Client, SimpleTestCase
from django.urls import reverse
from django.core.management import call_command
from django.core.management.base import CommandError
from unittest.mock import patch, MagicMock
from backend_api import ApiResponse, BackendError
from tasks.forms import TaskForm, TaskTemplateForm, split_tags


USERS = [
    {'_id': 'u1', 'firstName': 'Asha', 'lastName': 'Rao', 'email': 'asha@example.com'},
    {'_id': 'u2', 'firstName': '', 'lastName': '', 'email': 'ravi@example.com'},
]


def routed(responses):
    """GET side effect answering by path; an Exception value is raised."""
    def handler(path, params=None):
        result = responses.get(path, ApiResponse(404, {'message': 'Not found'}))
        if isinstance(result, Exception):
            raise result
        return result
    return handler


def task_data(**overrides):
    data = {
        'title': ' Clean the tandoor ',
        'description': 'Scrape and wipe down',
        'task_owner': 'u1',
        'task_for': 'restaurant',
        'checklist_type': 'daily',
        'priority': 'high',
        'status': 'pending',
        'due_date': '2024-03-05',
        'tags': 'kitchen, , deep-clean',
    }
    data.update(overrides)
    return data


def messages_of(response):
    return [str(m) for m in response.wsgi_request._messages]


class TaskFormTestCase(SimpleTestCase):
    """Test task and template form payloads."""

    def test_owner_choices_from_users(self):
        form = TaskForm(users=USERS)
        choices = dict(form.fields['task_owner'].choices)
        self.assertEqual(choices['u1'], 'Asha Rao')
        self.assertEqual(choices['u2'], 'ravi@example.com')

    def test_payload(self):
        form = TaskForm(task_data(), users=USERS)
        self.assertTrue(form.is_valid(), form.errors)
        payload = form.to_payload()
        self.assertEqual(payload['title'], 'Clean the tandoor')
        self.assertEqual(payload['taskOwner'], 'u1')
        self.assertEqual(payload['tags'], ['kitchen', 'deep-clean'])
        self.assertEqual(payload['dueDate'], '2024-03-05')
        self.assertFalse(payload['isRecurring'])
        self.assertNotIn('recurringPattern', payload)

    def test_recurring_payload(self):
        form = TaskForm(task_data(is_recurring='on', frequency='weekly', interval='2'), users=USERS)
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.to_payload()['recurringPattern'], {'frequency': 'weekly', 'interval': 2})

    def test_recurring_requires_interval(self):
        form = TaskForm(task_data(is_recurring='on', frequency='weekly', interval=''), users=USERS)
        self.assertFalse(form.is_valid())
        self.assertIn('interval', form.errors)

    def test_unknown_owner_rejected(self):
        form = TaskForm(task_data(task_owner='u99'), users=USERS)
        self.assertFalse(form.is_valid())
        self.assertIn('task_owner', form.errors)

    def test_initial_from_populated_task(self):
        initial = TaskForm.initial_from({
            'title': 'Lock store room',
            'taskOwner': {'_id': 'u2', 'email': 'ravi@example.com'},
            'dueDate': '2024-03-05T00:00:00.000Z',
            'tags': ['security', 'night'],
        })
        self.assertEqual(initial['task_owner'], 'u2')
        self.assertEqual(initial['due_date'], '2024-03-05')
        self.assertEqual(initial['tags'], 'security, night')

    def test_template_instructions_are_lines(self):
        form = TaskTemplateForm({
            'name': 'Opening checklist',
            'description': 'Before service',
            'task_for': 'restaurant',
            'checklist_type': 'daily',
            'priority': 'medium',
            'procedure': 'Walk through the floor',
            'instructions': 'Switch on lights\n\n  Check gas  \n',
            'equipment': 'torch, keys',
        })
        self.assertTrue(form.is_valid(), form.errors)
        payload = form.to_payload()
        self.assertEqual(payload['instructions'], ['Switch on lights', 'Check gas'])
        self.assertEqual(payload['equipment'], ['torch', 'keys'])
        self.assertFalse(payload['isActive'])

    def test_split_tags(self):
        self.assertEqual(split_tags(' a, b,,c '), ['a', 'b', 'c'])
        self.assertEqual(split_tags(None), [])


class TaskViewsTestCase(TestCase):

    def setUp(self):
        self.client = Client()
        session = self.client.session
        session['user_id'] = 'u1'
        session['username'] = 'Asha Rao'
        session['role'] = 'admin'
        session.save()

    @patch('tasks.views.get_backend_client')
    def test_overview_merges_stats(self, mock_backend):
        """Missing counters default to zero; a failed task list only adds a message."""
        client = MagicMock()
        client.get.side_effect = routed({
            '/tasks': BackendError("timeout"),
            '/tasks/stats': ApiResponse(200, {
                'overview': {'total': 4, 'pending': 3, 'completed': 1},
                'checklistBreakdown': [{'_id': 'daily', 'count': 4, 'completed': 1}],
            }),
            '/users': ApiResponse(200, USERS),
        })
        mock_backend.return_value = client

        response = self.client.get(reverse('tasks:overview'), {
            'preset': 'custom', 'startDate': '2024-03-01', 'endDate': '2024-03-07',
        })

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['overview']['pending'], 3)
        self.assertEqual(response.context['overview']['onHold'], 0)
        self.assertEqual(response.context['tasks'], [])
        self.assertEqual(len(response.context['checklist_breakdown']), 1)
        client.get.assert_any_call('/tasks/stats', {'startDate': '2024-03-01', 'endDate': '2024-03-07'})
        self.assertIn("Failed to load tasks.", messages_of(response))

    @patch('tasks.views.get_backend_client')
    def test_list_pagination(self, mock_backend):
        client = MagicMock()
        client.get.return_value = ApiResponse(200, {
            'tasks': [{'_id': 't1', 'title': 'Mop floor', 'status': 'pending', 'priority': 'low'}],
            'pagination': {'page': 2, 'pages': 3, 'total': 25},
        })
        mock_backend.return_value = client

        response = self.client.get(reverse('tasks:list'), {'status': 'pending', 'page': '2'})

        self.assertEqual(response.status_code, 200)
        path, params = client.get.call_args[0]
        self.assertEqual(path, '/tasks')
        self.assertEqual(params['status'], 'pending')
        self.assertEqual(params['page'], 2)
        self.assertEqual(params['limit'], 10)
        self.assertEqual(response.context['total'], 25)
        self.assertIn('page=3', response.context['next_url'])
        self.assertIn('status=pending', response.context['prev_url'])
        self.assertNotIn('page=', response.context['prev_url'])

    @patch('tasks.views.get_backend_client')
    def test_list_accepts_bare_list(self, mock_backend):
        client = MagicMock()
        client.get.return_value = ApiResponse(200, [
            {'_id': 't1', 'title': 'Mop floor', 'status': 'pending', 'priority': 'low'},
            {'_id': 't2', 'title': 'Check gas', 'status': 'completed', 'priority': 'high'},
        ])
        mock_backend.return_value = client

        response = self.client.get(reverse('tasks:list'))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.context['tasks']), 2)
        self.assertEqual(response.context['total'], 2)
        self.assertIsNone(response.context['next_url'])

    @patch('tasks.views.get_backend_client')
    def test_create_task(self, mock_backend):
        client = MagicMock()
        client.get.side_effect = routed({'/users': ApiResponse(200, {'users': USERS})})
        client.post.return_value = ApiResponse(201, {'task': {'_id': 't9'}})
        mock_backend.return_value = client

        return_url = reverse('tasks:list') + '?status=pending'
        response = self.client.post(reverse('tasks:create'), {**task_data(), 'returnUrl': return_url})

        self.assertRedirects(response, return_url, fetch_redirect_response=False)
        path, payload = client.post.call_args[0]
        self.assertEqual(path, '/tasks')
        self.assertEqual(payload['priority'], 'high')
        self.assertEqual(payload['tags'], ['kitchen', 'deep-clean'])

    @patch('tasks.views.get_backend_client')
    def test_create_prefilled_from_template(self, mock_backend):
        client = MagicMock()
        client.get.side_effect = routed({
            '/users': ApiResponse(200, USERS),
            '/task-templates/tpl1': ApiResponse(200, {'template': {
                '_id': 'tpl1', 'name': 'Opening checklist', 'description': 'Before service',
                'checklistType': 'daily', 'priority': 'high', 'tags': ['open'],
            }}),
        })
        mock_backend.return_value = client

        response = self.client.get(reverse('tasks:create'), {'template': 'tpl1'})

        self.assertEqual(response.status_code, 200)
        form = response.context['form']
        self.assertEqual(form.initial['title'], 'Opening checklist')
        self.assertEqual(form.initial['template'], 'tpl1')
        self.assertEqual(form.initial['task_owner'], 'u1')

    @patch('tasks.views.get_backend_client')
    def test_status_update(self, mock_backend):
        client = MagicMock()
        client.put.return_value = ApiResponse(200, {'task': {'_id': 't1', 'status': 'completed'}})
        mock_backend.return_value = client

        response = self.client.post(reverse('tasks:detail', args=['t1']), {'status': 'completed'})

        self.assertRedirects(response, reverse('tasks:list'), fetch_redirect_response=False)
        client.put.assert_called_once_with('/tasks/t1', {'status': 'completed'})

    @patch('tasks.views.get_backend_client')
    def test_invalid_status_not_sent(self, mock_backend):
        client = MagicMock()
        mock_backend.return_value = client

        response = self.client.post(reverse('tasks:detail', args=['t1']), {'status': 'done'})

        self.assertEqual(response.status_code, 302)
        self.assertTrue(response.url.startswith(reverse('tasks:detail', args=['t1'])))
        client.put.assert_not_called()

    @patch('tasks.views.get_backend_client')
    def test_delete_requires_post(self, mock_backend):
        response = self.client.get(reverse('tasks:delete', args=['t1']))
        self.assertEqual(response.status_code, 405)
        mock_backend.assert_not_called()

    @patch('tasks.views.get_backend_client')
    def test_duplicate_template(self, mock_backend):
        client = MagicMock()
        client.post.return_value = ApiResponse(201, {'template': {'_id': 'tpl2'}})
        mock_backend.return_value = client

        response = self.client.post(reverse('tasks:template_duplicate', args=['tpl1']))

        self.assertRedirects(response, reverse('tasks:templates'), fetch_redirect_response=False)
        client.post.assert_called_once_with('/task-templates/tpl1/duplicate')

    @patch('tasks.views.get_backend_client')
    def test_generate_inverted_range(self, mock_backend):
        client = MagicMock()
        client.get.return_value = ApiResponse(200, {'templates': []})
        mock_backend.return_value = client

        response = self.client.post(reverse('tasks:generate'), {
            'checklistType': 'daily', 'startDate': '2024-03-10', 'endDate': '2024-03-01',
        })

        self.assertEqual(response.status_code, 200)
        client.post.assert_not_called()
        self.assertIsNone(response.context['result'])
        self.assertIn("⚠️ Start date must be on or before the end date.", messages_of(response))

    @patch('tasks.views.get_backend_client')
    def test_generate_date_range(self, mock_backend):
        """Generated and skipped tasks are both shown."""
        client = MagicMock()
        client.get.return_value = ApiResponse(200, {'templates': [{'_id': 'tpl1', 'name': 'Opening checklist'}]})
        client.post.return_value = ApiResponse(200, {
            'message': 'Generated 2 tasks',
            'totalGenerated': 2,
            'generatedTasks': [
                {'_id': 't1', 'title': 'Opening checklist', 'dueDate': '2024-03-01'},
                {'_id': 't2', 'title': 'Opening checklist', 'dueDate': '2024-03-02'},
            ],
            'skippedTasks': [{'title': 'Opening checklist', 'date': '2024-03-03', 'reason': 'exists'}],
        })
        mock_backend.return_value = client

        response = self.client.post(reverse('tasks:generate'), {
            'checklistType': 'weekly', 'startDate': '2024-03-01', 'endDate': '2024-03-03',
        })

        self.assertEqual(response.status_code, 200)
        client.post.assert_called_once_with('/tasks/generate-date-range', {
            'startDate': '2024-03-01', 'endDate': '2024-03-03', 'checklistType': 'weekly',
        })
        client.get.assert_called_with('/task-templates', {'checklistType': 'weekly', 'isActive': 'true'})
        self.assertEqual(response.context['result']['totalGenerated'], 2)
        self.assertIn("Generated 2 tasks", messages_of(response))

    @patch('tasks.views.get_backend_client')
    def test_scheduler_status_fallback(self, mock_backend):
        client = MagicMock()
        client.get.side_effect = BackendError("connection refused")
        mock_backend.return_value = client

        response = self.client.get(reverse('tasks:scheduler'))

        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.context['status']['isRunning'])
        self.assertEqual(response.context['status']['message'], 'Unable to fetch scheduler status')

    @patch('tasks.views.get_backend_client')
    def test_scheduler_trigger(self, mock_backend):
        client = MagicMock()
        client.post.return_value = ApiResponse(200, {'generatedTasks': []})
        mock_backend.return_value = client

        response = self.client.post(reverse('tasks:scheduler'), {'action': 'monthly'})

        self.assertRedirects(response, reverse('tasks:scheduler'), fetch_redirect_response=False)
        client.post.assert_called_once_with('/tasks/trigger/monthly', None)
        self.assertIn("Monthly tasks generated successfully", messages_of(response))

    @patch('tasks.views.get_backend_client')
    def test_scheduler_generate_bad_date(self, mock_backend):
        client = MagicMock()
        mock_backend.return_value = client

        response = self.client.post(reverse('tasks:scheduler'), {'action': 'generate_date', 'date': '03/05/2024'})

        self.assertRedirects(response, reverse('tasks:scheduler'), fetch_redirect_response=False)
        client.post.assert_not_called()

    def test_employee_cannot_manage_tasks(self):
        session = self.client.session
        session['role'] = 'employee'
        session.save()

        response = self.client.get(reverse('tasks:list'))

        self.assertRedirects(response, reverse('dashboard'), fetch_redirect_response=False)


class TaskSchedulerCommandTestCase(TestCase):

    @patch('tasks.management.commands.task_scheduler.get_backend_client')
    def test_status(self, mock_backend):
        client = MagicMock()
        client.get.return_value = ApiResponse(200, {'isRunning': True, 'message': 'Scheduler is running'})
        mock_backend.return_value = client

        out = StringIO()
        call_command('task_scheduler', 'status', '--token', 't', stdout=out)

        self.assertIn('Scheduler is running', out.getvalue())
        mock_backend.assert_called_once_with(token='t')

    @patch('tasks.management.commands.task_scheduler.get_backend_client')
    def test_trigger_lists_generated(self, mock_backend):
        client = MagicMock()
        client.post.return_value = ApiResponse(200, {
            'message': 'Weekly tasks generated',
            'generatedTasks': [{'title': 'Deep clean fridge', 'dueDate': '2024-03-04T00:00:00Z', 'taskFor': 'restaurant'}],
        })
        mock_backend.return_value = client

        out = StringIO()
        call_command('task_scheduler', 'trigger', '--period', 'weekly', stdout=out)

        client.post.assert_called_once_with('/tasks/trigger/weekly')
        self.assertIn('Deep clean fridge', out.getvalue())
        self.assertIn('2024-03-04', out.getvalue())

    @patch('tasks.management.commands.task_scheduler.get_backend_client')
    def test_failure_raises(self, mock_backend):
        client = MagicMock()
        client.post.return_value = ApiResponse(403, {'message': 'Admin access required'})
        mock_backend.return_value = client

        with self.assertRaises(CommandError):
            call_command('task_scheduler', 'start', stdout=StringIO())
