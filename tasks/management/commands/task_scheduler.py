from django.core.management.base import BaseCommand, CommandError
from tabulate import tabulate
from backend_api import BackendError, get_backend_client, payload_dict

ACTIONS = ('status', 'start', 'stop', 'trigger')
PERIODS = ('daily', 'weekly', 'monthly')


class Command(BaseCommand):
    help = 'Check, start, stop or trigger the backend task scheduler'

    def add_arguments(self, parser):
        parser.add_argument(
            'action',
            choices=ACTIONS,
            help='status | start | stop | trigger',
        )
        parser.add_argument(
            '--period',
            choices=PERIODS,
            default='daily',
            help='Checklist period for trigger (default: daily)',
        )
        parser.add_argument(
            '--token',
            type=str,
            help='Backend token of an admin user',
        )

    def handle(self, *args, **options):
        client = get_backend_client(token=options['token'])
        action = options['action']

        try:
            if action == 'status':
                response = client.get('/tasks/scheduler/status')
            elif action == 'trigger':
                response = client.post(f"/tasks/trigger/{options['period']}")
            else:
                response = client.post(f'/tasks/scheduler/{action}')
        except BackendError as e:
            raise CommandError(str(e))

        if not response.ok:
            raise CommandError(response.error_message(f'Scheduler {action} failed'))

        body = payload_dict(response)

        if action == 'status':
            rows = [
                ['Running', 'yes' if body.get('isRunning') else 'no'],
                ['Message', body.get('message') or '-'],
            ]
            self.stdout.write(tabulate(rows, tablefmt='grid'))
            return

        if action == 'trigger':
            generated = body.get('generatedTasks') or []
            if generated:
                table = [[t.get('title'), (t.get('dueDate') or '')[:10], t.get('taskFor')] for t in generated]
                self.stdout.write(tabulate(table, headers=['Title', 'Due', 'For'], tablefmt='grid'))

        self.stdout.write(self.style.SUCCESS(body.get('message') or f'Scheduler {action} succeeded'))
