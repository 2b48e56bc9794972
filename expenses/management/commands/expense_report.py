from django.core.management.base import BaseCommand, CommandError
from django.conf import settings
from datetime import date
from tabulate import tabulate
from backend_api import fetch_all, get_backend_client, payload_list
from services.date_ranges import CUSTOM, PRESET_ALIASES, InvalidDateRange, describe_date_range, resolve_date_range
from services.expense_summary import build_expense_summary


class Command(BaseCommand):
    help = 'Summarize expenses for a date range from the command line'

    def add_arguments(self, parser):
        parser.add_argument(
            '--preset',
            type=str,
            default='thisWeek',
            choices=sorted(PRESET_ALIASES),
            help='Date range preset (default: thisWeek)',
        )
        parser.add_argument(
            '--start',
            type=str,
            help='Start date YYYY-MM-DD (custom preset)',
        )
        parser.add_argument(
            '--end',
            type=str,
            help='End date YYYY-MM-DD (custom preset)',
        )
        parser.add_argument(
            '--token',
            type=str,
            help='Backend token of an admin user',
        )
        parser.add_argument(
            '--limit',
            type=int,
            default=settings.EXPENSE_SUMMARY_LIMIT,
            help=f'Maximum number of expenses to fetch (default: {settings.EXPENSE_SUMMARY_LIMIT})',
        )

    def handle(self, *args, **options):
        preset = CUSTOM if (options['start'] or options['end']) else options['preset']
        try:
            date_range = resolve_date_range(
                preset, today=date.today(), start=options['start'], end=options['end']
            )
        except InvalidDateRange as e:
            raise CommandError(str(e))

        self.stdout.write(f"Expenses for {describe_date_range(date_range['start'], date_range['end'])}")

        client = get_backend_client(token=options['token'])
        results = fetch_all({
            'expenses': lambda: client.get('/expenses', {
                'startDate': date_range['start'],
                'endDate': date_range['end'],
                'limit': options['limit'],
            }),
            'categories': lambda: client.get('/expense-categories'),
            'users': lambda: client.get('/users'),
        })

        expenses_response = results['expenses']
        if expenses_response is None:
            raise CommandError('Could not reach the backend.')
        if not expenses_response.ok:
            raise CommandError(expenses_response.error_message('Failed to load expenses'))

        expenses = payload_list(expenses_response, 'expenses')
        if not expenses:
            self.stdout.write(self.style.WARNING('No expenses found in this range.'))
            return

        summary = build_expense_summary(
            expenses,
            payload_list(results['categories'], 'categories'),
            payload_list(results['users'], 'users'),
        )

        for title, rows in (
            ('By payment type', summary['by_type']),
            ('By category', summary['by_category']),
            ('By user', summary['by_user']),
        ):
            table = [[row['name'], f"{row['value']:.2f}", f"{row['percentage']}%"] for row in rows]
            self.stdout.write(f"\n{title}")
            self.stdout.write(tabulate(table, headers=['Name', 'Amount', 'Share'], tablefmt='grid'))

        self.stdout.write(self.style.SUCCESS(
            f"\nTotal: {summary['total']:.2f} across {summary['count']} expense(s)"
        ))
