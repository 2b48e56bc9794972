"""
Tests for the pure helpers behind the dashboards: date presets, expense
aggregation, pricing projection and URL query state.
Run with: python manage.py test services.tests
"""

from datetime import date
from decimal import Decimal

from django.http import QueryDict
from django.test import SimpleTestCase, override_settings

from services.date_ranges import (
    CUSTOM,
    THIS_MONTH,
    THIS_WEEK,
    TODAY,
    InvalidDateRange,
    describe_date_range,
    normalize_preset,
    range_context,
    resolve_date_range,
    resolve_from_query,
)
from services.expense_summary import (
    UNKNOWN_NAME,
    amount_by_category,
    amount_by_type,
    amount_by_user,
    build_expense_summary,
    resolve_category_name,
    resolve_user_name,
    total_amount,
)
from services.pricing_summary import (
    TOAST_AUTO,
    TOAST_AUTO_WITH_COUPON,
    TOAST_COUPON,
    TOAST_NONE,
    PricingIdentityError,
    breakdown_from_order,
    check_pricing_identity,
    pricing_signature,
    project_pricing,
    select_pricing_toast,
    summarize_pricing,
)
from services.query_state import (
    build_url,
    page_count,
    parse_query_state,
    safe_return_url,
    serialize_query_state,
)


class DateRangeTestCase(SimpleTestCase):
    """Preset resolution against fixed anchor dates."""

    def test_today(self):
        result = resolve_date_range(TODAY, today=date(2024, 1, 10))
        self.assertEqual(result, {'start': '2024-01-10', 'end': '2024-01-10'})

    def test_this_week_is_monday_to_sunday(self):
        result = resolve_date_range(THIS_WEEK, today=date(2024, 1, 10))
        self.assertEqual(result, {'start': '2024-01-08', 'end': '2024-01-14'})

    def test_this_week_on_sunday(self):
        result = resolve_date_range(THIS_WEEK, today=date(2024, 1, 14))
        self.assertEqual(result, {'start': '2024-01-08', 'end': '2024-01-14'})

    def test_this_month_leap_february(self):
        result = resolve_date_range(THIS_MONTH, today=date(2024, 2, 15))
        self.assertEqual(result, {'start': '2024-02-01', 'end': '2024-02-29'})

    def test_snake_case_aliases(self):
        self.assertEqual(normalize_preset('this_week'), THIS_WEEK)
        self.assertEqual(normalize_preset('this_month'), THIS_MONTH)

    def test_unknown_preset_uses_default(self):
        result = resolve_date_range('fortnight', today=date(2024, 1, 10), default=TODAY)
        self.assertEqual(result, {'start': '2024-01-10', 'end': '2024-01-10'})

    def test_custom_range(self):
        result = resolve_date_range(CUSTOM, start='2024-03-01', end='2024-03-05')
        self.assertEqual(result, {'start': '2024-03-01', 'end': '2024-03-05'})

    def test_custom_missing_bounds_default_to_today(self):
        result = resolve_date_range(CUSTOM, today=date(2024, 1, 10), start='2024-01-01')
        self.assertEqual(result, {'start': '2024-01-01', 'end': '2024-01-10'})

    def test_inverted_custom_range_rejected(self):
        with self.assertRaises(InvalidDateRange):
            resolve_date_range(CUSTOM, start='2024-03-05', end='2024-03-01')

    def test_malformed_custom_date_rejected(self):
        with self.assertRaises(InvalidDateRange):
            resolve_date_range(CUSTOM, start='03/01/2024', end='2024-03-05')

    def test_describe_single_day_and_range(self):
        self.assertEqual(describe_date_range('2024-01-08', '2024-01-08'), 'Jan 08, 2024')
        self.assertEqual(describe_date_range('2024-01-08', '2024-01-14'), 'Jan 08 - Jan 14, 2024')

    def test_query_dates_win_without_preset(self):
        params = {'startDate': '2024-01-01', 'endDate': '2024-01-03'}
        preset, date_range, error = resolve_from_query(params, TODAY, today=date(2024, 1, 10))
        self.assertIsNone(error)
        self.assertEqual(date_range, {'start': '2024-01-01', 'end': '2024-01-03'})

    def test_named_preset_ignores_stale_dates(self):
        params = {'preset': 'today', 'startDate': '2024-01-01', 'endDate': '2024-01-03'}
        preset, date_range, error = resolve_from_query(params, THIS_WEEK, today=date(2024, 1, 10))
        self.assertEqual(preset, TODAY)
        self.assertEqual(date_range, {'start': '2024-01-10', 'end': '2024-01-10'})

    def test_inverted_query_range_falls_back_with_error(self):
        params = {'preset': 'custom', 'startDate': '2024-01-05', 'endDate': '2024-01-01'}
        preset, date_range, error = resolve_from_query(params, THIS_WEEK, today=date(2024, 1, 10))
        self.assertEqual(preset, THIS_WEEK)
        self.assertEqual(date_range, {'start': '2024-01-08', 'end': '2024-01-14'})
        self.assertIn('Start date', error)

    def test_range_context_marks_bare_dates_as_custom(self):
        ctx = range_context({'startDate': '2024-01-01', 'endDate': '2024-01-03'}, THIS_WEEK, today=date(2024, 1, 10))
        self.assertEqual(ctx['preset'], CUSTOM)
        self.assertEqual(ctx['range_label'], 'Jan 01 - Jan 03, 2024')
        self.assertIsNone(ctx['range_error'])


class ExpenseSummaryTestCase(SimpleTestCase):
    """Aggregation of expense records into summary rows."""

    def setUp(self):
        self.categories = [
            {'_id': 'c1', 'name': 'Groceries'},
            {'_id': 'c2', 'name': 'Utilities'},
        ]
        self.users = [
            {'_id': 'u1', 'firstName': 'Asha', 'lastName': 'Rao'},
            {'_id': 'u2', 'firstName': 'Ravi', 'lastName': ''},
        ]
        self.expenses = [
            {'amount': 100, 'paymentType': 'cash', 'category': 'c1', 'paidBy': 'u1'},
            {'amount': 50.5, 'paymentType': 'online', 'category': 'c2', 'paidBy': 'u2'},
            {'amount': 25, 'paymentType': 'cash', 'category': {'_id': 'c1', 'name': 'Groceries'}, 'paidBy': 'u1'},
            {'amount': 10, 'paymentType': 'cheque', 'category': 'missing', 'paidBy': None},
        ]

    def test_empty_input(self):
        self.assertEqual(amount_by_type([]), {})
        self.assertEqual(total_amount([]), 0)
        self.assertEqual(amount_by_category([], self.categories), [])

    def test_amount_by_type_buckets_unknown(self):
        totals = amount_by_type(self.expenses)
        self.assertEqual(totals['cash'], Decimal('125'))
        self.assertEqual(totals['online'], Decimal('50.5'))
        self.assertEqual(totals['unknown'], Decimal('10'))

    def test_category_rows_sum_to_total(self):
        rows = amount_by_category(self.expenses, self.categories)
        self.assertEqual(sum(r['value'] for r in rows), total_amount(self.expenses))
        self.assertEqual(rows[0], {'name': 'Groceries', 'value': Decimal('125')})

    def test_rows_sorted_descending(self):
        rows = amount_by_user(self.expenses, self.users)
        self.assertEqual([r['name'] for r in rows], ['Asha Rao', 'Ravi', UNKNOWN_NAME])

    def test_ties_keep_first_appearance_order(self):
        expenses = [
            {'amount': 10, 'category': 'c2'},
            {'amount': 10, 'category': 'c1'},
        ]
        rows = amount_by_category(expenses, self.categories)
        self.assertEqual([r['name'] for r in rows], ['Utilities', 'Groceries'])

    def test_unknown_category_id(self):
        self.assertEqual(resolve_category_name('nope', self.categories), 'Unknown')
        self.assertEqual(resolve_category_name(None, self.categories), 'Unknown')

    def test_populated_user_reference(self):
        self.assertEqual(resolve_user_name({'firstName': 'Asha', 'lastName': 'Rao'}), 'Asha Rao')
        self.assertEqual(resolve_user_name('u9', self.users), 'Unknown')

    def test_summary_percentages(self):
        summary = build_expense_summary(self.expenses, self.categories, self.users)
        self.assertEqual(summary['count'], 4)
        self.assertEqual(summary['total'], Decimal('185.5'))
        cash = next(r for r in summary['by_type'] if r['name'] == 'cash')
        self.assertEqual(cash['percentage'], '67.4')

    def test_summary_of_nothing(self):
        summary = build_expense_summary([], [], [])
        self.assertEqual(summary['total'], 0)
        self.assertEqual(summary['by_type'], [])


@override_settings(CURRENCY_SYMBOL='₹')
class PricingSummaryTestCase(SimpleTestCase):
    """Projection of backend pricing breakdowns into display lines."""

    def breakdown(self, **overrides):
        data = {
            'subtotal': 500,
            'couponDiscount': 0,
            'amountAfterCoupon': 500,
            'taxRate': 0.05,
            'taxAmount': 25,
            'shippingCost': 0,
            'automaticDiscounts': [],
            'totalAutomaticDiscount': 0,
            'finalTotal': 525,
            'appliedCoupon': None,
        }
        data.update(overrides)
        return data

    def test_minimal_lines(self):
        lines = project_pricing(self.breakdown())
        self.assertEqual([l['key'] for l in lines], ['subtotal', 'tax', 'total'])
        self.assertEqual(lines[1]['label'], 'Tax (5%)')
        self.assertEqual(lines[-1]['amount'], Decimal('525.00'))

    def test_full_line_order(self):
        breakdown = self.breakdown(
            couponDiscount=50,
            amountAfterCoupon=450,
            taxAmount=22.5,
            shippingCost=40,
            automaticDiscounts=[{'discount': {'name': 'Lunch Deal'}, 'discountAmount': 20}],
            totalAutomaticDiscount=20,
            finalTotal=442.5,
            appliedCoupon={'coupon': {'code': 'SAVE50'}},
        )
        lines = project_pricing(breakdown)
        self.assertEqual(
            [l['key'] for l in lines],
            ['subtotal', 'coupon', 'after_coupon', 'tax', 'shipping', 'auto_discount', 'savings', 'total'],
        )
        self.assertEqual(lines[1]['label'], 'Coupon Discount (SAVE50)')
        self.assertEqual(lines[5]['label'], 'Auto Discount (Lunch Deal)')

    def test_total_savings_adds_coupon_and_automatic(self):
        breakdown = self.breakdown(couponDiscount=50, totalAutomaticDiscount=20)
        savings = next(l for l in project_pricing(breakdown) if l['key'] == 'savings')
        self.assertEqual(savings['amount'], Decimal('70.00'))
        self.assertTrue(savings['negative'])

    def test_no_discount_toast(self):
        variant, level, message = select_pricing_toast(self.breakdown())
        self.assertEqual(variant, TOAST_NONE)
        self.assertEqual(level, 'info')

    def test_coupon_only_toast(self):
        variant, level, message = select_pricing_toast(self.breakdown(couponDiscount=50))
        self.assertEqual(variant, TOAST_COUPON)
        self.assertIn('₹50.00', message)

    def test_automatic_toasts(self):
        autos = [{'discountAmount': 20}, {'discountAmount': 5}]
        variant, level, message = select_pricing_toast(self.breakdown(automaticDiscounts=autos))
        self.assertEqual(variant, TOAST_AUTO)
        self.assertEqual(level, 'success')
        self.assertIn('2 automatic discount(s)', message)
        self.assertIn('₹25.00', message)

        variant, _, message = select_pricing_toast(self.breakdown(automaticDiscounts=autos, couponDiscount=10))
        self.assertEqual(variant, TOAST_AUTO_WITH_COUPON)
        self.assertIn('₹35.00', message)

    def test_identity_mismatch(self):
        broken = self.breakdown(finalTotal=999)
        self.assertFalse(check_pricing_identity(broken))
        with self.assertRaises(PricingIdentityError):
            check_pricing_identity(broken, strict=True)
        self.assertTrue(check_pricing_identity(self.breakdown(), strict=True))

    def test_signature_changes_with_breakdown(self):
        self.assertEqual(pricing_signature(self.breakdown()), pricing_signature(self.breakdown()))
        self.assertNotEqual(pricing_signature(self.breakdown()), pricing_signature(self.breakdown(couponDiscount=1)))

    def test_summarize(self):
        summary = summarize_pricing(self.breakdown(), strict=True)
        self.assertEqual(summary['final_total'], Decimal('525.00'))
        self.assertEqual(summary['toast']['variant'], TOAST_NONE)
        self.assertTrue(summary['consistent'])

    def test_breakdown_from_order(self):
        order = {
            'pricing': {
                'subtotal': 400, 'taxRate': 0.05, 'taxAmount': 19, 'shippingCost': 0,
                'discountAmount': 20, 'discountCode': 'TEN', 'totalAmount': 389,
            },
            'appliedCoupon': {'couponId': 'x', 'code': 'TEN', 'discountAmount': 20},
            'automaticDiscounts': [{'discount': {'name': 'Combo'}, 'discountAmount': 10}],
        }
        breakdown = breakdown_from_order(order)
        self.assertEqual(breakdown['amountAfterCoupon'], Decimal('380'))
        self.assertEqual(breakdown['totalAutomaticDiscount'], Decimal('10'))
        self.assertTrue(check_pricing_identity(breakdown, strict=True))
        labels = [l['label'] for l in project_pricing(breakdown)]
        self.assertIn('Coupon Discount (TEN)', labels)


class QueryStateTestCase(SimpleTestCase):
    defaults = {'status': '', 'category': '', 'page': 1}

    def test_round_trip(self):
        state = {'status': 'pending', 'category': 'a b&c', 'page': 3}
        query = serialize_query_state(state, self.defaults)
        self.assertEqual(parse_query_state(QueryDict(query), self.defaults), state)

    def test_defaults_are_omitted(self):
        self.assertEqual(serialize_query_state({'status': '', 'category': '', 'page': 1}, self.defaults), '')

    def test_bad_page_falls_back(self):
        self.assertEqual(parse_query_state({'page': 'x'}, self.defaults)['page'], 1)
        self.assertEqual(parse_query_state({'page': '-2'}, self.defaults)['page'], 1)

    def test_unknown_keys_ignored(self):
        state = parse_query_state({'status': 'done', 'evil': '1'}, self.defaults)
        self.assertNotIn('evil', state)

    def test_build_url_override(self):
        url = build_url('/admin/tasks/list/', {'status': 'pending', 'category': '', 'page': 1}, self.defaults, page=2)
        self.assertEqual(url, '/admin/tasks/list/?status=pending&page=2')

    def test_safe_return_url(self):
        self.assertEqual(safe_return_url('/admin/expenses/list/?page=2', '/'), '/admin/expenses/list/?page=2')
        self.assertEqual(safe_return_url('https://evil.example.com/', '/'), '/')
        self.assertEqual(safe_return_url('//evil.example.com/', '/'), '/')
        self.assertEqual(safe_return_url(None, '/fallback/'), '/fallback/')

    def test_page_count(self):
        self.assertEqual(page_count(0, 10), 1)
        self.assertEqual(page_count(21, 10), 3)
