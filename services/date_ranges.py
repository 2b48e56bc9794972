# services/date_ranges.py

"""
Date range presets shared by the cash box, expense and task dashboards.

All dates are calendar dates in the local time zone of the running process.
Ranges are returned as ``{'start': 'YYYY-MM-DD', 'end': 'YYYY-MM-DD'}`` so they
can go straight into backend query params and the page URL.
"""
from calendar import monthrange
from datetime import date, timedelta

TODAY = 'today'
THIS_WEEK = 'thisWeek'
THIS_MONTH = 'thisMonth'
CUSTOM = 'custom'

PRESET_ALIASES = {
    'today': TODAY,
    'thisWeek': THIS_WEEK,
    'this_week': THIS_WEEK,
    'thisMonth': THIS_MONTH,
    'this_month': THIS_MONTH,
    'custom': CUSTOM,
}

PRESET_CHOICES = [
    (TODAY, 'Today'),
    (THIS_WEEK, 'This Week'),
    (THIS_MONTH, 'This Month'),
    (CUSTOM, 'Custom Range'),
]


class InvalidDateRange(ValueError):
    """Raised for a malformed or inverted custom range."""


def normalize_preset(preset, default=THIS_WEEK):
    """Map aliases onto canonical preset names; unknown values use ``default``."""
    return PRESET_ALIASES.get(preset or '', default)


def _as_date(value, today):
    if value in (None, ''):
        return today
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise InvalidDateRange(f"Invalid date '{value}'. Please use YYYY-MM-DD.")


def week_bounds(day):
    """Monday..Sunday week containing ``day``."""
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=6)


def month_bounds(day):
    last_day = monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last_day)


def resolve_date_range(preset, today=None, start=None, end=None, default=THIS_WEEK):
    """
    Resolve a preset into concrete start/end dates.

    Args:
        preset: today / thisWeek / this_week / thisMonth / this_month / custom
        today: anchor date (defaults to ``date.today()``)
        start, end: caller-supplied bounds, only used for ``custom``
        default: preset used when ``preset`` is unknown

    Raises:
        InvalidDateRange: custom bounds are malformed or start is after end
    """
    today = today or date.today()
    preset = normalize_preset(preset, default)

    if preset == TODAY:
        range_start = range_end = today
    elif preset == THIS_WEEK:
        range_start, range_end = week_bounds(today)
    elif preset == THIS_MONTH:
        range_start, range_end = month_bounds(today)
    else:
        range_start = _as_date(start, today)
        range_end = _as_date(end, today)
        if range_start > range_end:
            raise InvalidDateRange("Start date must be on or before the end date.")

    return {'start': range_start.isoformat(), 'end': range_end.isoformat()}


def describe_date_range(start, end):
    """Human label such as 'Jan 08, 2024' or 'Jan 08 - Jan 14, 2024'."""
    start_date = date.fromisoformat(start)
    end_date = date.fromisoformat(end)
    if start_date == end_date:
        return start_date.strftime('%b %d, %Y')
    return f"{start_date.strftime('%b %d')} - {end_date.strftime('%b %d, %Y')}"


def resolve_from_query(params, default_preset, today=None):
    """
    Read ``preset``/``startDate``/``endDate`` from a querystring mapping.

    Explicit dates are used when the preset is ``custom`` or absent, so a
    bookmarked link keeps the range it was shared with. Returns
    ``(preset, range, error)`` where ``error`` is a message for an invalid
    range; in that case the default preset's range is returned instead.
    """
    raw_preset = params.get('preset')
    preset = normalize_preset(raw_preset, default_preset)
    start = params.get('startDate') or None
    end = params.get('endDate') or None
    use_dates = (start or end) and (not raw_preset or preset == CUSTOM)

    try:
        if use_dates:
            date_range = resolve_date_range(CUSTOM, today=today, start=start, end=end)
        else:
            date_range = resolve_date_range(preset, today=today, default=default_preset)
        return preset, date_range, None
    except InvalidDateRange as e:
        return default_preset, resolve_date_range(default_preset, today=today), str(e)


def range_context(params, default_preset, today=None):
    """Template context for pages with a preset range picker."""
    preset, date_range, error = resolve_from_query(params, default_preset, today=today)
    if not error and not params.get('preset') and (params.get('startDate') or params.get('endDate')):
        preset = CUSTOM
    return {
        'preset': preset,
        'date_range': date_range,
        'range_label': describe_date_range(date_range['start'], date_range['end']),
        'preset_choices': PRESET_CHOICES,
        'range_error': error,
    }
