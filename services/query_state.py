# services/query_state.py

"""
URL querystring <-> view state for list and filter pages.

Filter state lives in the URL so a filtered page can be bookmarked, shared and
restored with the back button. ``parse_query_state`` and
``serialize_query_state`` are inverses for any state keyed like ``defaults``.
"""
from urllib.parse import urlencode

from django.utils.http import url_has_allowed_host_and_scheme


def _coerce_page(value, default):
    try:
        page = int(value)
    except (TypeError, ValueError):
        return default
    return page if page >= 1 else default


def parse_query_state(params, defaults):
    """
    Build a state dict from ``params`` (a QueryDict or plain dict).

    Only keys present in ``defaults`` are read; blank values fall back to the
    default. ``page`` is always an int >= 1.
    """
    state = {}
    for key, default in defaults.items():
        raw = params.get(key)
        if key == 'page':
            state[key] = _coerce_page(raw, default or 1)
        elif raw is None or str(raw).strip() == '':
            state[key] = default
        else:
            state[key] = str(raw).strip()
    return state


def serialize_query_state(state, defaults=None):
    """Querystring for ``state`` without blank or default-valued entries."""
    defaults = defaults or {}
    pairs = []
    for key, value in state.items():
        if value is None or value == '':
            continue
        if key in defaults and value == defaults[key]:
            continue
        pairs.append((key, str(value)))
    return urlencode(pairs)


def build_url(path, state, defaults=None, **overrides):
    merged = {**state, **overrides}
    query = serialize_query_state(merged, defaults)
    return f"{path}?{query}" if query else path


def safe_return_url(value, fallback):
    """Accept only same-site relative paths for ``returnUrl`` parameters."""
    if value and value.startswith('/') and not value.startswith('//') and \
            url_has_allowed_host_and_scheme(value, allowed_hosts=None):
        return value
    return fallback


def page_count(total, page_size):
    if not total or page_size <= 0:
        return 1
    return max(1, -(-int(total) // page_size))
