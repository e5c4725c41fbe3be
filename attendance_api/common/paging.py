# attendance_api/common/paging.py
from datetime import datetime

from flask import request

DEFAULT_PAGE = 1
DEFAULT_SIZE = 20
MAX_SIZE = 100


def page_limit():
    try:
        page = max(int(request.args.get("page", DEFAULT_PAGE)), 1)
    except Exception:
        page = DEFAULT_PAGE
    raw = request.args.get("size", request.args.get("per_page", DEFAULT_SIZE))
    try:
        size = max(1, min(int(raw), MAX_SIZE))
    except Exception:
        size = DEFAULT_SIZE
    return page, size


def text_q():
    q = request.args.get("q", request.args.get("search", ""))
    return q.strip() or None


def as_int(val, field):
    if val in (None, "", "null"): return None
    try:
        return int(val)
    except Exception:
        raise ValueError(f"{field} must be integer")


def as_bool(val, field):
    if val is None: return None
    v = str(val).lower()
    if v in ("true", "1", "yes"):  return True
    if v in ("false", "0", "no"):  return False
    raise ValueError(f"{field} must be true/false")


def parse_date(s, field):
    if s in (None, "", "null"): return None
    try:
        return datetime.strptime(str(s), "%Y-%m-%d").date()
    except Exception:
        raise ValueError(f"{field} must be YYYY-MM-DD")


def parse_clock(s, field):
    """HH:MM or HH:MM:SS → datetime.time."""
    if s in (None, "", "null"): return None
    for fmt in ("%H:%M:%S", "%H:%M"):
        try:
            return datetime.strptime(str(s).strip(), fmt).time()
        except ValueError:
            pass
    raise ValueError(f"{field} must be HH:MM or HH:MM:SS")
