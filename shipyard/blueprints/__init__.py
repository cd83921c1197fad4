"""Request helpers shared by the API blueprints."""

from flask import request


def _int_arg(name, default):
    try:
        return int(request.args.get(name, default))
    except (TypeError, ValueError):
        return default


def paginate_query(query, default_limit=200, max_limit=1000):
    """Return ``(items, total)`` for ``?limit=&offset=``; limit is capped at ``max_limit``."""
    total = query.count()
    limit = min(max(_int_arg("limit", default_limit), 0), max_limit)
    offset = max(_int_arg("offset", 0), 0)
    return query.limit(limit).offset(offset).all(), total


def request_data():
    """JSON body, or form fields for multipart uploads."""
    if request.mimetype == "multipart/form-data":
        return request.form.to_dict()
    return request.get_json(silent=True) or {}
