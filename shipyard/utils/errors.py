"""Standardised API error responses.

Every error body has the same shape::

    {"error": "<message>", "code": "ERR_...", "details": {...}, ...extra}

Usage
-----
    from shipyard.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Work order not found")
    return api_error(E.VALIDATION_REQUIRED, "vessel_id is required")
    return api_error(E.FETCH_FAILED, "Failed to load data", retry=True, snapshot=last_good)
"""

from __future__ import annotations

from flask import jsonify


class E:
    """Machine-readable error codes; ``status_for`` gives each one's HTTP status."""

    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"     # 400
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"       # 400
    NOT_FOUND = "ERR_NOT_FOUND"                         # 404
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"       # 409
    UPLOAD_TOO_LARGE = "ERR_UPLOAD_TOO_LARGE"           # 413
    UPLOAD_TYPE = "ERR_UPLOAD_TYPE"                     # 415
    BUSINESS_RULE = "ERR_BUSINESS_RULE"                 # 422
    DATABASE = "ERR_DATABASE"                           # 500
    INTERNAL = "ERR_INTERNAL"                           # 500
    FETCH_FAILED = "ERR_FETCH_FAILED"                   # 503
    FETCH_TIMEOUT = "ERR_FETCH_TIMEOUT"                 # 504


_STATUS_BY_CODE: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.UPLOAD_TOO_LARGE: 413,
    E.UPLOAD_TYPE: 415,
    E.BUSINESS_RULE: 422,
    E.DATABASE: 500,
    E.INTERNAL: 500,
    E.FETCH_FAILED: 503,
    E.FETCH_TIMEOUT: 504,
}


def status_for(code: str) -> int:
    return _STATUS_BY_CODE.get(code, 400)


def api_error(code: str, message: str, *, status: int | None = None,
              details: dict | None = None, **extra):
    """Build ``(jsonify(body), status)`` for a Flask view or error handler.

    Parameters
    ----------
    code : str
        One of the ``E.*`` constants.
    message : str
        Human-readable explanation.
    status : int, optional
        Overrides the code's default status.
    details : dict, optional
        Field-level breakdown; omitted from the body when empty.
    **extra
        Extra top-level keys, e.g. ``retry`` and ``snapshot`` on fetch failures.
    """
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    body.update(extra)
    return jsonify(body), status or status_for(code)
