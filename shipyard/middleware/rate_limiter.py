"""
Per-route limits on the shared Flask-Limiter instance.

Writes to vessels, work orders, BASTPs, verifications, invoices and materials
get WRITE_LIMIT per client address; document uploads and CSV imports get the
tighter UPLOAD_LIMIT. Reads, including the rollup views, are unlimited and
health probes are exempt.
"""

import logging

logger = logging.getLogger(__name__)

WRITE_LIMIT = "60/minute"
UPLOAD_LIMIT = "20/minute"
WRITE_METHODS = ["POST", "PUT", "DELETE"]

WRITE_BLUEPRINTS = ("vessel", "work_order", "verification", "bastp", "invoice", "material")
UPLOAD_ENDPOINTS = ("work_order.upload_permit", "bastp.create_bastp", "export.import_entity")


def init_rate_limits(app, limiter):
    if not app.config.get("RATELIMIT_ENABLED", True) or app.testing:
        logger.debug("Rate limits not applied")
        return

    for name in WRITE_BLUEPRINTS:
        blueprint = app.blueprints.get(name)
        if blueprint is not None:
            limiter.limit(WRITE_LIMIT, methods=WRITE_METHODS)(blueprint)

    for endpoint in UPLOAD_ENDPOINTS:
        view = app.view_functions.get(endpoint)
        if view is not None:
            app.view_functions[endpoint] = limiter.limit(UPLOAD_LIMIT)(view)

    limiter.exempt(app.blueprints["health"])
    logger.info("Rate limits applied: writes %s, uploads %s", WRITE_LIMIT, UPLOAD_LIMIT)
