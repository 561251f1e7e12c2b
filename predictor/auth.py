import hmac
import logging
from functools import wraps

from flask import current_app, g, jsonify, request

from predictor.invocation import ManualAuthenticated

logger = logging.getLogger(__name__)

ADMIN_SECRET_HEADER = "X-Admin-Secret"


def admin_required(f):
    """
    Require the shared admin secret in the X-Admin-Secret header.

    On success the route finds a ManualAuthenticated context in
    ``g.invocation``. With no ADMIN_SECRET configured every call is refused.
    """

    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get("ADMIN_SECRET")
        if not expected:
            logger.error("Admin call refused: ADMIN_SECRET is not configured")
            return jsonify({"error": "Admin access is not configured"}), 503

        supplied = (request.headers.get(ADMIN_SECRET_HEADER) or "").strip()
        if not supplied or not hmac.compare_digest(
            supplied.encode("utf-8"), expected.encode("utf-8")
        ):
            logger.warning(
                f"Unauthorised admin call to {request.path} from {request.remote_addr}"
            )
            return jsonify({"error": "Unauthorised"}), 401

        g.invocation = ManualAuthenticated(
            credential=supplied, remote_addr=request.remote_addr
        )
        return f(*args, **kwargs)

    return decorated_function
