import secrets

from flask import jsonify

from quiniela.utils.timezone_utils import app_date, get_current_time


def generate_id():
    """Generate a unique 16-character URL-safe identifier"""
    return secrets.token_urlsafe(12)[:16]


def predictions_allowed(matches, now=None):
    """
    Check whether predictions are still open for a pool.

    Predictions close on the calendar day (application timezone) of the
    earliest match. A pool without matches is always open.
    """
    if not matches:
        return True

    now = now or get_current_time()
    first_match = min(match.date for match in matches)
    return app_date(now) < app_date(first_match)


def form_error_response(form, message="Invalid input"):
    """400 JSON response listing the validation errors of ``form``"""
    fields = {
        name: errors for name, errors in form.errors.items() if name != "csrf_token"
    }
    return jsonify({"error": message, "fields": fields}), 400
