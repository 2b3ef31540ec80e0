"""
Custom route decorators for access control.

- admin_required: ensures an active back-office account is logged in.
"""

from functools import wraps

from flask import abort
from flask_login import current_user, login_required


def admin_required(f):
    """Require login + an active admin account."""

    @wraps(f)
    @login_required
    def decorated(*args, **kwargs):
        if not current_user.is_active:
            abort(403)
        return f(*args, **kwargs)

    return decorated
