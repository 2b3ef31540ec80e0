"""
Deferred extension instances.

Created here, bound to the app in create_app() via init_app().
"""

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_wtf.csrf import CSRFProtect
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
csrf = CSRFProtect()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],  # No global limit — we apply per-route
    storage_uri="memory://",
)

# Flask-Login config
login_manager.login_view = "admin.login"
login_manager.login_message = "Please log in to access the back office."
login_manager.login_message_category = "info"


@login_manager.user_loader
def load_user(user_id):
    """Load admin user by ID from session. Imports lazily to avoid circular deps."""
    from app.models.admin_user import AdminUser

    return db.session.get(AdminUser, user_id)
