# Models package — import all models here so Alembic can discover them.

from app.models.admin_user import AdminUser  # noqa: F401
from app.models.product import Product  # noqa: F401
from app.models.user import User  # noqa: F401
from app.models.order import Order  # noqa: F401
from app.models.download_verification import DownloadVerification  # noqa: F401
from app.models.stripe_event import StripeEvent  # noqa: F401
