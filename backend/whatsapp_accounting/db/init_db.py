"""Create all tables. Run on app startup."""
import logging

from whatsapp_accounting.db.base import Base
from whatsapp_accounting.db.session import engine
from whatsapp_accounting.models import customer, payment, processed_message  # noqa: F401 - register models

logger = logging.getLogger(__name__)


def init_db(bind=None):
    target = bind if bind is not None else engine
    Base.metadata.create_all(bind=target)
    logger.info(f"Database tables ready: {', '.join(sorted(Base.metadata.tables))}")
