import logging
from functools import wraps

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger(__name__)


class StorageError(Exception):
    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def storage_guard(action: str):
    """Translate store failures raised by ``func`` into a StorageError."""

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except IntegrityError as e:
                logger.error(f"Integrity error while trying to {action}: {e.orig}")
                raise StorageError(f"Could not {action}: duplicate entry", 409) from e
            except SQLAlchemyError as e:
                logger.error(f"Store error while trying to {action}: {e}", exc_info=True)
                raise StorageError(f"Could not {action}", 500) from e

        return wrapper

    return decorator
