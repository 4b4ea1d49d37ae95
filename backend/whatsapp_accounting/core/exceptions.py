"""
Exception types and safe HTTP errors.

PRINCIPLE: Don't expose internal details to users.
Generic messages externally (dashboard responses, WhatsApp replies),
detailed logging internally.
"""
from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)


class LedgerStoreError(Exception):
    """Customer/payment store could not complete a read or write."""

    def __init__(self, operation: str, original: Exception = None):
        self.operation = operation
        self.original = original
        detail = f"{type(original).__name__}: {original}" if original else "unknown error"
        super().__init__(f"Store operation '{operation}' failed ({detail})")


class ProviderError(Exception):
    """Messaging provider rejected a request or could not be reached."""

    def __init__(self, provider: str, message: str, status_code: int = None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"[{provider}] {message}")


class BusinessError:
    """Dashboard API errors with safe (non-leaky) messages."""

    @staticmethod
    def not_found(resource: str = "Resource", reason: str = "") -> HTTPException:
        """
        404 for a missing customer/payment.

        Example:
            if not customer:
                raise BusinessError.not_found("Customer")
        """
        if reason:
            logger.warning(f"Not found: {resource} - {reason}")

        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found",
        )

    @staticmethod
    def bad_request(detail: str) -> HTTPException:
        """
        400 for input validation errors.

        OK to include specific details here since the caller caused the issue.
        """
        logger.info(f"Bad request: {detail}")
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )

    @staticmethod
    def server_error(original_error: Exception = None, detail: str = None) -> HTTPException:
        """
        Generic 500 - logs actual error internally, hides it from the caller.

        Never expose stack traces or SQL errors.
        """
        if original_error:
            logger.error(
                f"Internal server error: {type(original_error).__name__}: {str(original_error)}",
                exc_info=True
            )
        else:
            logger.error("Internal server error occurred", exc_info=True)

        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail or "An internal error occurred. Please try again later.",
        )
