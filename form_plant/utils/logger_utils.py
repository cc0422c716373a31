import logging
from typing import Optional
from form_plant.exceptions.custom_exception import CustomException

# Single logger instance shared by the helpers below
logger = logging.getLogger("form_plant")


def _describe(error: Exception) -> str:
    return str(error) if str(error) else error.__class__.__name__


def log_info(context: str, message: str) -> None:
    """Log informational message with context"""
    logger.info(f"[{context}] {message}")


def log_warning(context: str, message: str) -> None:
    """Log warning message with context"""
    logger.warning(f"[{context}] {message}")


def handle_service_error(
    error: Exception,
    context: str,
    custom_exception: Optional[CustomException] = None
) -> None:
    """
    Log a service layer failure and raise.

    Args:
        error: The exception that occurred
        context: Operation name (e.g. 'create_form', 'delete_submission')
        custom_exception: Raised instead of the original error when given

    Raises:
        CustomException or the original exception
    """
    logger.error(f"[SERVICE ERROR] {context}: {_describe(error)}", exc_info=True)

    if custom_exception:
        raise custom_exception
    raise error


def handle_route_error(error: Exception, context: str) -> None:
    # expected HTTP errors are not worth a stack trace
    if isinstance(error, CustomException) and error.status_code < 500:
        logger.info(f"[ROUTE] {context}: {error.status_code} {error.message}")
    else:
        logger.error(f"[ROUTE ERROR] {context}: {_describe(error)}", exc_info=True)
    raise error


def handle_middleware_error(
    error: Exception,
    context: str,
    custom_exception: Optional[CustomException] = None
) -> None:
    logger.warning(f"[MIDDLEWARE ERROR] {context}: {_describe(error)}")

    if custom_exception:
        raise custom_exception
    raise error


def log_database_operation(
    operation: str,
    context: str,
    details: Optional[dict] = None
) -> None:
    message = f"[DB {operation}] {context}"
    if details:
        message += f" - {details}"
    logger.debug(message)
