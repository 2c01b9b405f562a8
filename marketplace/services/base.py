"""
Base classes and utilities for the service layer.

This module provides the ServiceResult envelope returned by every marketplace
service operation and the BaseService class the services inherit from.

Callers (the API layer, Celery tasks) never need to inspect exceptions: a
ServiceResult always carries ``success``, ``data``, ``errors`` and a ``status``
drawn from ErrorKind, which maps one-to-one onto a transport status code.
"""

import logging
import time
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Callable, Generic, List, Optional, TypeVar

from django.core.exceptions import ObjectDoesNotExist, ValidationError

T = TypeVar("T")


class ErrorKind:
    """Outcome kinds carried by ServiceResult.status."""

    OK = "ok"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    UNPROCESSABLE = "unprocessable_entity"
    VALIDATION = "validation_error"
    INTERNAL = "internal_error"

    ALL = (OK, NOT_FOUND, FORBIDDEN, UNPROCESSABLE, VALIDATION, INTERNAL)


@dataclass
class ServiceResult(Generic[T]):
    """
    A uniform success/failure envelope for service operations.

    Attributes:
        success: True if the operation succeeded
        data: The success payload (None on failure)
        errors: Human-readable error messages (empty on success)
        status: One of the ErrorKind values
        meta: Optional failure context (e.g. the conflicting record), rendered only when set

    Examples:
        >>> result = service_ok({"order": order})
        >>> result.success, result.status
        (True, 'ok')

        >>> result = service_err(ErrorKind.NOT_FOUND, "Offer not found")
        >>> result.errors
        ['Offer not found']
    """

    success: bool
    data: Optional[T] = None
    errors: List[str] = field(default_factory=list)
    status: str = ErrorKind.OK
    meta: Optional[dict] = None

    @property
    def ok(self) -> bool:
        return self.success

    @property
    def failure(self) -> bool:
        return not self.success

    @property
    def error_detail(self) -> str:
        """All error messages joined into a single line (for logs)."""
        return "; ".join(self.errors)

    def map(self, func: Callable[[T], Any]) -> "ServiceResult":
        """
        Transform the success value if success=True, otherwise pass through the failure.

        Args:
            func: Function to apply to the data

        Returns:
            ServiceResult with transformed data or the original failure
        """
        if self.success:
            return service_ok(func(self.data))
        return self

    def to_dict(self) -> dict:
        """
        Convert to a dictionary for JSON serialization.

        The shape is stable regardless of outcome so the API layer can map
        ``status`` to a transport code without inspecting error strings.
        ``meta`` is added only when a failure carries extra context.
        """
        body = {
            "success": self.success,
            "data": self.data if self.success else None,
            "errors": list(self.errors),
            "status": self.status,
        }
        if self.meta:
            body["meta"] = self.meta
        return body


def service_ok(data: Optional[T] = None) -> ServiceResult[T]:
    """
    Create a successful ServiceResult.

    Example:
        >>> return service_ok({"order": order})
    """
    return ServiceResult(success=True, data=data, errors=[], status=ErrorKind.OK)


def service_err(status: str, *errors: str, meta: Optional[dict] = None) -> ServiceResult:
    """
    Create a failed ServiceResult.

    Args:
        status: ErrorKind value (e.g. ErrorKind.NOT_FOUND)
        errors: One or more human-readable messages
        meta: Extra context for the caller, e.g. the record that caused a conflict

    Example:
        >>> return service_err(ErrorKind.FORBIDDEN, "You cannot accept this offer")
    """
    if status not in ErrorKind.ALL or status == ErrorKind.OK:
        raise ValueError(f"Invalid failure status: {status}")
    messages = [str(e) for e in errors if e] or [status]
    return ServiceResult(success=False, data=None, errors=messages, status=status, meta=meta)


class BaseService:
    """
    Base class for all marketplace services.

    Provides:
    - Logging with class name
    - Performance timing decorator

    Usage:
        class NegotiationService(BaseService):
            @BaseService.log_performance
            def accept_offer(self, offer_id, acting_user):
                self.logger.info(f"Accepting offer {offer_id}")
    """

    def __init__(self):
        """Initialize base service with logger."""
        self.logger = logging.getLogger(self.__class__.__module__ + "." + self.__class__.__name__)

    @staticmethod
    def log_performance(func: Callable) -> Callable:
        """
        Decorator to log performance and outcome of service methods.

        Failure results are logged as warnings, raised exceptions as errors
        with the traceback attached.
        """

        @wraps(func)
        def wrapper(self, *args, **kwargs):
            start_time = time.time()
            method_name = f"{self.__class__.__name__}.{func.__name__}"

            try:
                self.logger.debug(f"{method_name} started")
                result = func(self, *args, **kwargs)
                elapsed_time = (time.time() - start_time) * 1000  # Convert to ms

                if isinstance(result, ServiceResult):
                    if result.success:
                        self.logger.info(f"{method_name} completed successfully in {elapsed_time:.2f}ms")
                    else:
                        self.logger.warning(
                            f"{method_name} failed with status '{result.status}' "
                            f"({result.error_detail}) in {elapsed_time:.2f}ms"
                        )
                else:
                    self.logger.info(f"{method_name} completed in {elapsed_time:.2f}ms")

                return result

            except Exception as e:
                elapsed_time = (time.time() - start_time) * 1000
                self.logger.error(
                    f"{method_name} raised exception after {elapsed_time:.2f}ms: {str(e)}",
                    exc_info=True,
                )
                raise

        return wrapper


def get_or_none(queryset, pk):
    """
    Fetch a row by primary key, treating malformed identifiers as missing.

    Accepts a model class or a queryset (e.g. with ``select_related`` applied).
    """
    if pk in (None, ""):
        return None
    if not hasattr(queryset, "get"):
        queryset = queryset.objects.all()
    try:
        return queryset.get(pk=pk)
    except (ObjectDoesNotExist, ValidationError, ValueError, TypeError):
        return None
