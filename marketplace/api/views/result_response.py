"""
Translate ServiceResult envelopes into DRF responses.

The status mapping is the only place outcome kinds meet HTTP codes.
"""

from typing import Callable, Optional

from rest_framework import status
from rest_framework.response import Response

from marketplace.services.base import ErrorKind, ServiceResult, service_err

HTTP_STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.UNPROCESSABLE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def result_response(
    result: ServiceResult, serialize: Optional[Callable] = None, success_status: int = status.HTTP_200_OK
) -> Response:
    """Render ``result.to_dict()`` with its data serialized and the mapped status code."""
    body = result.to_dict()
    if result.success:
        if serialize is not None:
            body["data"] = serialize(result.data)
        return Response(body, status=success_status)
    return Response(body, status=HTTP_STATUS_BY_KIND.get(result.status, status.HTTP_500_INTERNAL_SERVER_ERROR))


def _flatten_errors(errors, prefix: str = ""):
    if isinstance(errors, dict):
        for field_name, value in errors.items():
            yield from _flatten_errors(value, f"{prefix}{field_name}.")
    elif isinstance(errors, list):
        for value in errors:
            yield from _flatten_errors(value, prefix)
    else:
        yield f"{prefix.rstrip('.')}: {errors}" if prefix else str(errors)


def serializer_error_response(serializer_errors) -> Response:
    """400 envelope for a request body that failed serializer validation."""
    return result_response(service_err(ErrorKind.VALIDATION, *_flatten_errors(serializer_errors)))
