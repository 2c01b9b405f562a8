from .result_response import HTTP_STATUS_BY_KIND, result_response, serializer_error_response


__all__ = ["HTTP_STATUS_BY_KIND", "result_response", "serializer_error_response"]
