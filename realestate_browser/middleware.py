import logging
import json
import time
from django.utils.deprecation import MiddlewareMixin

requests_logger = logging.getLogger("api.requests")
fallback_logger = logging.getLogger(__name__)

SKIPPED_PREFIXES = (
    "/static/",
    "/api/schema/",
    "/api/docs/",
    "/api/redoc/",
)


class RequestLogMiddleware(MiddlewareMixin):
    """
    Logs incoming requests and responses as one JSON line:
    - method, path, status, duration, query string
    - does not log bodies, skips static files and API docs
    """

    def process_request(self, request):
        request._start_time = time.time()

    def process_response(self, request, response):
        try:
            path = request.path
            if path.startswith(SKIPPED_PREFIXES):
                return response

            start = getattr(request, "_start_time", None)
            duration_ms = int((time.time() - start) * 1000) if start else None
            status = getattr(response, "status_code", "-")

            payload = {
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": duration_ms,
                "query": request.META.get("QUERY_STRING", ""),
            }
            if status != "-" and status >= 500:
                requests_logger.warning(json.dumps(payload, ensure_ascii=False))
            else:
                requests_logger.info(json.dumps(payload, ensure_ascii=False))
        except Exception as e:
            # Never break a response due to logging
            fallback_logger.warning("Failed to log request/response: %s", e)
        return response
