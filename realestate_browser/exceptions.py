from rest_framework.exceptions import APIException


class BackendUnavailable(APIException):
    """The data store failed; the client may retry."""

    status_code = 502
    default_detail = "The listing service is temporarily unavailable. Please try again."
    default_code = "backend_unavailable"
