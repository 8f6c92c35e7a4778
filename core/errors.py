"""Error taxonomy for the accruals service.

Every failure surfaced to a caller is one of:
- ValidationError: missing or malformed caller input (HTTP 400)
- AuthenticationError: no connected tenant or a bad webhook signature (HTTP 401)
- ExternalServiceError: any failure from the accounting provider (HTTP 500)
"""


class AccrualServiceError(Exception):
    """Base exception for errors surfaced by the accruals service."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AccrualServiceError):
    """Caller input is missing or malformed."""

    status_code = 400


class AuthenticationError(AccrualServiceError):
    """No tenant is connected, or a webhook signature did not verify."""

    status_code = 401


class ExternalServiceError(AccrualServiceError):
    """The accounting provider rejected or failed a call.

    The provider's message is passed through verbatim.
    """

    status_code = 500

    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.provider_status = status_code
        self.response_body = response_body
