"""
Gateway error types.

Adapters raise subclasses of AdapterError so callers can tell
configuration problems, upstream failures and unsupported operations
apart. The router raises ModelResolutionError with a closed set of codes.
"""

from typing import Any, Dict, Literal, Optional


class AdapterError(Exception):
    """Exception raised by adapters when processing fails."""

    def __init__(
        self,
        message: str,
        error_type: str = "adapter_error",
        status_code: int = 500,
        param: Optional[str] = None,
        code: Optional[str] = None,
        provider_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.status_code = status_code
        self.param = param
        self.code = code
        self.provider_id = provider_id

    def to_openai_error(self) -> Dict[str, Any]:
        """Convert to OpenAI error format."""
        return {
            "error": {
                "message": self.message,
                "type": self.error_type,
                "param": self.param,
                "code": self.code or self.error_type,
            }
        }


class ProviderConfigurationError(AdapterError):
    """A required credential or configuration field is missing or invalid."""

    def __init__(self, message: str, param: Optional[str] = None, provider_id: Optional[str] = None):
        super().__init__(
            message,
            error_type="configuration_error",
            status_code=400,
            param=param,
            provider_id=provider_id,
        )


class ProviderHTTPError(AdapterError):
    """Upstream answered with a non-2xx status."""

    def __init__(
        self,
        message: str,
        upstream_status: int,
        body: Optional[str] = None,
        provider_id: Optional[str] = None,
    ):
        super().__init__(
            message,
            error_type="provider_error",
            status_code=502,
            code=f"upstream_{upstream_status}",
            provider_id=provider_id,
        )
        self.upstream_status = upstream_status
        self.body = body


class ProviderConnectionError(AdapterError):
    """The provider could not be reached or the transfer was interrupted."""

    def __init__(self, message: str, provider_id: Optional[str] = None):
        super().__init__(
            message,
            error_type="provider_error",
            status_code=502,
            code="upstream_unreachable",
            provider_id=provider_id,
        )


class ProviderResponseError(AdapterError):
    """Upstream answered 2xx but the body cannot be mapped."""

    def __init__(self, message: str, provider_id: Optional[str] = None):
        super().__init__(message, error_type="provider_error", status_code=502, provider_id=provider_id)


class ProviderAuthenticationError(AdapterError):
    """Exchanging provider credentials for an access token failed."""

    def __init__(self, message: str, provider_id: Optional[str] = None):
        super().__init__(message, error_type="authentication_error", status_code=401, provider_id=provider_id)


class UnsupportedOperationError(AdapterError):
    """The provider adapter does not implement the requested operation."""

    def __init__(self, message: str, provider_id: Optional[str] = None):
        super().__init__(
            message,
            error_type="unsupported_operation",
            status_code=501,
            provider_id=provider_id,
        )


ResolutionErrorCode = Literal["model_not_found", "no_adapter", "no_credentials", "provider_not_found"]


class ModelResolutionError(Exception):
    """Raised when a model identifier cannot be routed to an adapter and credential."""

    def __init__(self, message: str, code: ResolutionErrorCode):
        super().__init__(message)
        self.message = message
        self.code = code
