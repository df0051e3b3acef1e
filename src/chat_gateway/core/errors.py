"""
Chat gateway error types.

Every failure surfaced by the gateway derives from GatewayError. DecodeError
is the one type that is never raised to a caller: frame decoders log it and
keep going.
"""

from typing import Optional


class GatewayError(Exception):
    """Base exception for gateway errors."""

    def __init__(self, message: str, provider: Optional[str] = None):
        self.message = message
        self.provider = provider
        super().__init__(message)

    @property
    def user_message(self) -> str:
        """Human-readable message suitable for showing to an end user."""
        return self.message


class ProviderUnavailableError(GatewayError):
    """Raised when a stream or model listing could not be established at all."""
    pass


class ProviderUnreachableError(ProviderUnavailableError):
    """Raised when the service could not be reached (DNS, connect, timeout)."""

    @property
    def user_message(self) -> str:
        target = self.provider or "the service"
        return (
            f"Cannot reach {target}. Make sure the server is running "
            f"and the configured URL is correct. ({self.message})"
        )


class ProviderRejectedError(ProviderUnavailableError):
    """Raised when the service answered the initiating request with an error status."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, provider)
        self.status_code = status_code

    @property
    def is_auth_error(self) -> bool:
        return self.status_code in (401, 403)

    @property
    def user_message(self) -> str:
        target = self.provider or "The service"
        if self.is_auth_error:
            return f"{target} rejected the credentials: {self.message}. Check the API key."
        if self.status_code == 413:
            return f"{target} rejected the request as too large. Reduce the input size."
        return f"{target} rejected the request: {self.message}"


class StreamInterruptedError(GatewayError):
    """Raised when a stream started successfully and then broke."""
    pass


class ChatCancelledError(GatewayError):
    """Raised when the caller cancelled a chat stream. Not a fault."""

    def __init__(self, message: str = "Chat cancelled", provider: Optional[str] = None):
        super().__init__(message, provider)


class DecodeError(GatewayError):
    """A single malformed frame. Logged and skipped, never raised to callers."""

    def __init__(self, message: str, payload: str = "", provider: Optional[str] = None):
        super().__init__(message, provider)
        self.payload = payload


class NoProvidersAvailableError(GatewayError):
    """Raised when an aggregate operation found nothing usable."""

    def __init__(self, message: Optional[str] = None, failures: Optional[dict] = None):
        super().__init__(
            message
            or "No AI services available. Start LM Studio or Ollama, "
            "or configure credentials for a hosted provider."
        )
        self.failures = failures or {}


class UnknownProviderError(GatewayError):
    """Raised when a provider id has no configured adapter."""

    def __init__(self, provider: str):
        super().__init__(f"Unknown provider: {provider}", provider)


class AttachmentError(GatewayError):
    """Raised when an attachment fails the size or format policy."""
    pass
