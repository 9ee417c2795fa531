"""Broker-specific exceptions raised by the callback collaborators."""


class BrokerError(Exception):
    """Base exception for all broker operations."""
    pass


class ConfigurationError(BrokerError):
    """Provider or application configuration is incomplete."""
    pass


class SessionResolutionError(BrokerError):
    """In-flight login attempt could not be resolved from the state token.

    Carries its own HTTP-shaped failure, returned to the client unchanged.

    Attributes:
        status_code: HTTP status code for the response
        message: User-facing message
    """

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"[{status_code}] {message}")


class TokenExchangeError(BrokerError):
    """Token endpoint call failed (transport error or HTTP error status).

    Attributes:
        status_code: HTTP status code, or None when no response was received
        message: Error detail (server-side only)
        endpoint: Token endpoint that failed
    """

    def __init__(self, status_code: int | None, message: str, endpoint: str):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        super().__init__(f"[{status_code}] {endpoint}: {message}")


class InvalidProfileError(BrokerError, ValueError):
    """Token/profile response is malformed or lacks a required attribute.

    Attributes:
        kind: One of "malformed_response", "missing_identifier", "missing_email"
    """

    def __init__(self, kind: str, message: str = ""):
        self.kind = kind
        super().__init__(message or kind)


class BrokerSecurityError(BrokerError):
    """Profile attribute rejected by provider security policy."""

    kind = "security_policy_violation"


class EmailDomainRejectedError(BrokerSecurityError):
    """Email address belongs to a domain the provider does not allow."""

    kind = "email_domain_rejected"

    def __init__(self, domain: str):
        self.domain = domain
        super().__init__(f"Email domain not allowed: {domain}")
