"""Exceptions raised by the appliance client and the provisioner."""

from typing import Optional

__all__ = [
    "ApiError",
    "AuthenticationError",
    "CompletionTimeoutError",
    "ConfigurationError",
    "DecodeError",
    "IgnoredError",
    "OwnershipError",
    "ProvisionerError",
    "TransportError",
]


class ProvisionerError(Exception):
    """Base class for all provisioner errors."""


class ConfigurationError(ProvisionerError):
    """The provisioner or client is missing required settings."""


class TransportError(ProvisionerError):
    """The appliance could not be reached (network or TLS failure)."""


class AuthenticationError(ProvisionerError):
    """Login was rejected or no credentials are configured."""


class DecodeError(ProvisionerError):
    """The appliance replied with a body that is not a JSON object."""

    def __init__(self, message: str, body: str = ""):
        super().__init__(message)
        self.body = body


class CompletionTimeoutError(ProvisionerError):
    """An asynchronous (202) request never reported completion."""


class ApiError(ProvisionerError):
    """The appliance answered with an HTTP error status."""

    def __init__(self, status_code: int, message: Optional[str], endpoint: str = ""):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        super().__init__(f"{endpoint} returned {status_code}: {message or 'no message'}")


class OwnershipError(ProvisionerError):
    """A volume carries no identity marker, so nobody can claim it."""


class IgnoredError(ProvisionerError):
    """The volume belongs to another provisioner instance.

    Callers should skip the volume rather than treat this as a failure.
    """
