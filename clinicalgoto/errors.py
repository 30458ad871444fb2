from fastapi import status


class RegistryError(Exception):
    """Base class for errors that map onto a JSON error response."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RegistryError):
    """Missing or malformed client input."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(RegistryError):
    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(RegistryError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(RegistryError):
    """An active registrant already uses this email."""

    status_code = status.HTTP_409_CONFLICT


class UpstreamError(RegistryError):
    """The ClinicalTrials.gov call failed, timed out or returned garbage."""


class InternalError(RegistryError):
    pass
