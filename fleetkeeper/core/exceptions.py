"""Exception hierarchy for fleetkeeper."""


class FleetkeeperError(Exception):
    """Base exception for all fleetkeeper errors."""


class ConfigurationError(FleetkeeperError):
    """Required configuration is missing or invalid. Fatal at startup."""


class DataClientError(FleetkeeperError):
    """A table operation against the data service failed."""

    def __init__(self, message: str, *, code: str = "database_error", table: str = ""):
        self.code = code
        self.table = table
        super().__init__(message)


class NotFoundError(DataClientError):
    """A single-row query matched no rows."""

    def __init__(self, message: str = "No rows found", *, table: str = ""):
        super().__init__(message, code="not_found", table=table)


class AuthError(FleetkeeperError):
    """Sign-in, sign-up, sign-out or session retrieval failed."""


class InvalidCredentialsError(AuthError):
    """Email or password did not match an account."""


class UserAlreadyExistsError(AuthError):
    """An auth account with this email already exists."""


class RegistrationError(FleetkeeperError):
    """Registration could not be completed."""
