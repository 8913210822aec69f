"""Exceptions raised by the JetPass authentication middleware.

Configuration errors surface at startup. Every other error is raised inside
the callback state machine and converted into a failed authentication ticket
before it can reach the host.
"""


class JetPassError(Exception):
    """Base class for all JetPass errors."""


class MissingConfigurationError(JetPassError, ValueError):
    """A required option (client id, client secret) is missing or blank."""

    def __init__(self, option: str):
        self.option = option
        super().__init__(f"The '{option}' option must be provided.")


class BackchannelConfigurationError(JetPassError):
    """The backchannel options cannot be combined."""


class MalformedCallbackError(JetPassError):
    """The callback did not carry exactly one authorization code."""


class TokenExchangeError(JetPassError):
    """The token endpoint rejected the code or returned no access token."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class ProfileFetchError(JetPassError):
    """The user-info endpoint did not return the user's profile."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class BackchannelResponseTooLarge(JetPassError):
    """A backchannel response exceeded the buffer limit."""


class RequestAbortedError(JetPassError):
    """The inbound request was aborted while a backchannel call was pending."""
