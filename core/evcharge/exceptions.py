"""Custom exception classes for EV charge manager components.

Core algorithms (selection, decision, formatting) never raise. These types are
used by the collaborators around them: price sources, the vehicle API client
and configuration loading.
"""

MAX_ERROR_TEXT_LENGTH = 200


def extract_error_message(error) -> str:
    """Return a printable message for any exception or value."""
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    return str(error)


def truncate_error_message(message: str, max_length: int = MAX_ERROR_TEXT_LENGTH) -> str:
    """Cut long upstream error bodies down to a loggable size."""
    return message[:max_length] if len(message) > max_length else message


class EVChargeException(Exception):
    """Base exception for all EV charge manager components."""
    pass


class PriceDataUnavailableError(EVChargeException):
    """Raised when electricity price data cannot be fetched or parsed."""

    def __init__(self, source=None, message=None):
        if message is None:
            if source:
                message = f"No price data available from {source}"
            else:
                message = "Price data is not available"
        super().__init__(message)
        self.source = source


class SystemConfigurationError(EVChargeException):
    """Raised when there are configuration or system setup issues."""

    def __init__(self, component=None, message=None):
        if message is None:
            if component:
                message = f"Configuration error in {component}"
            else:
                message = "System configuration error"
        super().__init__(message)
        self.component = component


class VehicleApiError(EVChargeException):
    """Raised when the vehicle cloud API returns an error or cannot be reached."""

    def __init__(self, message, status_code=None, response_text=None):
        error_text = truncate_error_message(response_text) if response_text else ""
        if status_code:
            full_message = f"{message} {status_code}: {error_text}"
        else:
            full_message = f"{message}: {error_text or 'Unknown error'}"
        super().__init__(full_message)
        self.status_code = status_code
        self.response_text = error_text

    @property
    def is_auth_error(self) -> bool:
        """True for 401/403 responses."""
        return self.status_code in (401, 403)
