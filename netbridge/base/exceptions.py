from typing import Optional


class BridgeError(Exception):
    """Base exception for all netbridge errors."""

    # Status code the command surface answers with when this error escapes.
    http_status: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


# --- Validation: rejected before any I/O, never retried ---

class ValidationError(BridgeError):
    """Raised when a request is malformed before anything is sent or read."""
    http_status = 400


class UnsupportedMethodError(ValidationError):
    """Raised when the relay is asked for a verb other than GET/POST/PUT/DELETE."""
    def __init__(self, method: str):
        super().__init__(f"Unsupported request method: {method}")
        self.method = method


class InvalidFileError(ValidationError):
    """Raised when an upload source is missing or is not a regular file."""
    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class InvalidHeaderError(ValidationError):
    """Raised when a header name or value cannot be sent as ASCII."""
    def __init__(self, name: str):
        super().__init__(f"Header {name!r} contains characters that cannot be sent (ASCII only)")
        self.name = name


class InvalidUrlError(ValidationError):
    """Raised when a target URL cannot be parsed."""


class TransportConfigError(ValidationError):
    """Raised when an HTTP client cannot be built (e.g. malformed proxy URL)."""


class InvalidResponseFormatError(ValidationError):
    """Raised when an upload names a response format we cannot parse."""


# --- Transport: no response was received ---

class TransportError(BridgeError):
    """DNS, connect, timeout or TLS failure."""
    http_status = 502


class RelayError(TransportError):
    """Raised when a relayed request fails at the network level."""


# --- Protocol: a response arrived but it is not what we wanted ---

class ProtocolError(BridgeError):
    """Raised on a non-success status or an uninterpretable body."""
    http_status = 502

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


# --- Local I/O ---

class LocalIOError(BridgeError):
    """Raised when a local disk read, write or delete fails."""
    http_status = 500


class BindError(LocalIOError):
    """Raised when the file server cannot bind its loopback port."""
    http_status = 409

    def __init__(self, message: str, port: Optional[int] = None):
        super().__init__(message)
        self.port = port
