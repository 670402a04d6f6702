"""
Error types for the CCTV Dashboard.

Stream errors never leave a session: they move it to the error state and are
shown to the viewer as text. Registry errors are turned into HTTP responses
by the API blueprint.
"""


class StreamError(Exception):
    """Base class for failures of a single camera stream"""

    kind = 'Stream error'

    def describe(self) -> str:
        """Human-readable message for the dashboard tile"""
        message = str(self)
        return f"{self.kind}: {message}" if message else self.kind


class TransportError(StreamError):
    """Network or socket failure, HTTP error status, or timeout"""
    kind = 'Transport error'


class ProtocolError(StreamError):
    """Manifest, image or decoder could not be parsed"""
    kind = 'Protocol error'


class ConfigurationError(StreamError):
    """Missing or unsupported source locator"""
    kind = 'Configuration error'


class RegistryError(Exception):
    """Base class for camera registry failures"""


class CameraNotFoundError(RegistryError):
    pass


class DuplicateCameraError(RegistryError):
    pass


class ValidationError(RegistryError):
    pass
