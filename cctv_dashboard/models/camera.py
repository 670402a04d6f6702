"""
Camera descriptor and enumerations shared by the registry and stream sessions.
"""
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from urllib.parse import urlparse, urlunparse

from ..errors import ValidationError

RESOLUTION_PATTERN = re.compile(r'^[1-9]\d*x[1-9]\d*$')


class CameraStatus(str, Enum):
    ONLINE = 'online'
    OFFLINE = 'offline'
    RECORDING = 'recording'


class StreamProtocol(str, Enum):
    SEGMENTED = 'segmented'
    POLLING = 'polling'
    TUNNELED = 'tunneled'

    @property
    def label(self) -> str:
        """Stream type label shown on the dashboard tile"""
        return _PROTOCOL_LABELS[self]


_PROTOCOL_LABELS = {
    StreamProtocol.SEGMENTED: 'HLS',
    StreamProtocol.POLLING: 'MJPEG',
    StreamProtocol.TUNNELED: 'RTSP',
}

# Stream type names used by the dashboard and the seed data
_PROTOCOL_ALIASES = {
    'hls': StreamProtocol.SEGMENTED,
    'mjpeg': StreamProtocol.POLLING,
    'rtsp': StreamProtocol.TUNNELED,
}


def parse_status(value) -> CameraStatus:
    """Parse a camera status, case-insensitively"""
    if isinstance(value, CameraStatus):
        return value
    try:
        return CameraStatus(str(value).strip().lower())
    except ValueError:
        allowed = ', '.join(s.value for s in CameraStatus)
        raise ValidationError(f"Invalid status '{value}'. Use: {allowed}") from None


def parse_protocol(value) -> StreamProtocol:
    """Parse a stream protocol; accepts the HLS/MJPEG/RTSP stream type labels"""
    if isinstance(value, StreamProtocol):
        return value
    key = str(value).strip().lower()
    if key in _PROTOCOL_ALIASES:
        return _PROTOCOL_ALIASES[key]
    try:
        return StreamProtocol(key)
    except ValueError:
        allowed = ', '.join(p.value for p in StreamProtocol)
        raise ValidationError(f"Invalid protocol '{value}'. Use: {allowed}") from None


def validate_resolution(value) -> str:
    resolution = str(value).strip()
    if not RESOLUTION_PATTERN.match(resolution):
        raise ValidationError(f"Invalid resolution '{value}'. Use WIDTHxHEIGHT, e.g. 1920x1080")
    return resolution


def validate_fps(value) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError("fps must be a positive integer")
    try:
        fps = int(value)
    except (TypeError, ValueError):
        raise ValidationError("fps must be a positive integer") from None
    if fps <= 0:
        raise ValidationError("fps must be a positive integer")
    return fps


def mask_locator(url: Optional[str]) -> Optional[str]:
    """Hide the password in a locator for logs and API responses"""
    if not url:
        return url
    parsed = urlparse(url)
    if parsed.password is None:
        return url

    host = parsed.hostname or ''
    if parsed.port:
        host = f"{host}:{parsed.port}"
    netloc = f"{parsed.username or ''}:****@{host}"
    return urlunparse(parsed._replace(netloc=netloc))


@dataclass(frozen=True)
class CameraDescriptor:
    """Immutable snapshot of a registry record, handed to stream sessions"""
    camera_id: str
    name: str
    location: str
    status: CameraStatus
    resolution: str
    fps: int
    protocol: StreamProtocol
    source_url: Optional[str] = None
    last_update: Optional[datetime] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses"""
        return {
            'id': self.camera_id,
            'name': self.name,
            'location': self.location,
            'status': self.status.value,
            'lastUpdate': self.last_update.isoformat() if self.last_update else None,
            'resolution': self.resolution,
            'fps': self.fps,
            'protocol': self.protocol.value,
            'streamType': self.protocol.label,
            'sourceUrl': mask_locator(self.source_url),
        }
