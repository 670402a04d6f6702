"""
Protocol dispatch and source-locator resolution for stream sessions.

These are pure functions of their arguments: a session calls them once per
connection attempt to decide which adapter runs and where it connects.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import urlparse

from ..config import StreamSettings
from ..models.camera import StreamProtocol, mask_locator

HTTP_SCHEMES = ('http', 'https')


class AdapterKind(str, Enum):
    SEGMENTED = 'segmented'
    POLLING = 'polling'


@dataclass(frozen=True)
class ConnectionPlan:
    """Which adapter to run and the locator it connects to"""
    adapter: AdapterKind
    locator: str
    source: str  # override, camera, or placeholder
    display_locator: str


def select_adapter(protocol: StreamProtocol) -> AdapterKind:
    if protocol is StreamProtocol.SEGMENTED:
        return AdapterKind.SEGMENTED
    if protocol is StreamProtocol.POLLING:
        return AdapterKind.POLLING
    if protocol is StreamProtocol.TUNNELED:
        # No tunnel client yet: poll the gateway's snapshot endpoint instead
        return AdapterKind.POLLING
    raise ValueError(f"Unhandled stream protocol: {protocol!r}")


def placeholder_locator(protocol: StreamProtocol, camera_id: str, settings: StreamSettings) -> str:
    """Demo locator for cameras without a configured source"""
    if protocol is StreamProtocol.SEGMENTED:
        return settings.demo_hls_url.format(camera_id=camera_id)
    if protocol is StreamProtocol.POLLING:
        return settings.demo_snapshot_url.format(camera_id=camera_id)
    if protocol is StreamProtocol.TUNNELED:
        return settings.tunnel_gateway_url.format(camera_id=camera_id)
    raise ValueError(f"Unhandled stream protocol: {protocol!r}")


def resolve_locator(protocol: StreamProtocol, camera_id: str, override: Optional[str],
                    declared: Optional[str], settings: StreamSettings) -> tuple[str, str]:
    """
    Pick the source locator for a session.
    Returns (locator, source) where source is 'override', 'camera' or 'placeholder'.
    """
    if override:
        return override, 'override'
    if declared:
        return declared, 'camera'
    return placeholder_locator(protocol, camera_id, settings), 'placeholder'


def tunnel_snapshot_locator(locator: str, camera_id: str, settings: StreamSettings) -> str:
    """Pollable locator for a tunneled camera"""
    if urlparse(locator).scheme.lower() in HTTP_SCHEMES:
        return locator
    return settings.tunnel_snapshot_url.format(camera_id=camera_id)


def plan_connection(protocol: StreamProtocol, camera_id: str, override: Optional[str],
                    declared: Optional[str], settings: StreamSettings) -> ConnectionPlan:
    locator, source = resolve_locator(protocol, camera_id, override, declared, settings)
    adapter = select_adapter(protocol)
    target = locator
    if protocol is StreamProtocol.TUNNELED:
        target = tunnel_snapshot_locator(locator, camera_id, settings)
    return ConnectionPlan(adapter=adapter, locator=target, source=source, display_locator=locator)
