"""
Camera registry for the CCTV Dashboard.
CRUD over the cameras table; all functions require a Flask app context.
"""
from datetime import datetime
from typing import List, Optional

from flask import current_app

from ..errors import CameraNotFoundError, DuplicateCameraError, ValidationError
from ..models.camera import (
    CameraDescriptor,
    CameraStatus,
    StreamProtocol,
    parse_protocol,
    parse_status,
    validate_fps,
    validate_resolution,
)
from ..models.database import db, Camera


def list_cameras() -> List[CameraDescriptor]:
    """All cameras ordered by camera id"""
    return [c.to_descriptor() for c in Camera.query.order_by(Camera.camera_id.asc()).all()]


def get_camera(camera_id: str) -> Optional[CameraDescriptor]:
    camera = Camera.query.filter_by(camera_id=camera_id).first()
    return camera.to_descriptor() if camera else None


def _text_field(data: dict, key: str, required: bool = False) -> Optional[str]:
    value = data.get(key)
    if value is None:
        if required:
            raise ValidationError(f"{key} is required")
        return None
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{key} must be a non-empty string")
    return value.strip()


def _source_field(data: dict):
    """Read the source locator; returns (present, value)"""
    for key in ('sourceUrl', 'rtspUrl'):
        if key in data:
            value = data[key]
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"{key} must be a string")
            return True, (value or '').strip() or None
    return False, None


def create_camera(data: dict) -> CameraDescriptor:
    """Create a camera from an API payload"""
    camera_id = _text_field(data, 'cameraId', required=True)
    name = _text_field(data, 'name', required=True)
    location = _text_field(data, 'location', required=True)
    status = parse_status(data.get('status', CameraStatus.OFFLINE.value))
    resolution = validate_resolution(data.get('resolution', '1920x1080'))
    fps = validate_fps(data.get('fps', 30))
    protocol = parse_protocol(data.get('protocol', data.get('streamType', StreamProtocol.SEGMENTED.value)))
    _, source_url = _source_field(data)

    if Camera.query.filter_by(camera_id=camera_id).first():
        raise DuplicateCameraError("Camera with this ID already exists")

    camera = Camera(
        camera_id=camera_id,
        name=name,
        location=location,
        status=status.value,
        resolution=resolution,
        fps=fps,
        protocol=protocol.value,
        source_url=source_url,
        last_update=datetime.utcnow(),
    )
    db.session.add(camera)
    db.session.commit()
    print(f"[Registry] Created camera {camera_id} ({protocol.value})")
    return camera.to_descriptor()


def update_camera(camera_id: str, data: dict) -> CameraDescriptor:
    """Apply a partial update; status changes are forwarded to live sessions"""
    camera = Camera.query.filter_by(camera_id=camera_id).first()
    if camera is None:
        raise CameraNotFoundError("Camera not found")

    # Validate everything before touching the row
    changes = {}
    if 'name' in data:
        changes['name'] = _text_field(data, 'name', required=True)
    if 'location' in data:
        changes['location'] = _text_field(data, 'location', required=True)
    if 'status' in data:
        changes['status'] = parse_status(data['status']).value
    if 'resolution' in data:
        changes['resolution'] = validate_resolution(data['resolution'])
    if 'fps' in data:
        changes['fps'] = validate_fps(data['fps'])
    if 'protocol' in data or 'streamType' in data:
        changes['protocol'] = parse_protocol(data.get('protocol', data.get('streamType'))).value
    present, source_url = _source_field(data)
    if present:
        changes['source_url'] = source_url

    previous_status = camera.status
    for field, value in changes.items():
        setattr(camera, field, value)
    camera.last_update = datetime.utcnow()
    db.session.commit()

    descriptor = camera.to_descriptor()
    if descriptor.status.value != previous_status:
        print(f"[Registry] {camera_id} status: {previous_status} -> {descriptor.status.value}")
        notify_status_change(camera_id, descriptor.status)
    return descriptor


def set_status(camera_id: str, status) -> Optional[CameraDescriptor]:
    """Record a status report for a known camera; unknown ids are ignored"""
    camera = Camera.query.filter_by(camera_id=camera_id).first()
    if camera is None:
        return None
    return update_camera(camera_id, {'status': parse_status(status).value})


def delete_camera(camera_id: str) -> None:
    camera = Camera.query.filter_by(camera_id=camera_id).first()
    if camera is None:
        raise CameraNotFoundError("Camera not found")
    db.session.delete(camera)
    db.session.commit()
    print(f"[Registry] Deleted camera {camera_id}")

    sessions = current_app.extensions.get('stream_sessions')
    if sessions is not None:
        sessions.dispose(camera_id)


def notify_status_change(camera_id: str, status: CameraStatus) -> None:
    sessions = current_app.extensions.get('stream_sessions')
    if sessions is not None:
        sessions.notify_status(camera_id, status)
