"""
API routes for the CCTV Dashboard.
Camera registry CRUD, stream configuration and stream session lifecycle.
"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import CameraNotFoundError, DuplicateCameraError, ValidationError
from ..models.database import db
from ..security import audit_log
from ..services import registry
from ..services.dispatch import mask_locator, plan_connection

api_bp = Blueprint("api", __name__)


def _ok(data=None, status=200, **extra):
    body = {"success": True}
    if data is not None:
        body["data"] = data
    body.update(extra)
    return jsonify(body), status


def _error(message, status):
    return jsonify({"success": False, "error": message}), status


def _sessions():
    return current_app.extensions["stream_sessions"]


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return None
    return data


@api_bp.route("/health")
def health_check():
    """Health check endpoint for system monitoring"""
    return jsonify({"status": "healthy", "service": "CCTV Dashboard"})


# =============================================================================
# CAMERA REGISTRY
# =============================================================================


@api_bp.route("/cameras")
def get_cameras():
    """Get all cameras"""
    try:
        cameras = registry.list_cameras()
    except Exception as e:
        print(f"[API] Error fetching cameras: {e}")
        return _error("Failed to fetch cameras", 500)
    return _ok([c.to_dict() for c in cameras])


@api_bp.route("/cameras", methods=["POST"])
def create_camera():
    """Register a new camera"""
    data = _json_body()
    if data is None:
        return _error("No data provided", 400)

    try:
        camera = registry.create_camera(data)
    except (ValidationError, DuplicateCameraError) as e:
        db.session.rollback()
        return _error(str(e), 400)
    except Exception as e:
        db.session.rollback()
        print(f"[API] Error creating camera: {e}")
        return _error("Failed to create camera", 500)

    audit_log("CAMERA_CREATED", f"{camera.camera_id} ({camera.name}, {camera.protocol.value})")
    return _ok(camera.to_dict())


@api_bp.route("/cameras/<camera_id>")
def get_camera(camera_id):
    """Get a single camera"""
    try:
        camera = registry.get_camera(camera_id)
    except Exception as e:
        print(f"[API] Error fetching camera {camera_id}: {e}")
        return _error("Failed to fetch camera", 500)
    if camera is None:
        return _error("Camera not found", 404)
    return _ok(camera.to_dict())


@api_bp.route("/cameras/<camera_id>", methods=["PUT"])
def update_camera(camera_id):
    """Update camera metadata; status changes reach the live session"""
    data = _json_body()
    if data is None:
        return _error("No data provided", 400)

    try:
        camera = registry.update_camera(camera_id, data)
    except CameraNotFoundError as e:
        return _error(str(e), 404)
    except ValidationError as e:
        db.session.rollback()
        return _error(str(e), 400)
    except Exception as e:
        db.session.rollback()
        print(f"[API] Error updating camera {camera_id}: {e}")
        return _error("Failed to update camera", 500)

    audit_log("CAMERA_UPDATED", f"{camera_id}: {', '.join(sorted(data))}")
    return _ok(camera.to_dict())


@api_bp.route("/cameras/<camera_id>", methods=["DELETE"])
def delete_camera(camera_id):
    """Delete a camera and stop its session"""
    try:
        registry.delete_camera(camera_id)
    except CameraNotFoundError as e:
        return _error(str(e), 404)
    except Exception as e:
        db.session.rollback()
        print(f"[API] Error deleting camera {camera_id}: {e}")
        return _error("Failed to delete camera", 500)

    audit_log("CAMERA_DELETED", camera_id)
    return _ok(message="Camera deleted successfully")


# =============================================================================
# STREAM CONFIGURATION
# =============================================================================


@api_bp.route("/streams/<camera_id>")
def get_stream_config(camera_id):
    """How the controller will connect to this camera"""
    camera = registry.get_camera(camera_id)
    if camera is None:
        return _error("Camera not found", 404)

    sessions = _sessions()
    session = sessions.get(camera_id)
    override = session.source_override if session is not None else None
    plan = plan_connection(camera.protocol, camera.camera_id, override, camera.source_url, sessions.settings)
    settings = sessions.settings

    return _ok({
        "cameraId": camera.camera_id,
        "protocol": camera.protocol.value,
        "streamType": camera.protocol.label,
        "adapter": plan.adapter.value,
        "locator": mask_locator(plan.display_locator),
        "pollLocator": mask_locator(plan.locator),
        "locatorSource": plan.source,
        "placeholder": plan.source == "placeholder",
        "gateway": {
            "stream": settings.tunnel_gateway_url.format(camera_id=camera.camera_id),
            "snapshot": settings.tunnel_snapshot_url.format(camera_id=camera.camera_id),
        },
        "session": session.to_dict() if session is not None else None,
    })


@api_bp.route("/streams/<camera_id>", methods=["POST"])
def configure_stream(camera_id):
    """Point this camera's session at another source locator"""
    camera = registry.get_camera(camera_id)
    if camera is None:
        return _error("Camera not found", 404)

    data = _json_body()
    if data is None:
        return _error("No data provided", 400)
    locator = data.get("sourceUrl", data.get("rtspUrl"))
    if locator is not None and not isinstance(locator, str):
        return _error("sourceUrl must be a string", 400)

    session = _sessions().open(camera)
    session.set_source_override(locator)
    audit_log("STREAM_CONFIGURED", f"{camera_id} -> {mask_locator(locator) or '(cleared)'}")
    return _ok({"cameraId": camera_id, "sourceUrl": mask_locator(locator), "streamType": camera.protocol.label},
               message="Stream configuration updated")


# =============================================================================
# STREAM SESSIONS
# =============================================================================


@api_bp.route("/sessions")
def list_sessions():
    """Status of every live session"""
    return _ok([s.to_dict() for s in _sessions().list()])


@api_bp.route("/sessions/<camera_id>", methods=["POST"])
def open_session(camera_id):
    """A tile for this camera became visible"""
    camera = registry.get_camera(camera_id)
    if camera is None:
        return _error("Camera not found", 404)
    session = _sessions().open(camera)
    return _ok(session.to_dict())


@api_bp.route("/sessions/<camera_id>")
def get_session(camera_id):
    session = _sessions().get(camera_id)
    if session is None:
        return _error("Session not found", 404)
    return _ok(session.to_dict())


@api_bp.route("/sessions/<camera_id>/refresh", methods=["POST"])
def refresh_session(camera_id):
    session = _sessions().get(camera_id)
    if session is None:
        return _error("Session not found", 404)
    session.request_refresh()
    return _ok(session.to_dict(), status=202)


@api_bp.route("/sessions/<camera_id>/source", methods=["PUT"])
def set_session_source(camera_id):
    """Override the source locator for this session only; empty clears it"""
    session = _sessions().get(camera_id)
    if session is None:
        return _error("Session not found", 404)

    data = _json_body()
    if data is None or "locator" not in data:
        return _error("locator is required", 400)
    locator = data["locator"]
    if locator is not None and not isinstance(locator, str):
        return _error("locator must be a string", 400)

    session.set_source_override(locator)
    audit_log("STREAM_CONFIGURED", f"{camera_id} -> {mask_locator(locator) or '(cleared)'}")
    return _ok(session.to_dict(), status=202)


@api_bp.route("/sessions/<camera_id>", methods=["DELETE"])
def dispose_session(camera_id):
    """The tile was removed from view"""
    if not _sessions().dispose(camera_id):
        return _error("Session not found", 404)
    return _ok(message="Session disposed")
