"""
Viewing routes for the CCTV Dashboard.
Relays the latest frame of a live stream session to the browser.
"""
import time
from functools import lru_cache

import cv2
import numpy as np
from flask import Blueprint, Response, current_app, jsonify

from ..models.camera import CameraStatus
from ..services.session import ConnectionState

main_bp = Blueprint('main', __name__)

FRAME_INTERVAL = 0.1


@lru_cache(maxsize=16)
def get_placeholder_frame(message: str = "No Signal") -> bytes:
    """Generate a placeholder frame with message"""
    placeholder = np.zeros((480, 640, 3), dtype=np.uint8)
    (width, _), _ = cv2.getTextSize(message, cv2.FONT_HERSHEY_SIMPLEX, 1.2, 2)
    cv2.putText(placeholder, message, ((640 - width) // 2, 240), cv2.FONT_HERSHEY_SIMPLEX, 1.2, (100, 100, 100), 2)
    ret, buffer = cv2.imencode('.jpg', placeholder)
    return buffer.tobytes()


def _placeholder_for(session) -> bytes:
    if session.status is CameraStatus.OFFLINE:
        return get_placeholder_frame("Camera Offline")
    if session.state is ConnectionState.ERROR:
        return get_placeholder_frame("Stream Error")
    return get_placeholder_frame("Connecting...")


def _multipart(frame_bytes: bytes) -> bytes:
    return (b'--frame\r\n'
            b'Content-Type: image/jpeg\r\n\r\n' + frame_bytes + b'\r\n')


def generate_frames(session):
    """Stream the session's frames until it is disposed"""
    last_frame = None
    while not session.disposed:
        frame = session.get_frame()
        if frame is None:
            # Placeholders are cached, so an unchanged message is the same object
            frame = _placeholder_for(session)
        if frame is not last_frame:
            last_frame = frame
            yield _multipart(frame)
        time.sleep(FRAME_INTERVAL)


@main_bp.route('/video_feed/<camera_id>')
def video_feed(camera_id):
    """Video streaming route - uses the session's frame buffer"""
    session = current_app.extensions['stream_sessions'].get(camera_id)
    if session is None:
        return "Session not found", 404
    return Response(generate_frames(session),
                    mimetype='multipart/x-mixed-replace; boundary=frame')


@main_bp.route('/snapshot/<camera_id>')
def snapshot(camera_id):
    """Latest frame of a live session as a JPEG"""
    session = current_app.extensions['stream_sessions'].get(camera_id)
    if session is None:
        return jsonify({"success": False, "error": "Session not found"}), 404
    frame = session.get_frame()
    if frame is None:
        return jsonify({"success": False, "error": "No frame available"}), 503
    return Response(frame, mimetype='image/jpeg')
