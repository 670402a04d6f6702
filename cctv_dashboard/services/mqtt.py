"""
MQTT client for the CCTV Dashboard.
Receives camera status reports and forwards them to the registry and the
camera's live stream session.
"""

import json
import ssl

import paho.mqtt.client as mqtt

from ..errors import ValidationError
from ..models.camera import parse_status

# Global reference to Flask app for registry updates from MQTT callbacks
_flask_app = None
_client = None


def set_flask_app(app):
    """Set the Flask app reference for use in MQTT callbacks"""
    global _flask_app
    _flask_app = app


def _topic_prefix():
    if _flask_app is None:
        return 'cctv'
    return _flask_app.config.get('MQTT_TOPIC_PREFIX', 'cctv')


def parse_status_payload(payload: str):
    """Status from a JSON object ({"status": ...}) or a bare string"""
    try:
        data = json.loads(payload)
    except (json.JSONDecodeError, TypeError):
        return payload.strip()
    if isinstance(data, dict):
        return data.get('status')
    if isinstance(data, str):
        return data
    return None


def apply_status(camera_id: str, raw_status) -> bool:
    """Persist a reported status; returns True when the camera is known"""
    if _flask_app is None:
        print(f"[MQTT] Cannot apply status for {camera_id} - app not ready")
        return False

    try:
        status = parse_status(raw_status)
    except ValidationError as e:
        print(f"[MQTT] Ignoring status for {camera_id}: {e}")
        return False

    from .registry import set_status

    with _flask_app.app_context():
        descriptor = set_status(camera_id, status)
    if descriptor is None:
        print(f"[MQTT] Status for unknown camera {camera_id} ignored")
        return False
    print(f"[MQTT] {camera_id} status: {status.value}")
    return True


def _on_connect(client, userdata, flags, reason_code, properties):
    """Called when connected to MQTT broker"""
    print(f"[MQTT] Connected with result code {reason_code}")
    topic = f"{_topic_prefix()}/+/status"
    client.subscribe(topic)
    print(f"[MQTT] Subscribed to {topic}")


def _on_message(client, userdata, msg):
    """Called when a message is received from MQTT"""
    parts = msg.topic.split("/")
    if len(parts) != 3 or parts[0] != _topic_prefix() or parts[2] != "status":
        return

    camera_id = parts[1]
    payload = msg.payload.decode("utf-8", errors="replace")
    raw_status = parse_status_payload(payload)
    if raw_status is None:
        print(f"[MQTT] Malformed status payload from {camera_id}: {payload!r}")
        return

    try:
        apply_status(camera_id, raw_status)
    except Exception as e:
        print(f"[MQTT] Failed to apply status for {camera_id}: {e}")


def _on_disconnect(client, userdata, flags, reason_code, properties):
    """Called when disconnected from MQTT broker"""
    print(f"[MQTT] Disconnected with result code {reason_code}")


def _build_client(config):
    client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=config['MQTT_CLIENT_ID'])
    if config.get('MQTT_USERNAME'):
        client.username_pw_set(config['MQTT_USERNAME'], config.get('MQTT_PASSWORD') or None)

    if config.get('MQTT_USE_TLS'):
        # Accept self-signed broker certificates
        ssl_context = ssl.create_default_context()
        ssl_context.check_hostname = False
        ssl_context.verify_mode = ssl.CERT_NONE
        client.tls_set_context(ssl_context)
        print("[MQTT] TLS encryption enabled")

    client.on_connect = _on_connect
    client.on_message = _on_message
    client.on_disconnect = _on_disconnect
    return client


def start(app):
    """Start MQTT client in background thread with auto-reconnect"""
    global _client
    set_flask_app(app)
    _client = _build_client(app.config)
    _client.reconnect_delay_set(min_delay=1, max_delay=30)
    try:
        _client.connect(app.config['MQTT_BROKER'], app.config['MQTT_PORT'], 60)
        _client.loop_start()
        print("[MQTT] Client started")
    except Exception as e:
        print(f"[MQTT] Initial connection failed: {e}")
        print("[MQTT] Will retry in background...")
        _client.loop_start()


def stop():
    """Stop MQTT client"""
    global _client
    if _client is None:
        return
    _client.loop_stop()
    _client.disconnect()
    _client = None
    print("[MQTT] Client stopped")
