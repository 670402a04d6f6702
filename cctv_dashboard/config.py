"""
Configuration classes for the CCTV Dashboard.
"""
import os
from dataclasses import dataclass
from typing import Optional


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() == 'true'


class Config:
    """Base configuration class"""

    # Flask
    SECRET_KEY = os.environ.get('SECRET_KEY')
    DEBUG = _env_flag('DEBUG', 'false')
    HOST = os.environ.get('HOST', '0.0.0.0')
    PORT = int(os.environ.get('PORT', '5000'))

    # Camera registry (SQLite)
    DATABASE_PATH = os.environ.get(
        'DATABASE_PATH',
        os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'data', 'cctv.db')
    )
    SQLALCHEMY_DATABASE_URI = None
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SEED_DEMO_CAMERAS = _env_flag('SEED_DEMO_CAMERAS', 'true')

    # Stream sessions (seconds)
    STREAM_RETRY_PERIOD = float(os.environ.get('STREAM_RETRY_PERIOD', '30'))
    STREAM_SETTLE_DELAY = float(os.environ.get('STREAM_SETTLE_DELAY', '1.0'))
    STREAM_CONNECT_TIMEOUT = float(os.environ.get('STREAM_CONNECT_TIMEOUT', '20'))  # 0 disables
    STREAM_POLL_INTERVAL = float(os.environ.get('STREAM_POLL_INTERVAL', '3.0'))
    STREAM_FETCH_TIMEOUT = float(os.environ.get('STREAM_FETCH_TIMEOUT', '10'))

    # Placeholder locators used when a camera has no source configured
    DEMO_HLS_URL = os.environ.get('DEMO_HLS_URL', 'https://test-streams.mux.dev/x36xhzz/x36xhzz.m3u8')
    DEMO_SNAPSHOT_URL = os.environ.get(
        'DEMO_SNAPSHOT_URL', 'https://picsum.photos/seed/cctv{camera_id}/1920/1080.jpg'
    )

    # RTSP gateway (rtsp-simple-server / MediaMTX style proxy)
    TUNNEL_GATEWAY_URL = os.environ.get('TUNNEL_GATEWAY_URL', 'ws://localhost:8080/stream/{camera_id}')
    TUNNEL_SNAPSHOT_URL = os.environ.get(
        'TUNNEL_SNAPSHOT_URL', 'http://localhost:8080/stream/{camera_id}/snapshot.jpg'
    )

    # MQTT status notifications (TLS on port 8883)
    MQTT_ENABLED = _env_flag('MQTT_ENABLED', 'false')
    MQTT_BROKER = os.environ.get('MQTT_BROKER', 'localhost')
    MQTT_PORT = int(os.environ.get('MQTT_PORT', '8883'))
    MQTT_USE_TLS = _env_flag('MQTT_USE_TLS', 'true')
    MQTT_CLIENT_ID = 'cctv_dashboard'
    MQTT_USERNAME = os.environ.get('MQTT_USERNAME', '')
    MQTT_PASSWORD = os.environ.get('MQTT_PASSWORD', '')
    MQTT_TOPIC_PREFIX = os.environ.get('MQTT_TOPIC_PREFIX', 'cctv')

    # Audit trail
    AUDIT_LOG_DIR = os.environ.get('AUDIT_LOG_DIR')


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False


class TestingConfig(Config):
    """Test configuration: no seeding, no broker, in-memory database"""
    TESTING = True
    SECRET_KEY = 'testing'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SEED_DEMO_CAMERAS = False
    MQTT_ENABLED = False


@dataclass(frozen=True)
class StreamSettings:
    """Per-session timing and locator settings, read from the Flask config"""
    retry_period: float = 30.0
    settle_delay: float = 1.0
    connect_timeout: Optional[float] = 20.0
    poll_interval: float = 3.0
    fetch_timeout: float = 10.0
    demo_hls_url: str = 'https://test-streams.mux.dev/x36xhzz/x36xhzz.m3u8'
    demo_snapshot_url: str = 'https://picsum.photos/seed/cctv{camera_id}/1920/1080.jpg'
    tunnel_gateway_url: str = 'ws://localhost:8080/stream/{camera_id}'
    tunnel_snapshot_url: str = 'http://localhost:8080/stream/{camera_id}/snapshot.jpg'

    @classmethod
    def from_config(cls, config) -> 'StreamSettings':
        timeout = float(config.get('STREAM_CONNECT_TIMEOUT') or 0)
        return cls(
            retry_period=float(config.get('STREAM_RETRY_PERIOD', cls.retry_period)),
            settle_delay=float(config.get('STREAM_SETTLE_DELAY', cls.settle_delay)),
            connect_timeout=timeout if timeout > 0 else None,
            poll_interval=float(config.get('STREAM_POLL_INTERVAL', cls.poll_interval)),
            fetch_timeout=float(config.get('STREAM_FETCH_TIMEOUT', cls.fetch_timeout)),
            demo_hls_url=config.get('DEMO_HLS_URL', cls.demo_hls_url),
            demo_snapshot_url=config.get('DEMO_SNAPSHOT_URL', cls.demo_snapshot_url),
            tunnel_gateway_url=config.get('TUNNEL_GATEWAY_URL', cls.tunnel_gateway_url),
            tunnel_snapshot_url=config.get('TUNNEL_SNAPSHOT_URL', cls.tunnel_snapshot_url),
        )
