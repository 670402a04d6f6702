"""
CCTV Dashboard - Flask Application Factory
"""
import os
import atexit

from flask import Flask

from .config import Config, StreamSettings
from .security import add_security_headers


def create_app(config_class=Config, session_manager=None):
    """Application factory pattern for Flask app creation"""
    app = Flask(__name__)

    # Load configuration
    app.config.from_object(config_class)

    # Configure SQLite database
    if not app.config.get('SQLALCHEMY_DATABASE_URI'):
        db_path = app.config['DATABASE_PATH']
        os.makedirs(os.path.dirname(db_path), exist_ok=True)
        app.config['SQLALCHEMY_DATABASE_URI'] = f'sqlite:///{db_path}'

    # Add security headers to all responses
    app.after_request(add_security_headers)

    # Initialize database
    from .models.database import init_db
    init_db(app)

    # Stream sessions, one per visible camera tile
    if session_manager is None:
        from .services.streams import StreamSessionManager
        session_manager = StreamSessionManager(StreamSettings.from_config(app.config))
    app.extensions['stream_sessions'] = session_manager

    # Register blueprints
    from .routes import main_bp, api_bp
    app.register_blueprint(main_bp)
    app.register_blueprint(api_bp, url_prefix='/api')

    from .services import mqtt

    def cleanup():
        """Graceful shutdown - stop all sessions and services"""
        print("\n[System] Shutting down...")
        session_manager.dispose_all()
        mqtt.stop()
        print("[System] Shutdown complete")

    if not app.testing:
        atexit.register(cleanup)

    return app
