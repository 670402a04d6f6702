"""
SQLAlchemy database models for the CCTV Dashboard.
"""
from datetime import datetime

from flask_sqlalchemy import SQLAlchemy

from .camera import CameraDescriptor, CameraStatus, StreamProtocol

db = SQLAlchemy()


class Camera(db.Model):
    """Persistent camera metadata"""
    __tablename__ = 'cameras'

    id = db.Column(db.Integer, primary_key=True)
    camera_id = db.Column(db.String(100), unique=True, nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    location = db.Column(db.String(100), nullable=False, default='')
    status = db.Column(db.String(20), nullable=False, default=CameraStatus.OFFLINE.value)
    resolution = db.Column(db.String(20), nullable=False, default='1920x1080')
    fps = db.Column(db.Integer, nullable=False, default=30)
    protocol = db.Column(db.String(20), nullable=False, default=StreamProtocol.SEGMENTED.value)
    source_url = db.Column(db.String(500))
    last_update = db.Column(db.DateTime, default=datetime.utcnow)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_descriptor(self) -> CameraDescriptor:
        """Snapshot this row for the stream controller"""
        return CameraDescriptor(
            camera_id=self.camera_id,
            name=self.name,
            location=self.location,
            status=CameraStatus(self.status),
            resolution=self.resolution,
            fps=self.fps,
            protocol=StreamProtocol(self.protocol),
            source_url=self.source_url or None,
            last_update=self.last_update,
        )

    def to_dict(self):
        """Convert to dictionary for API responses"""
        return self.to_descriptor().to_dict()

    def __repr__(self):
        return f'<Camera {self.camera_id}>'


def init_db(app):
    """Initialize database and create tables"""
    db.init_app(app)

    with app.app_context():
        db.create_all()

        if app.config.get('SEED_DEMO_CAMERAS') and Camera.query.count() == 0:
            from .seed import seed_cameras
            count = seed_cameras()
            print(f"[Database] Seeded {count} demo cameras")

        print("[Database] Initialized successfully")
