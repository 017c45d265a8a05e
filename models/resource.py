from datetime import datetime
from models.db import db

class Resource(db.Model):
    __tablename__ = "resources"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Working hours override; NULL falls back to OPEN_HOUR / CLOSE_HOUR / SLOT_INTERVAL_MINUTES
    open_hour = db.Column(db.Integer, nullable=True)
    close_hour = db.Column(db.Integer, nullable=True)
    interval_minutes = db.Column(db.Integer, nullable=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("name", name="uq_resources_name"),
    )
