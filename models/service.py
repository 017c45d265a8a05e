from datetime import datetime
from models.db import db

class Service(db.Model):
    __tablename__ = "services"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=False, default=45)
    price = db.Column(db.Integer, nullable=False, default=0)  # store smallest unit (e.g., cents)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("name", name="uq_services_name"),
        db.CheckConstraint("duration_minutes > 0", name="ck_services_duration_positive"),
    )
