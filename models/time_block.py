from datetime import datetime
from models.db import db

class TimeBlock(db.Model):
    """Staff-declared unavailability (break, day off). NULL resource_id blocks every resource."""
    __tablename__ = "time_blocks"

    id = db.Column(db.Integer, primary_key=True)

    resource_id = db.Column(db.Integer, db.ForeignKey("resources.id"), nullable=True, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    start_time = db.Column(db.DateTime, nullable=False)
    end_time = db.Column(db.DateTime, nullable=False)
    reason = db.Column(db.String(120), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint("end_time > start_time", name="ck_time_blocks_range"),
    )
