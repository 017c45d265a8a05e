from models import db
from models.resource import Resource
from models.service import Service

DEFAULT_SERVICES = [
    ("Haircut", 45, 1500),
    ("Beard trim", 45, 1000),
    ("Haircut + beard 90", 90, 2300),
]

def seed_demo(resource_name: str = "Main chair"):
    """Create one resource and the default service catalog (safe & idempotent)."""
    if not Resource.query.filter_by(name=resource_name).first():
        db.session.add(Resource(name=resource_name))

    existing = {s.name for s in Service.query.all()}
    for name, minutes, price in DEFAULT_SERVICES:
        if name not in existing:
            db.session.add(Service(name=name, duration_minutes=minutes, price=price))
    db.session.commit()
