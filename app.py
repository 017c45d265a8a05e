import logging

from flask import Flask, jsonify
from config import Config
from routes import health_bp, availability_bp, booking_bp, admin_bp

from models import db
from flask_migrate import Migrate
from scheduling.errors import BookingError, ConfigurationError, DataIntegrityError, TransientError
from utils.booking_context import init_booking_service

logger = logging.getLogger(__name__)


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(availability_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(admin_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Booking core: one instance per app, sharing the scoped session
    init_booking_service(app, db.session)

    @app.errorhandler(BookingError)
    def _booking_error(exc):
        resp = jsonify(exc.to_dict())
        resp.status_code = exc.status_code
        if isinstance(exc, TransientError) and exc.retry_after:
            resp.headers["Retry-After"] = str(exc.retry_after)
        return resp

    @app.errorhandler(ConfigurationError)
    def _configuration_error(exc):
        logger.error("Scheduling configuration error: %s", exc)
        return jsonify(error="Scheduling is misconfigured"), 500

    @app.errorhandler(DataIntegrityError)
    def _data_integrity_error(exc):
        logger.error("Stored booking data is unusable: %s", exc)
        return jsonify(error="Stored booking data is inconsistent"), 500

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        # API only; the booking page is served separately
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp


    register_cli(app)


    return app

#-------------------------
import click
from models.resource import Resource
from models.service import Service
from scheduling.slots import check_working_hours
from utils.booking_context import booking_service
from utils.seed import seed_demo

def register_cli(app):
    @app.cli.command("init-db")
    def init_db():
        """Create tables and the no-overlap guard without Alembic (development)."""
        db.create_all()
        print("Database initialised")

    @app.cli.command("seed-demo")
    def seed_demo_command():
        """One resource plus the default service catalog."""
        seed_demo()
        print("Demo data ready")

    @app.cli.command("create-resource")
    @click.argument("name")
    @click.option("--open-hour", type=int, default=None)
    @click.option("--close-hour", type=int, default=None)
    @click.option("--interval", "interval_minutes", type=int, default=None)
    def create_resource(name, open_hour, close_hour, interval_minutes):
        """Add a bookable resource (chair / barber)."""
        if Resource.query.filter_by(name=name.strip()).first():
            print("Resource already exists")
            return

        try:
            check_working_hours(booking_service().settings, open_hour, close_hour, interval_minutes)
        except ConfigurationError as exc:
            print(f"Invalid working hours: {exc}")
            return

        db.session.add(Resource(
            name=name.strip(),
            open_hour=open_hour,
            close_hour=close_hour,
            interval_minutes=interval_minutes,
        ))
        db.session.commit()
        print(f"Resource {name} created")

    @app.cli.command("create-service")
    @click.argument("name")
    @click.argument("minutes", type=int)
    @click.option("--price", type=int, default=0)
    def create_service(name, minutes, price):
        """Add a service to the catalog with its duration in minutes."""
        if minutes <= 0:
            print("Duration must be positive")
            return
        if Service.query.filter_by(name=name.strip()).first():
            print("Service already exists")
            return

        db.session.add(Service(name=name.strip(), duration_minutes=minutes, price=price))
        db.session.commit()
        print(f"Service {name} ({minutes} min) created")

#-------------------------




if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
