import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as chairtime.db.
    # Production runs on PostgreSQL (exclusion constraint needs btree_gist).
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "chairtime.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
    }

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Operating window used when a resource has no own hours
    OPEN_HOUR = int(os.getenv("OPEN_HOUR", "9"))
    CLOSE_HOUR = int(os.getenv("CLOSE_HOUR", "19"))
    SLOT_INTERVAL_MINUTES = int(os.getenv("SLOT_INTERVAL_MINUTES", "45"))

    # Legacy rows and catalog entries without a duration
    DEFAULT_DURATION_MINUTES = int(os.getenv("DEFAULT_DURATION_MINUTES", "45"))

    # Advisory overlap check before the insert; the database constraint decides either way
    AVAILABILITY_PRECHECK = os.getenv("AVAILABILITY_PRECHECK", "true").lower() == "true"

    # Status given to bookings created without an explicit one
    DEFAULT_BOOKING_STATUS = os.getenv("DEFAULT_BOOKING_STATUS", "confirmed")

    # Retry-After header sent with 503 on storage timeouts
    TRANSIENT_RETRY_AFTER_SECONDS = int(os.getenv("TRANSIENT_RETRY_AFTER_SECONDS", "2"))

    # Basic app settings
    DEBUG = False


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {
        "connect_args": {"check_same_thread": False, "timeout": 15},
    }
    LOG_LEVEL = "DEBUG"
