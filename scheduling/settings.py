from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    """The slice of app config the booking core needs."""

    open_hour: int = 9
    close_hour: int = 19
    interval_minutes: int = 45
    default_duration_minutes: int = 45
    precheck: bool = True
    default_status: str = "confirmed"
    retry_after_seconds: int = 2

    @classmethod
    def from_config(cls, config) -> "Settings":
        return cls(
            open_hour=config.get("OPEN_HOUR", 9),
            close_hour=config.get("CLOSE_HOUR", 19),
            interval_minutes=config.get("SLOT_INTERVAL_MINUTES", 45),
            default_duration_minutes=config.get("DEFAULT_DURATION_MINUTES", 45),
            precheck=config.get("AVAILABILITY_PRECHECK", True),
            default_status=config.get("DEFAULT_BOOKING_STATUS", "confirmed"),
            retry_after_seconds=config.get("TRANSIENT_RETRY_AFTER_SECONDS", 2),
        )
