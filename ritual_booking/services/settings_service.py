import logging
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from ritual_booking.core.exceptions import BookingUnavailableError, BookingValidationError, NotFoundError
from ritual_booking.db.models import AdminSetting
from ritual_booking.db.models.admin_setting import BOOKING_SYSTEM_ENABLED, MAINTENANCE_MODE

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: dict[str, tuple[str, str]] = {
    BOOKING_SYSTEM_ENABLED: ("true", "Accept new booking requests"),
    MAINTENANCE_MODE: ("false", "Show maintenance banner and block bookings"),
}
BOOLEAN_SETTING_KEYS = frozenset(DEFAULT_SETTINGS)

MAINTENANCE_MODE_DETAIL = "System is currently under maintenance. Please try again later."
BOOKING_DISABLED_DETAIL = "Booking system is currently disabled. Please contact admin."


@dataclass(frozen=True)
class SystemSettings:
    booking_system_enabled: bool = True
    maintenance_mode: bool = False


def _as_bool(value: str) -> bool:
    return value.strip().lower() == "true"


def get_settings(db: Session, keys: Iterable[str]) -> dict[str, str]:
    rows = db.scalars(select(AdminSetting).where(AdminSetting.setting_key.in_(list(keys)))).all()
    return {row.setting_key: row.setting_value for row in rows}


def list_settings(db: Session) -> list[AdminSetting]:
    return list(db.scalars(select(AdminSetting).order_by(AdminSetting.setting_key)).all())


def load_system_settings(db: Session) -> SystemSettings:
    values = get_settings(db, DEFAULT_SETTINGS)
    enabled = values.get(BOOKING_SYSTEM_ENABLED, DEFAULT_SETTINGS[BOOKING_SYSTEM_ENABLED][0])
    maintenance = values.get(MAINTENANCE_MODE, DEFAULT_SETTINGS[MAINTENANCE_MODE][0])
    return SystemSettings(
        booking_system_enabled=_as_bool(enabled),
        maintenance_mode=_as_bool(maintenance),
    )


def ensure_booking_open(system_settings: SystemSettings) -> None:
    if system_settings.maintenance_mode:
        raise BookingUnavailableError(detail=MAINTENANCE_MODE_DETAIL)
    if not system_settings.booking_system_enabled:
        raise BookingUnavailableError(detail=BOOKING_DISABLED_DETAIL)


def update_setting(db: Session, key: str, value: str) -> AdminSetting:
    setting = db.get(AdminSetting, key)
    if setting is None:
        raise NotFoundError(detail="Setting not found")

    normalized = value.strip()
    if key in BOOLEAN_SETTING_KEYS:
        normalized = normalized.lower()
        if normalized not in {"true", "false"}:
            raise BookingValidationError("setting_value", "Value must be 'true' or 'false'")

    setting.setting_value = normalized
    db.commit()
    db.refresh(setting)
    logger.info("setting_updated key=%s value=%s", key, normalized)
    return setting


def seed_default_settings(db: Session) -> None:
    existing = set(get_settings(db, DEFAULT_SETTINGS))
    for key, (value, description) in DEFAULT_SETTINGS.items():
        if key not in existing:
            db.add(AdminSetting(setting_key=key, setting_value=value, description=description))
    db.commit()
