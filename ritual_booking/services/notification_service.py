import logging
from datetime import date
from urllib.parse import quote, urlencode

import httpx

from ritual_booking.core.config import settings
from ritual_booking.db.models import Booking
from ritual_booking.schemas.booking import BookingResponse

logger = logging.getLogger(__name__)

WHATSAPP_DEEP_LINK_BASE = "https://wa.me"


def slot_label(slot_key: str) -> str:
    return settings.slot_catalog.get(slot_key, slot_key)


def format_booking_date(value: date) -> str:
    return f"{value:%A}, {value:%B} {value.day}, {value.year}"


def build_confirmation_link(booking_id) -> str:
    base_url = settings.public_base_url.rstrip("/")
    return f"{base_url}/confirm?{urlencode({'id': str(booking_id)})}"


def build_whatsapp_url(phone_number: str, message: str) -> str:
    digits = phone_number.strip().lstrip("+")
    return f"{WHATSAPP_DEEP_LINK_BASE}/{digits}?text={quote(message, safe='')}"


def build_booking_request_whatsapp_url(booking: Booking) -> str:
    message = (
        f"Hi, I want to confirm my booking for the {slot_label(booking.slot_key)} "
        f"on {format_booking_date(booking.booking_date)}. "
        f"Please click to confirm: {build_confirmation_link(booking.id)}"
    )
    return build_whatsapp_url(settings.business_whatsapp_number, message)


def build_booking_confirmed_whatsapp_url(booking: Booking) -> str:
    lines = [
        "Your booking is confirmed!",
        "",
        f"Date: {format_booking_date(booking.booking_date)}",
        f"Time: {slot_label(booking.slot_key)}",
        f"Name: {booking.user_name}",
    ]
    if settings.payment_info_url:
        lines += ["", f"Payment details: {settings.payment_info_url}"]
    return build_whatsapp_url(settings.business_whatsapp_number, "\n".join(lines))


def _pending_message_body(booking: BookingResponse) -> str:
    window_hours = settings.booking_expiry_window_minutes / 60
    return (
        f"Hello {booking.user_name}!\n\n"
        "Your slot booking is pending confirmation:\n\n"
        f"Date: {format_booking_date(booking.booking_date)}\n"
        f"Time: {slot_label(booking.slot_key)}\n\n"
        f"Please confirm within {window_hours:g} hours to secure your booking: "
        f"{build_confirmation_link(booking.id)}"
    )


def send_pending_whatsapp_message(booking: BookingResponse) -> bool:
    """Best-effort WhatsApp Cloud API notification for a new pending booking.

    Runs after the booking is committed; any failure is logged and reported
    as ``False`` so it can never affect the booking itself.
    """
    if not settings.whatsapp_token or not settings.whatsapp_phone_id:
        logger.debug("whatsapp_notification_skipped reason=not_configured booking_id=%s", booking.id)
        return False

    payload = {
        "messaging_product": "whatsapp",
        "recipient_type": "individual",
        "to": booking.phone_number.lstrip("+"),
        "type": "text",
        "text": {"preview_url": False, "body": _pending_message_body(booking)},
    }
    url = f"{settings.whatsapp_api_base_url.rstrip('/')}/{settings.whatsapp_phone_id}/messages"
    try:
        response = httpx.post(
            url,
            json=payload,
            headers={"Authorization": f"Bearer {settings.whatsapp_token}"},
            timeout=10.0,
        )
        response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning("whatsapp_notification_failed booking_id=%s error=%s", booking.id, exc)
        return False

    logger.info("whatsapp_notification_sent booking_id=%s", booking.id)
    return True
