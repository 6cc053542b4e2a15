import json
import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import date

import redis

from ritual_booking.core.config import settings

logger = logging.getLogger(__name__)

ChangeHandler = Callable[["BookingChangeEvent"], None]
Unsubscribe = Callable[[], None]


@dataclass(frozen=True)
class BookingChangeEvent:
    type: str
    booking_id: str
    booking_date: str
    status: str | None = None

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw: str | bytes) -> "BookingChangeEvent":
        return cls(**json.loads(raw))


def _channel(booking_date: date | str) -> str:
    return f"bookings:{booking_date}"


class BookingEventBroker(ABC):
    @abstractmethod
    def publish(self, event: BookingChangeEvent) -> None:
        raise NotImplementedError

    @abstractmethod
    def subscribe(self, booking_date: date, on_change: ChangeHandler) -> Unsubscribe:
        raise NotImplementedError

    @abstractmethod
    def reset(self) -> None:
        raise NotImplementedError


class InMemoryBookingEventBroker(BookingEventBroker):
    def __init__(self) -> None:
        self._handlers: dict[str, list[ChangeHandler]] = defaultdict(list)
        self._lock = threading.Lock()

    def publish(self, event: BookingChangeEvent) -> None:
        with self._lock:
            handlers = list(self._handlers.get(_channel(event.booking_date), ()))
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception("booking_event_handler_failed booking_id=%s", event.booking_id)

    def subscribe(self, booking_date: date, on_change: ChangeHandler) -> Unsubscribe:
        channel = _channel(booking_date)
        with self._lock:
            self._handlers[channel].append(on_change)

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._handlers.get(channel)
                if handlers and on_change in handlers:
                    handlers.remove(on_change)
                if not handlers:
                    self._handlers.pop(channel, None)

        return unsubscribe

    def reset(self) -> None:
        with self._lock:
            self._handlers.clear()


class RedisBookingEventBroker(BookingEventBroker):
    def __init__(self, redis_url: str) -> None:
        self._client = redis.Redis.from_url(
            redis_url,
            socket_connect_timeout=0.2,
            socket_timeout=0.2,
        )

    def publish(self, event: BookingChangeEvent) -> None:
        self._client.publish(_channel(event.booking_date), event.to_json())

    def subscribe(self, booking_date: date, on_change: ChangeHandler) -> Unsubscribe:
        pubsub = self._client.pubsub(ignore_subscribe_messages=True)

        def handle_message(message: dict) -> None:
            try:
                on_change(BookingChangeEvent.from_json(message["data"]))
            except Exception:
                logger.exception("booking_event_handler_failed channel=%s", message.get("channel"))

        pubsub.subscribe(**{_channel(booking_date): handle_message})
        worker = pubsub.run_in_thread(sleep_time=0.5, daemon=True)

        def unsubscribe() -> None:
            worker.stop()
            pubsub.close()

        return unsubscribe

    def reset(self) -> None:
        pass


class FallbackBookingEventBroker(BookingEventBroker):
    """Uses the primary broker and switches to the fallback only when the primary raises."""

    def __init__(self, primary: BookingEventBroker, fallback: BookingEventBroker) -> None:
        self._primary = primary
        self._fallback = fallback

    def publish(self, event: BookingChangeEvent) -> None:
        try:
            self._primary.publish(event)
        except Exception:
            logger.warning("booking_event_publish_failed backend=primary booking_id=%s", event.booking_id)
            self._fallback.publish(event)

    def subscribe(self, booking_date: date, on_change: ChangeHandler) -> Unsubscribe:
        try:
            return self._primary.subscribe(booking_date, on_change)
        except Exception:
            logger.warning("booking_event_subscribe_failed backend=primary date=%s", booking_date)
            return self._fallback.subscribe(booking_date, on_change)

    def reset(self) -> None:
        self._fallback.reset()


def _build_event_broker() -> BookingEventBroker:
    backend = settings.event_backend.strip().lower()
    memory = InMemoryBookingEventBroker()
    if backend == "redis":
        return FallbackBookingEventBroker(
            primary=RedisBookingEventBroker(redis_url=settings.event_redis_url),
            fallback=memory,
        )
    return memory


event_broker: BookingEventBroker = _build_event_broker()


def publish_booking_change(change_type: str, booking_id, booking_date, status: str | None = None) -> None:
    event = BookingChangeEvent(
        type=change_type,
        booking_id=str(booking_id),
        booking_date=str(booking_date),
        status=status,
    )
    try:
        event_broker.publish(event)
    except Exception:
        logger.exception("booking_event_publish_failed booking_id=%s", event.booking_id)
