"""Cron-style recurring timers on the asyncio event loop.

Each :class:`Cron` owns exactly one timer. When it expires the job runs to
completion, the next occurrence is computed, and only then is the next timer
armed, so firings of one schedule never overlap. Occurrences missed while
the loop was busy (a slow job, a suspended host, a clock jump) collapse into
the single late firing: the following occurrence is always computed from
the current time.

Typical use::

    cron = register("5 8 1 * *", run_rollup, args=("month",), start=True, tz="UTC")
    ...
    cron.stop()
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timezone, tzinfo
from enum import Enum
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter

from countkeeper.core.calendar import require_aware
from countkeeper.core.errors import CallbackError, ConfigurationError
from countkeeper.db.time import utcnow

__all__ = [
    "CanonicalZone",
    "Cron",
    "CronState",
    "crontab",
    "normalize_timezone",
    "register",
]

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Sleeper = Callable[[float], Awaitable[Any]]
ErrorHandler = Callable[[CallbackError], None]


class CronState(str, Enum):
    """Lifecycle of a single schedule."""

    IDLE = "idle"
    SCHEDULED = "scheduled"
    FIRING = "firing"
    STOPPED = "stopped"


@dataclass(frozen=True, slots=True)
class CanonicalZone:
    """A time zone normalised to one representation (proleptic Gregorian calendar)."""

    name: str
    tzinfo: tzinfo


def normalize_timezone(tz: str | tzinfo | datetime | None) -> CanonicalZone:
    """Coerce the accepted time zone inputs into a :class:`CanonicalZone`.

    Accepts ``None`` (UTC), an IANA name, any ``tzinfo`` (``ZoneInfo``,
    ``datetime.timezone``, or third-party zones exposing ``key``/``zone``),
    or an aware ``datetime`` whose zone is used.
    """
    if tz is None:
        return CanonicalZone("UTC", ZoneInfo("UTC"))

    if isinstance(tz, datetime):
        if tz.tzinfo is None:
            raise ConfigurationError("a naive datetime does not carry a time zone")
        return normalize_timezone(tz.tzinfo)

    if isinstance(tz, str):
        name = tz.strip()
        try:
            return CanonicalZone(name, ZoneInfo(name))
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigurationError(f"unknown time zone {tz!r}") from exc

    if isinstance(tz, ZoneInfo):
        return CanonicalZone(tz.key, tz)

    if tz is UTC or tz == timezone.utc:
        return CanonicalZone("UTC", ZoneInfo("UTC"))

    if isinstance(tz, timezone):
        return CanonicalZone(tz.tzname(None) or str(tz), tz)

    if isinstance(tz, tzinfo):
        key = getattr(tz, "key", None) or getattr(tz, "zone", None)
        if isinstance(key, str):
            return normalize_timezone(key)
        return CanonicalZone(tz.tzname(None) or repr(tz), tz)

    raise ConfigurationError(f"unsupported time zone value {tz!r}")


def _validate_spec(spec: str) -> str:
    fields = spec.split()
    if len(fields) != 5:
        raise ConfigurationError(f"cron spec {spec!r} must have 5 fields, got {len(fields)}")
    try:
        croniter(spec)
    except (ValueError, KeyError) as exc:
        raise ConfigurationError(f"malformed cron spec {spec!r}: {exc}") from exc
    return " ".join(fields)


def _log_callback_error(error: CallbackError) -> None:
    logger.error("Scheduled job failed: %s", error, exc_info=error.original)


async def _null_callback(*args: Any) -> tuple[Any, ...]:
    return args


class Cron:
    """A recurring job bound to a 5-field cron expression.

    Args:
        spec: Cron expression (minute hour day-of-month month day-of-week).
        func: Callable or coroutine function to run on each firing.
        args: Positional arguments passed to ``func``.
        start: Arm the timer immediately (requires a running event loop).
        tz: Time zone the expression is evaluated in.
        clock: Returns the current aware time; injectable for tests.
        sleep: Awaitable sleep used as the timer; injectable for tests.
        on_error: Receives a :class:`CallbackError` when the job raises.
    """

    def __init__(
        self,
        spec: str,
        func: Callable[..., Any] | None = None,
        args: tuple[Any, ...] = (),
        start: bool = False,
        tz: str | tzinfo | datetime | None = None,
        *,
        clock: Clock | None = None,
        sleep: Sleeper | None = None,
        on_error: ErrorHandler | None = None,
    ) -> None:
        self.spec = _validate_spec(spec)
        self.zone = normalize_timezone(tz)
        self.func: Callable[..., Any] = func if func is not None else _null_callback
        self.args = tuple(args)
        self.on_error = on_error or _log_callback_error

        self._clock = clock or utcnow
        self._sleep = sleep or asyncio.sleep
        self._loop: asyncio.AbstractEventLoop | None = None
        self._timer: asyncio.Task[None] | None = None
        self._firing = False
        self._waiters: list[asyncio.Future[Any]] = []

        self.state = CronState.IDLE
        self.next_fire_time: datetime | None = None
        self.last_fire_time: datetime | None = None
        self.fire_count = 0

        if start and func is not None:
            self.start()

    @property
    def func_name(self) -> str:
        return getattr(self.func, "__qualname__", None) or repr(self.func)

    def _now(self) -> datetime:
        return require_aware(self._clock()).astimezone(self.zone.tzinfo)

    def initialize(self) -> None:
        """Reset the occurrence state and compute the first fire time from now."""
        self.last_fire_time = None
        self.next_fire_time = None
        self.next_fire_time = self.get_next()

    def get_next(self) -> datetime:
        """Return the next occurrence strictly after both now and the last firing."""
        base = self._now()
        if self.last_fire_time is not None and self.last_fire_time > base:
            base = self.last_fire_time
        return croniter(self.spec, base).get_next(datetime)

    def start(self) -> None:
        """Arm the schedule; a no-op when it is already scheduled."""
        if self._firing:
            # The in-flight job re-arms the timer once it finishes.
            self.state = CronState.FIRING
            return
        if self.state is CronState.SCHEDULED:
            return
        self.state = CronState.IDLE
        self.initialize()
        self.call_next()

    def stop(self) -> None:
        """Cancel future firings. An in-flight job is left to finish."""
        loop = self._loop
        if loop is not None and loop.is_running() and not _running_in(loop):
            loop.call_soon_threadsafe(self._stop)
            return
        self._stop()

    def _stop(self) -> None:
        self.state = CronState.STOPPED
        if self._timer is not None and not self._firing:
            self._timer.cancel()
        self._timer = None
        logger.debug("Stopped schedule %s", self)

    def call_next(self) -> None:
        """Arm a single timer for the pending occurrence."""
        if self.state is CronState.STOPPED:
            return
        if self.next_fire_time is None:
            self.next_fire_time = self.get_next()

        delay = max(0.0, (self.next_fire_time - self._now()).total_seconds())
        self._loop = asyncio.get_running_loop()
        self.state = CronState.SCHEDULED
        self._timer = self._loop.create_task(self._run_timer(delay))

    async def _run_timer(self, delay: float) -> None:
        await self._sleep(delay)
        if self.state is not CronState.SCHEDULED:
            return

        self.state = CronState.FIRING
        self._firing = True
        self.last_fire_time = self.next_fire_time
        try:
            result = await self.call_func(*self.args)
        finally:
            self._firing = False
        self._resolve_waiters(result)

        if self.state is CronState.STOPPED:
            return
        self.next_fire_time = self.get_next()
        self.call_next()

    async def call_func(self, *args: Any, **kwargs: Any) -> Any:
        """Run the job once; failures go to ``on_error`` instead of the loop."""
        self.fire_count += 1
        try:
            result = self.func(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            error = CallbackError(self, exc)
            try:
                self.on_error(error)
            except Exception:
                logger.exception("Error handler for %s raised", self)
            self._fail_waiters(error)
            return None
        return result

    async def next(self) -> Any:
        """Wait for the next firing and return the job's result."""
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._waiters.append(future)
        return await future

    def _resolve_waiters(self, result: Any) -> None:
        waiters, self._waiters = self._waiters, []
        for future in waiters:
            if not future.done():
                future.set_result(result)

    def _fail_waiters(self, error: CallbackError) -> None:
        waiters, self._waiters = self._waiters, []
        for future in waiters:
            if not future.done():
                future.set_exception(error)

    def __call__(self, func: Callable[..., Any]) -> Cron:
        """Bind ``func`` when the schedule is used as a decorator."""
        self.func = func
        return self

    def __str__(self) -> str:
        return f"{self.spec} ({self.zone.name})"

    def __repr__(self) -> str:
        next_fire = self.next_fire_time.isoformat() if self.next_fire_time else None
        return (
            f"<Cron spec={self.spec!r} tz={self.zone.name!r} state={self.state.value} "
            f"next={next_fire} func={self.func_name}>"
        )


def _running_in(loop: asyncio.AbstractEventLoop) -> bool:
    try:
        return asyncio.get_running_loop() is loop
    except RuntimeError:
        return False


def register(
    spec: str,
    func: Callable[..., Any],
    args: tuple[Any, ...] = (),
    start: bool = True,
    tz: str | tzinfo | datetime | None = None,
    **kwargs: Any,
) -> Cron:
    """Bind ``func`` to a schedule and return its handle."""
    return Cron(spec, func, args=args, start=start, tz=tz, **kwargs)


def crontab(
    spec: str,
    func: Callable[..., Any] | None = None,
    args: tuple[Any, ...] = (),
    start: bool = True,
    tz: str | tzinfo | datetime | None = None,
    **kwargs: Any,
) -> Cron | Callable[[Callable[..., Any]], Cron]:
    """Register a schedule, or return a decorator that does.

    ``@crontab("*/5 * * * *")`` binds the decorated function and, when
    ``start`` is true, arms it immediately.
    """
    if func is not None:
        return register(spec, func, args=args, start=start, tz=tz, **kwargs)

    def decorator(wrapped: Callable[..., Any]) -> Cron:
        return register(spec, wrapped, args=args, start=start, tz=tz, **kwargs)

    return decorator
