"""Login session with idle timeout and scheduled expiry."""

import asyncio
import inspect
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable

from jose import JWTError, jwt

from travelbook.config import SessionSettings
from travelbook.exceptions import AuthRequired
from travelbook.models.user import UserProfile
from travelbook.utils.logger import get_logger

logger = get_logger(__name__)

SessionCallback = Callable[[], Awaitable[None] | None]


def token_expiry(token: str | None) -> datetime | None:
    """Read the `exp` claim of a JWT without verifying its signature."""
    if not token:
        return None
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return None
    exp = claims.get("exp")
    if exp is None:
        return None
    return datetime.fromtimestamp(int(exp), tz=timezone.utc)


async def _invoke(callback: SessionCallback | None) -> None:
    if callback is None:
        return
    result = callback()
    if inspect.isawaitable(result):
        await result


class Session:
    """
    The logged-in user and their token, passed explicitly to services.

    The session expires after ``timeout_seconds`` without activity, or when
    the token's own `exp` claim passes, whichever comes first. A warning
    callback fires ``warning_seconds`` before expiry. Call ``start()`` to
    schedule the expiry task and ``logout()`` to cancel it.
    """

    def __init__(
        self,
        user: UserProfile | None = None,
        token: str | None = None,
        settings: SessionSettings | None = None,
        on_expired: SessionCallback | None = None,
        on_warning: SessionCallback | None = None,
    ):
        self.user = user
        self.token = token
        self.settings = settings or SessionSettings()
        self.on_expired = on_expired
        self.on_warning = on_warning

        self._started_at = time.monotonic()
        self._warned = False
        self._task: asyncio.Task | None = None
        self.token_expires_at = token_expiry(token)

    # =========================================================================
    # State
    # =========================================================================

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and bool(self.token)

    def require_user(self) -> UserProfile:
        """Return the current user or raise AuthRequired."""
        if not self.is_authenticated:
            raise AuthRequired()
        return self.user

    def remaining_seconds(self) -> float:
        """Seconds until the session expires (0 when logged out or expired)."""
        if not self.is_authenticated:
            return 0.0

        idle_left = self.settings.timeout_seconds - (time.monotonic() - self._started_at)

        if self.token_expires_at is not None:
            token_left = (self.token_expires_at - datetime.now(timezone.utc)).total_seconds()
            idle_left = min(idle_left, token_left)

        return max(0.0, idle_left)

    def should_show_warning(self) -> bool:
        remaining = self.remaining_seconds()
        return 0 < remaining <= self.settings.warning_seconds

    def format_remaining(self) -> str:
        """Remaining time as M:SS."""
        remaining = int(self.remaining_seconds())
        minutes, seconds = divmod(remaining, 60)
        return f"{minutes}:{seconds:02d}"

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Schedule the expiry check task."""
        if self._task and not self._task.done():
            logger.warning("session_monitor_already_running")
            return

        self._started_at = time.monotonic()
        self._warned = False
        self._task = asyncio.create_task(self._run_loop())
        logger.info(
            "session_started",
            user_id=self.user.id if self.user else None,
            timeout_seconds=self.settings.timeout_seconds,
        )

    def touch(self) -> None:
        """Record user activity and restart the idle timeout."""
        if self.is_authenticated:
            self._started_at = time.monotonic()
            self._warned = False
            logger.debug("session_activity")

    async def logout(self) -> None:
        """Clear credentials and cancel the expiry task."""
        await self._stop_task()
        self.user = None
        self.token = None
        self.token_expires_at = None
        self._warned = False
        logger.info("session_logged_out")

    async def check(self) -> None:
        """Run one expiry check; fires the warning or expiry callback."""
        if not self.is_authenticated:
            return

        remaining = self.remaining_seconds()
        if remaining <= 0:
            await self._expire()
        elif remaining <= self.settings.warning_seconds and not self._warned:
            self._warned = True
            logger.info("session_expiring_soon", remaining_seconds=int(remaining))
            await _invoke(self.on_warning)

    async def _expire(self) -> None:
        logger.info("session_expired", user_id=self.user.id if self.user else None)
        self.user = None
        self.token = None
        self.token_expires_at = None
        await _invoke(self.on_expired)

    async def _run_loop(self) -> None:
        while self.is_authenticated:
            try:
                await self.check()
            except Exception as e:
                logger.error("session_check_error", error=str(e))

            if not self.is_authenticated:
                break
            await asyncio.sleep(self.settings.check_interval_seconds)

    async def _stop_task(self) -> None:
        task, self._task = self._task, None
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
