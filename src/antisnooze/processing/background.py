"""Keep a background execution session alive while monitoring is wanted."""

from typing import Optional

from antisnooze.core import config, exceptions, scheduling
from antisnooze.io import devices

logger = config.get_logger()


class BackgroundSessionKeeper:
    """Starts a background session and restarts it after transient failures.

    A failed start, or a session reported as failed later on, is retried after a
    fixed backoff for as long as the session is still wanted.
    """

    def __init__(
        self,
        scheduler: scheduling.Scheduler,
        session: devices.BackgroundSession,
        settings: Optional[config.Settings] = None,
    ) -> None:
        """Initialize the keeper.

        Args:
            scheduler: The scheduling context for the retry timer.
            session: The platform session to keep alive.
            settings: The tunable constants. Defaults to config.Settings().
        """
        self.settings = settings if settings is not None else config.Settings()
        self._scheduler = scheduler
        self._session = session
        self._desired = False
        self._running = False
        self._retry_timer: Optional[scheduling.TimerHandle] = None

    @property
    def is_running(self) -> bool:
        """Whether the session is currently started."""
        return self._running

    def start(self) -> None:
        """Ask for the session to be running."""
        self._desired = True
        self._try_start()

    def stop(self) -> None:
        """Stop the session and give up any pending retry."""
        self._desired = False
        if self._retry_timer is not None:
            self._retry_timer.cancel()
            self._retry_timer = None
        if self._running:
            self._session.stop()
            self._running = False

    def session_failed(self, error: Exception) -> None:
        """Called by the platform when a running session died."""
        logger.warning("Background session failed: %s", error)
        self._running = False
        self._schedule_retry()

    def _try_start(self) -> None:
        self._retry_timer = None
        if not self._desired or self._running:
            return
        try:
            self._session.start()
        except exceptions.BackgroundSessionError:
            self._schedule_retry()
            return
        self._running = True
        logger.debug("Background session started.")

    def _schedule_retry(self) -> None:
        if not self._desired or self._retry_timer is not None:
            return
        logger.info(
            "Retrying background session in %ss.", self.settings.SESSION_RETRY_SECONDS
        )
        self._retry_timer = self._scheduler.call_later(
            self.settings.SESSION_RETRY_SECONDS, self._try_start
        )
