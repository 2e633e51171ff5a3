import enum
import logging
from collections import namedtuple
from contextlib import asynccontextmanager

from devtools_throttle.collector import attach
from devtools_throttle.session import Session
from devtools_throttle.throttle import ThrottleProfile, apply_throttling

logger = logging.getLogger(__name__)

ModeSettings = namedtuple('ModeSettings', ('navigation_timeout', 'script_timeout'))


class ExecutionMode(enum.Enum):
    STANDARD = 'chrome'
    CONSTRAINED = 'chrome-for-flake'  # simulates an underpowered CI box

    @classmethod
    def from_label(cls, label):
        try:
            return cls(label)
        except ValueError:
            raise ValueError('unknown execution mode {!r}, expected one of: {}'.format(
                label, ', '.join(m.value for m in cls))) from None

    @property
    def settings(self):
        return MODE_SETTINGS[self]


# Seconds. Throttled runs get longer timeouts to match their slower pages
MODE_SETTINGS = {
    ExecutionMode.STANDARD: ModeSettings(navigation_timeout=30, script_timeout=10),
    ExecutionMode.CONSTRAINED: ModeSettings(navigation_timeout=120, script_timeout=30),
}


def profile_for_mode(mode):
    if mode is ExecutionMode.CONSTRAINED:
        return ThrottleProfile()
    if mode is ExecutionMode.STANDARD:
        return None
    raise TypeError('not an ExecutionMode: {!r}'.format(mode))


async def throttle_for_mode(session, mode):
    """Throttle `session` if `mode` asks for it. Returns whether it did."""
    profile = profile_for_mode(mode)
    if profile is None:
        logger.info('[MODE %s] No throttling applied', mode.value)
        return False

    logger.info('[MODE %s] Applying throttling', mode.value)
    await apply_throttling(session)
    return True


def apply_timeouts(driver, mode):
    settings = mode.settings
    driver.set_page_load_timeout(settings.navigation_timeout)
    driver.set_script_timeout(settings.script_timeout)


@asynccontextmanager
async def instrumented_session(host, port, mode, domain_filter=None, target_id=None):
    """Connect, throttle as `mode` says, and record latencies for `domain_filter`.

    Yields (session, log); log is None when no filter is given. The session is
    closed on exit, which also stops the log from growing.
    """
    session = await Session.connect(host, port, target_id=target_id)
    try:
        await throttle_for_mode(session, mode)
        log = attach(session, domain_filter) if domain_filter is not None else None
        yield session, log
    finally:
        await session.close()
