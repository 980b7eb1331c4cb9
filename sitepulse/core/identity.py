# ==============================================================================
# Session Manager - Session and Device Identity
# ==============================================================================
"""
Per-tab session identity and per-device identity for the collector.

- Session ids live in tab-scoped (transient) storage for the browsing session.
- Device ids live in long-lived storage to approximate returning visitors.
- The client-side session record is stored next to the session id so a
  reloaded collector in the same browsing session keeps its counters.

No expiry logic lives here: staleness is decided server-side from the
session's last activity.
"""

import logging
import random
import re
from datetime import datetime
from typing import Optional

from pydantic import ValidationError

from sitepulse.base import Cache
from sitepulse.core.models import Clock, DeviceClass, SessionData, to_millis, utc_now

logger = logging.getLogger(__name__)

SESSION_ID_KEY = "sitepulse:session_id"
DEVICE_ID_KEY = "sitepulse:device_id"
SESSION_RECORD_PREFIX = "sitepulse:session:"

_MOBILE_PATTERN = re.compile(r"mobile|android|iphone", re.IGNORECASE)
_TABLET_PATTERN = re.compile(r"tablet|ipad", re.IGNORECASE)
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(value: int) -> str:
    if value <= 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_id(prefix: str, now: datetime, rng: random.Random | None = None) -> str:
    """
    Generate an opaque id: prefix + base36 timestamp + random base36 suffix.

    Collisions are improbable but the id is not cryptographically unique.
    """
    rng = rng or random
    return f"{prefix}{_base36(to_millis(now))}{_base36(rng.getrandbits(48)).rjust(10, '0')}"


def classify_device(user_agent: Optional[str]) -> DeviceClass:
    """
    Classify a user agent string as mobile, tablet or desktop.

    Mobile markers are checked first; anything unmatched is desktop.
    """
    if not user_agent:
        return DeviceClass.DESKTOP
    if _MOBILE_PATTERN.search(user_agent):
        return DeviceClass.MOBILE
    if _TABLET_PATTERN.search(user_agent):
        return DeviceClass.TABLET
    return DeviceClass.DESKTOP


class SessionManager:
    """
    Owns session and device identity for one collector.

    Args:
        transient: Tab-scoped storage (session id and session record)
        persistent: Long-lived storage (device id). None disables device ids.
        device_id_enabled: Configuration switch for device ids
        clock: Source of "now"
        rng: Random source for id suffixes
    """

    def __init__(
        self,
        transient: Cache,
        persistent: Cache | None = None,
        device_id_enabled: bool = True,
        clock: Clock = utc_now,
        rng: random.Random | None = None,
    ):
        self._transient = transient
        self._persistent = persistent
        self._device_id_enabled = device_id_enabled
        self._clock = clock
        self._rng = rng or random.Random()

    def get_or_create_session_id(self) -> str:
        stored = self._transient.get(SESSION_ID_KEY)
        if stored and stored.get("id"):
            return stored["id"]
        session_id = generate_id("session_", self._clock(), self._rng)
        self._transient.set(SESSION_ID_KEY, {"id": session_id})
        logger.debug("Created session id %s", session_id)
        return session_id

    def get_or_create_device_id(self) -> str | None:
        """Return the device id, or None when device ids are disabled."""
        if not self._device_id_enabled or self._persistent is None:
            return None
        try:
            stored = self._persistent.get(DEVICE_ID_KEY)
            if stored and stored.get("id"):
                return stored["id"]
            device_id = generate_id("device_", self._clock(), self._rng)
            self._persistent.set(DEVICE_ID_KEY, {"id": device_id})
            return device_id
        except Exception as e:
            # Best-effort: a broken persistent store must not stop collection
            logger.warning("Device id unavailable: %s", e)
            return None

    def load_session_record(self, session_id: str) -> SessionData | None:
        """Restore the client-side session record for a session id, if stored."""
        raw = self._transient.get(f"{SESSION_RECORD_PREFIX}{session_id}")
        if raw is None:
            return None
        try:
            return SessionData.model_validate(raw)
        except ValidationError as e:
            logger.warning("Discarding unreadable session record for %s: %s", session_id, e)
            return None

    def save_session_record(self, session_id: str, record: SessionData) -> None:
        self._transient.set(f"{SESSION_RECORD_PREFIX}{session_id}", record.to_wire())
