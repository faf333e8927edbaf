from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

KEY_PREFIX = "__ICal__"

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    if raw:
        logger.warning("Ignoring %s=%r: expected a boolean", name, raw)
    return default


@dataclass(frozen=True)
class SchedulerConfig:
    """Scheduler behaviour switches.

    replace_existing: adding a schedule under a name that is already taken
        cancels and replaces the old schedule; when False it raises
        `SchedulingError` instead.
    coalesce: when re-arming, skip occurrences that already lie in the past
        instead of firing them back to back.
    key_prefix: namespace for schedule entries in the consumer's heap.
    """

    replace_existing: bool = True
    coalesce: bool = True
    key_prefix: str = KEY_PREFIX

    @classmethod
    def from_env(cls) -> SchedulerConfig:
        """Build a config from ``ICALSCHED_*`` environment variables, falling back to defaults."""
        return cls(
            replace_existing=_env_flag("ICALSCHED_REPLACE_EXISTING", True),
            coalesce=_env_flag("ICALSCHED_COALESCE", True),
            key_prefix=os.getenv("ICALSCHED_KEY_PREFIX") or KEY_PREFIX,
        )


def configure_logging(debug_mode: bool = False, force_debug: bool | None = None) -> None:
    """Attach a stream handler to the ``icalsched`` logger.

    Environment Variables:
        ICALSCHED_DEBUG: '1', 'true' or 'yes' forces debug logging
        ICALSCHED_LOG_LEVEL: overrides the level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("ICALSCHED_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("ICALSCHED_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    else:
        final_debug = env_debug or debug_mode

    level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        level = getattr(logging, env_log_level)

    package_logger = logging.getLogger("icalsched")
    package_logger.setLevel(level)
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("[%(asctime)s] %(levelname)s - %(name)s - %(message)s"))
        package_logger.addHandler(handler)
