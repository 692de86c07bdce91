"""Configuration for Linear Reminder."""
import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from linear_reminder.errors import ConfigError

load_dotenv()

# Base paths
BASE_DIR = Path(__file__).resolve().parent.parent
LOGS_DIR = BASE_DIR / "logs"
LOGS_DIR.mkdir(exist_ok=True)

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
BETTERSTACK_SOURCE_TOKEN = os.getenv("BETTERSTACK_SOURCE_TOKEN")
BETTERSTACK_INGEST_HOST = os.getenv("BETTERSTACK_INGEST_HOST")

DEFAULT_API_URL = "https://api.linear.app/graphql"
DEFAULT_MESSAGE = (
    "Friendly reminder: {identifier} has been waiting here for a while. "
    "Is there anything left to do before it can move on?"
)

# Webhook events older than this are treated as replays
DEFAULT_REPLAY_WINDOW = 60

_DURATION_UNITS = {
    "ms": 0.001, "msec": 0.001, "millis": 0.001,
    "s": 1, "sec": 1, "secs": 1, "second": 1, "seconds": 1,
    "m": 60, "min": 60, "mins": 60, "minute": 60, "minutes": 60,
    "h": 3600, "hr": 3600, "hrs": 3600, "hour": 3600, "hours": 3600,
    "d": 86400, "day": 86400, "days": 86400,
    "w": 604800, "week": 604800, "weeks": 604800,
}
_DURATION_PART = re.compile(r"(\d+)\s*([a-z]+)")


def parse_duration(value: str) -> timedelta:
    """
    Parse a humantime-style duration such as ``90s``, ``15m`` or ``1h 30m``.

    Raises:
        ConfigError if the value is empty or contains an unknown unit
    """
    text = value.strip().lower()
    if not text:
        raise ConfigError("Empty duration")

    seconds = 0.0
    position = 0
    for match in _DURATION_PART.finditer(text):
        if text[position:match.start()].strip():
            raise ConfigError(f"Invalid duration format: {value!r}")
        amount, unit = match.groups()
        if unit not in _DURATION_UNITS:
            raise ConfigError(f"Unknown duration unit {unit!r} in {value!r}")
        seconds += int(amount) * _DURATION_UNITS[unit]
        position = match.end()

    if position == 0 or text[position:].strip():
        raise ConfigError(f"Invalid duration format: {value!r}")
    return timedelta(seconds=seconds)


@dataclass(frozen=True)
class ReminderConfig:
    """Immutable runtime configuration handed to the intake handler and worker."""

    database_url: str = field(repr=False)
    api_key: str = field(repr=False)
    signing_key: bytes = field(repr=False)
    time_to_remind: timedelta = timedelta(hours=24)
    target_state: str = "Merged"
    message_template: str = DEFAULT_MESSAGE
    api_url: str = DEFAULT_API_URL
    poll_interval: int = 5
    notifier_timeout: float = 30.0
    replay_window: timedelta = timedelta(seconds=DEFAULT_REPLAY_WINDOW)
    host: str = "0.0.0.0"
    port: int = 8000
    db_pool_min: int = 1
    db_pool_max: int = 5
    db_acquire_timeout: float = 30.0

    def render_message(self, **fields) -> str:
        """Fill the reminder template with issue fields."""
        return self.message_template.format(**fields)


def _int(env: Mapping[str, str], name: str, default: int, errors: list) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        errors.append(f"{name} must be an integer: {raw!r}")
        return default
    if value <= 0:
        errors.append(f"{name} must be positive: {value}")
    return value


def load_config(environ: Optional[Mapping[str, str]] = None) -> ReminderConfig:
    """Build and validate the configuration from environment variables."""
    env = os.environ if environ is None else environ
    errors = []

    database_url = env.get("DATABASE_URL", "")
    api_key = env.get("LINEAR_API_KEY", "")
    signing_key = env.get("LINEAR_SIGNING_KEY", "")

    if not database_url:
        errors.append("DATABASE_URL is required")
    if not api_key:
        errors.append("LINEAR_API_KEY is required")
    if not signing_key:
        errors.append("LINEAR_SIGNING_KEY is required")

    time_to_remind = timedelta(hours=24)
    if env.get("TIME_TO_REMIND"):
        try:
            time_to_remind = parse_duration(env["TIME_TO_REMIND"])
        except ConfigError as e:
            errors.append(f"TIME_TO_REMIND: {e}")

    target_state = env.get("TARGET_STATE", "Merged").strip()
    if not target_state:
        errors.append("TARGET_STATE must not be empty")

    message_template = env.get("REMINDER_MESSAGE") or DEFAULT_MESSAGE
    try:
        message_template.format(identifier="", title="", url="", id="")
    except (KeyError, IndexError, ValueError) as e:
        errors.append(f"REMINDER_MESSAGE has an invalid placeholder: {e}")

    poll_interval = _int(env, "POLL_INTERVAL", 5, errors)
    notifier_timeout = _int(env, "NOTIFIER_TIMEOUT", 30, errors)
    replay_window = _int(env, "REPLAY_WINDOW", DEFAULT_REPLAY_WINDOW, errors)
    port = _int(env, "PORT", 8000, errors)
    db_pool_min = _int(env, "DB_POOL_MIN", 1, errors)
    db_pool_max = _int(env, "DB_POOL_MAX", 5, errors)
    db_acquire_timeout = _int(env, "DB_ACQUIRE_TIMEOUT", 30, errors)
    if db_pool_max < db_pool_min:
        errors.append("DB_POOL_MAX must be >= DB_POOL_MIN")

    if errors:
        raise ConfigError("Config errors:\n  " + "\n  ".join(errors))

    return ReminderConfig(
        database_url=database_url,
        api_key=api_key,
        signing_key=signing_key.encode("utf-8"),
        time_to_remind=time_to_remind,
        target_state=target_state,
        message_template=message_template,
        api_url=env.get("LINEAR_API_URL") or DEFAULT_API_URL,
        poll_interval=poll_interval,
        notifier_timeout=float(notifier_timeout),
        replay_window=timedelta(seconds=replay_window),
        host=env.get("HOST") or "0.0.0.0",
        port=port,
        db_pool_min=db_pool_min,
        db_pool_max=db_pool_max,
        db_acquire_timeout=float(db_acquire_timeout),
    )
