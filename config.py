import os
from dataclasses import dataclass, field
from typing import Callable, List, Optional, TypeVar

T = TypeVar("T")

DEFAULT_POLL_INTERVAL = 60.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BASE_DELAY = 1.0
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_LOG_FILE = "wallbox.log"
DEFAULT_LOG_LEVEL = "INFO"


def _parse_env(env_var: str, default: T, parse: Callable[[str], T]) -> T:
    value = os.getenv(env_var)
    if value is None or value.strip() == "":
        return default
    try:
        return parse(value.strip())
    except ValueError as e:
        raise ValueError(f"Invalid value for {env_var}: {value!r}") from e


def parse_charger_ids(value: str) -> List[str]:
    """Split a comma separated list of charger IDs."""
    return [part.strip() for part in value.split(",") if part.strip()]


@dataclass
class Config:
    """Configuration class for environment variables."""

    charger_ids: List[str] = field(default_factory=list)
    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    basic_token: Optional[str] = field(default=None, repr=False)
    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    # Trust the token until the API rejects it unless explicitly enabled.
    proactive_refresh: bool = False
    discord_webhook_url: Optional[str] = None
    log_file: str = DEFAULT_LOG_FILE
    log_level: str = DEFAULT_LOG_LEVEL

    def __post_init__(self) -> None:
        if not self.basic_token and not (self.username and self.password):
            raise ValueError(
                "WALLBOX_USERNAME and WALLBOX_PASSWORD, or WALLBOX_BASIC_TOKEN, must be set"
            )
        if self.poll_interval <= 0:
            raise ValueError(f"Poll interval must be positive, got {self.poll_interval}")
        if self.max_retries < 0:
            raise ValueError(f"Max retries must not be negative, got {self.max_retries}")
        if self.retry_base_delay < 0:
            raise ValueError(f"Retry delay must not be negative, got {self.retry_base_delay}")
        if self.request_timeout <= 0:
            raise ValueError(f"Request timeout must be positive, got {self.request_timeout}")

    @classmethod
    def from_env(cls) -> "Config":
        """Create config from environment variables."""
        # Only the monitor command needs charger IDs.
        charger_ids = parse_charger_ids(os.getenv("WALLBOX_CHARGER_IDS", ""))
        proactive_env = os.getenv("WALLBOX_PROACTIVE_REFRESH", "False")
        return cls(
            charger_ids=charger_ids,
            username=os.getenv("WALLBOX_USERNAME") or None,
            password=os.getenv("WALLBOX_PASSWORD") or None,
            basic_token=os.getenv("WALLBOX_BASIC_TOKEN") or None,
            poll_interval=_parse_env("WALLBOX_POLL_INTERVAL", DEFAULT_POLL_INTERVAL, float),
            max_retries=_parse_env("WALLBOX_MAX_RETRIES", DEFAULT_MAX_RETRIES, int),
            retry_base_delay=_parse_env(
                "WALLBOX_RETRY_BASE_DELAY", DEFAULT_RETRY_BASE_DELAY, float
            ),
            request_timeout=_parse_env(
                "WALLBOX_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT, float
            ),
            proactive_refresh=proactive_env.lower() == "true",
            discord_webhook_url=os.getenv("DISCORD_WEBHOOK_URL") or None,
            log_file=os.getenv("WALLBOX_LOG_FILE", DEFAULT_LOG_FILE),
            log_level=os.getenv("WALLBOX_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
        )
