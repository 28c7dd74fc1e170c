"""
Runtime configuration for the pricing run.

Values come from environment variables, optionally loaded from a local .env
file first. Durations are in milliseconds, matching the gateway and store
documentation.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Settings for one pricing run."""

    aktools_url: str = "http://127.0.0.1:8080"

    # Vika record store
    vika_token: str = ""
    vika_base_url: str = "https://api.vika.cn/fusion/v1"
    vika_datasheet_id: str = "dstxGhrxCvre4TKp36"
    vika_rate_datasheet_id: str = "dstNlVoLWMJeDez8rS"
    vika_view_id: Optional[str] = "viwyDAMb2JjVD"

    # Third-party providers
    coingecko_api_key: Optional[str] = None
    iex_token: Optional[str] = None

    # Fetch behaviour
    api_timeout_ms: int = 10_000
    cache_ttl_ms: int = 3_600_000
    max_retries: int = 3

    # Rate limiting
    request_delay_ms: int = 1_000
    crypto_delay_ms: int = 3_000

    log_level: str = "INFO"
    log_json: bool = False

    @property
    def api_timeout(self) -> float:
        """Per-call timeout in seconds."""
        return self.api_timeout_ms / 1000

    @property
    def cache_ttl(self) -> float:
        """Snapshot cache TTL in seconds."""
        return self.cache_ttl_ms / 1000

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        """
        Build settings from the environment.

        Args:
            dotenv: Load a .env file from the working directory first

        Returns:
            Populated Settings

        Raises:
            ValueError: If a numeric variable is not an integer
        """
        if dotenv:
            load_dotenv()

        defaults = cls()
        return cls(
            aktools_url=os.getenv("AKTOOLS_URL", defaults.aktools_url).rstrip("/"),
            vika_token=os.getenv("VIKA_TOKEN", defaults.vika_token),
            vika_base_url=os.getenv("VIKA_BASE_URL", defaults.vika_base_url).rstrip("/"),
            vika_datasheet_id=os.getenv("VIKA_DATASHEET_ID", defaults.vika_datasheet_id),
            vika_rate_datasheet_id=os.getenv(
                "VIKA_RATE_DATASHEET_ID", defaults.vika_rate_datasheet_id
            ),
            vika_view_id=os.getenv("VIKA_VIEW_ID", defaults.vika_view_id) or None,
            coingecko_api_key=os.getenv("COINGECKO_API_KEY") or None,
            iex_token=os.getenv("IEX_TOKEN") or None,
            api_timeout_ms=_env_int("PRICER_API_TIMEOUT_MS", defaults.api_timeout_ms),
            cache_ttl_ms=_env_int("PRICER_CACHE_TTL_MS", defaults.cache_ttl_ms),
            max_retries=_env_int("PRICER_MAX_RETRIES", defaults.max_retries),
            request_delay_ms=_env_int("PRICER_REQUEST_DELAY_MS", defaults.request_delay_ms),
            crypto_delay_ms=_env_int("PRICER_CRYPTO_DELAY_MS", defaults.crypto_delay_ms),
            log_level=os.getenv("PRICER_LOG_LEVEL", defaults.log_level).upper(),
            log_json=_env_bool("PRICER_LOG_JSON", defaults.log_json),
        )

    def validate(self) -> None:
        """
        Check the settings required to talk to the record store.

        Raises:
            ValueError: If the store token or a datasheet id is missing
        """
        if not self.vika_token:
            raise ValueError(
                "Vika API token required. Set VIKA_TOKEN environment variable."
            )
        if not self.vika_datasheet_id or not self.vika_rate_datasheet_id:
            raise ValueError(
                "Both VIKA_DATASHEET_ID and VIKA_RATE_DATASHEET_ID must be set."
            )
        if self.api_timeout_ms <= 0:
            raise ValueError("PRICER_API_TIMEOUT_MS must be positive")
