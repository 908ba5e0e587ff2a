"""Connection and runtime configuration for the mirror.

Reads GitHub connection settings from CLI args, environment variables,
.env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    GITHUB_TOKEN: Personal access token (optional, raises rate limits)
    GITHUB_API_URL: REST API base URL (optional, default: https://api.github.com)
    MIRROR_DELAY_SECONDS: Pause between sources (optional, default: 1.0)
    MIRROR_STATE_DIR: Directory for cache/watermark metadata
        (optional, default: .github_docs_mirror)
    MIRROR_TIMEOUT: Read timeout in seconds for API calls (optional, default: 60)
"""

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_STATE_DIR = ".github_docs_mirror"


@dataclass
class Config:
    api_url: str = DEFAULT_API_URL
    token: str | None = None
    debug: bool = False
    timeout: float = 60.0
    delay_between_sources: float = 1.0
    state_dir: str = DEFAULT_STATE_DIR


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the API URL is malformed or numeric values are
            out of range.
    """
    config.api_url = config.api_url.strip()

    if not config.api_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid GitHub API URL '{config.api_url}': must start with http:// or https://"
        )

    parsed = urlparse(config.api_url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid GitHub API URL '{config.api_url}': URL must include a hostname"
        )

    config.api_url = config.api_url.removesuffix("/")

    if config.timeout <= 0:
        raise ValueError(
            f"Invalid timeout {config.timeout}: must be greater than 0"
        )

    if config.delay_between_sources < 0:
        raise ValueError(
            f"Invalid delay {config.delay_between_sources}: must not be negative"
        )

    if not config.token:
        logger.warning(
            "No GITHUB_TOKEN configured; unauthenticated requests are "
            "limited to 60 per hour."
        )


def _parse_float(raw: str, name: str) -> float:
    try:
        return float(raw)
    except ValueError:
        raise ValueError(
            f"Invalid {name} '{raw}': must be a number"
        ) from None


def load_config(
    token: str | None = None,
    api_url: str | None = None,
    debug: bool = False,
    state_dir: str | None = None,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        token: Override GitHub token.
        api_url: Override API base URL.
        debug: Enable debug logging (CLI flag).
        state_dir: Override metadata directory.
        yaml_fallbacks: Merged values from the YAML ``github`` and
            ``sync`` sections, used when CLI arg and env var are unset.

    Returns:
        Validated Config instance.
    """
    fb = yaml_fallbacks or {}

    final_api_url = (
        api_url
        or os.getenv("GITHUB_API_URL")
        or fb.get("api_url")
        or DEFAULT_API_URL
    )
    final_token = token or os.getenv("GITHUB_TOKEN") or fb.get("token")
    if final_token:
        final_token = final_token.strip() or None

    if debug:
        final_debug = True
    else:
        env_debug = os.getenv("MIRROR_DEBUG")
        if env_debug is not None:
            final_debug = env_debug.lower() in ("true", "1", "yes", "on")
        else:
            final_debug = bool(fb.get("debug", False))

    delay_raw = os.getenv("MIRROR_DELAY_SECONDS")
    if delay_raw is not None:
        final_delay = _parse_float(delay_raw, "MIRROR_DELAY_SECONDS")
    else:
        final_delay = float(fb.get("delay_between_sources", 1.0))

    timeout_raw = os.getenv("MIRROR_TIMEOUT")
    if timeout_raw is not None:
        final_timeout = _parse_float(timeout_raw, "MIRROR_TIMEOUT")
    else:
        final_timeout = float(fb.get("timeout", 60.0))

    final_state_dir = (
        state_dir
        or os.getenv("MIRROR_STATE_DIR")
        or fb.get("state_dir")
        or DEFAULT_STATE_DIR
    )

    config = Config(
        api_url=final_api_url,
        token=final_token,
        debug=final_debug,
        timeout=final_timeout,
        delay_between_sources=final_delay,
        state_dir=final_state_dir,
    )

    validate_config(config)

    return config
