"""Tests for github_docs_mirror.config — env-var config loading and validation.

NOT to be confused with test_config_loader.py (hierarchical YAML config)
or test_config_schema.py (Pydantic models). This tests the connection
bootstrap path: validate_config() and load_config().
"""

import logging

import pytest

from github_docs_mirror.config import (
    DEFAULT_API_URL,
    DEFAULT_STATE_DIR,
    Config,
    load_config,
    validate_config,
)

_ENV_VARS = (
    "GITHUB_API_URL",
    "GITHUB_TOKEN",
    "MIRROR_DEBUG",
    "MIRROR_DELAY_SECONDS",
    "MIRROR_TIMEOUT",
    "MIRROR_STATE_DIR",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


# -------------------------------------------------------------------------
# validate_config()
# -------------------------------------------------------------------------


class TestValidateConfig:
    """Tests for validate_config() — URL format and numeric ranges."""

    def test_valid_config(self):
        validate_config(Config(token="ghp_x"))  # should not raise

    def test_http_url_valid(self):
        validate_config(Config(api_url="http://localhost:8080/api/v3", token="t"))

    def test_invalid_url_no_scheme(self):
        with pytest.raises(
            ValueError, match="must start with http:// or https://"
        ):
            validate_config(Config(api_url="api.github.com"))

    def test_invalid_url_ftp_scheme(self):
        with pytest.raises(
            ValueError, match="must start with http:// or https://"
        ):
            validate_config(Config(api_url="ftp://example.com"))

    def test_empty_host(self):
        with pytest.raises(ValueError, match="must include a hostname"):
            validate_config(Config(api_url="https://"))

    def test_trailing_slash_stripped(self):
        config = Config(api_url="https://ghe.example.com/api/v3/", token="t")
        validate_config(config)
        assert config.api_url == "https://ghe.example.com/api/v3"

    def test_whitespace_url_stripped_before_scheme_check(self):
        config = Config(api_url="  https://api.github.com  ", token="t")
        validate_config(config)
        assert config.api_url == "https://api.github.com"

    def test_zero_timeout_rejected(self):
        with pytest.raises(ValueError, match="Invalid timeout"):
            validate_config(Config(token="t", timeout=0))

    def test_negative_delay_rejected(self):
        with pytest.raises(ValueError, match="Invalid delay"):
            validate_config(Config(token="t", delay_between_sources=-1))

    def test_missing_token_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING):
            validate_config(Config())
        assert "No GITHUB_TOKEN configured" in caplog.text

    def test_token_no_warning(self, caplog):
        with caplog.at_level(logging.WARNING):
            validate_config(Config(token="ghp_x"))
        assert "GITHUB_TOKEN" not in caplog.text


# -------------------------------------------------------------------------
# load_config()
# -------------------------------------------------------------------------


class TestLoadConfig:
    """Tests for load_config() — env vars, CLI args and defaults."""

    def test_defaults(self, clean_env):
        config = load_config()
        assert config.api_url == DEFAULT_API_URL
        assert config.token is None
        assert config.debug is False
        assert config.timeout == 60.0
        assert config.delay_between_sources == 1.0
        assert config.state_dir == DEFAULT_STATE_DIR

    def test_load_from_env_vars(self, clean_env):
        clean_env.setenv("GITHUB_API_URL", "https://ghe.example.com/api/v3")
        clean_env.setenv("GITHUB_TOKEN", "ghp_env")
        clean_env.setenv("MIRROR_STATE_DIR", "/var/lib/mirror")
        config = load_config()
        assert config.api_url == "https://ghe.example.com/api/v3"
        assert config.token == "ghp_env"
        assert config.state_dir == "/var/lib/mirror"

    def test_cli_args_override_env(self, clean_env):
        clean_env.setenv("GITHUB_TOKEN", "ghp_env")
        clean_env.setenv("MIRROR_STATE_DIR", "/env/state")
        config = load_config(token="ghp_cli", state_dir="/cli/state")
        assert config.token == "ghp_cli"
        assert config.state_dir == "/cli/state"

    def test_token_whitespace_stripped(self, clean_env):
        clean_env.setenv("GITHUB_TOKEN", "  ghp_x  ")
        assert load_config().token == "ghp_x"

    def test_blank_token_treated_as_missing(self, clean_env):
        clean_env.setenv("GITHUB_TOKEN", "   ")
        assert load_config().token is None

    @pytest.mark.parametrize("value", ["true", "1", "yes", "on", "TRUE"])
    def test_debug_truthy_values(self, clean_env, value):
        clean_env.setenv("MIRROR_DEBUG", value)
        assert load_config().debug is True

    @pytest.mark.parametrize("value", ["false", "0", "no", "off", ""])
    def test_debug_falsy_values(self, clean_env, value):
        clean_env.setenv("MIRROR_DEBUG", value)
        assert load_config().debug is False

    def test_cli_debug_overrides_env(self, clean_env):
        clean_env.setenv("MIRROR_DEBUG", "false")
        assert load_config(debug=True).debug is True

    def test_delay_from_env(self, clean_env):
        clean_env.setenv("MIRROR_DELAY_SECONDS", "2.5")
        assert load_config().delay_between_sources == 2.5

    def test_delay_non_numeric(self, clean_env):
        clean_env.setenv("MIRROR_DELAY_SECONDS", "soon")
        with pytest.raises(ValueError, match="MIRROR_DELAY_SECONDS"):
            load_config()

    def test_negative_delay_via_env(self, clean_env):
        clean_env.setenv("MIRROR_DELAY_SECONDS", "-1")
        with pytest.raises(ValueError, match="Invalid delay"):
            load_config()

    def test_timeout_from_env(self, clean_env):
        clean_env.setenv("MIRROR_TIMEOUT", "15")
        assert load_config().timeout == 15.0

    def test_timeout_non_numeric(self, clean_env):
        clean_env.setenv("MIRROR_TIMEOUT", "forever")
        with pytest.raises(ValueError, match="MIRROR_TIMEOUT"):
            load_config()

    def test_no_scheme_url_via_load(self, clean_env):
        with pytest.raises(ValueError, match="must start with"):
            load_config(api_url="api.github.com")

    def test_url_trailing_slash_stripped(self, clean_env):
        clean_env.setenv("GITHUB_API_URL", "https://api.github.com/")
        assert load_config().api_url == "https://api.github.com"


class TestLoadConfigWithYamlFallbacks:
    """Tests for the yaml_fallbacks layer (lowest precedence above defaults)."""

    def test_yaml_fallback_used_when_no_env_or_cli(self, clean_env):
        config = load_config(
            yaml_fallbacks={
                "api_url": "https://ghe.example.com/api/v3",
                "token": "ghp_yaml",
                "timeout": 30,
                "delay_between_sources": 0,
                "state_dir": "/yaml/state",
            }
        )
        assert config.api_url == "https://ghe.example.com/api/v3"
        assert config.token == "ghp_yaml"
        assert config.timeout == 30.0
        assert config.delay_between_sources == 0.0
        assert config.state_dir == "/yaml/state"

    def test_env_var_overrides_yaml_fallback(self, clean_env):
        clean_env.setenv("GITHUB_TOKEN", "ghp_env")
        clean_env.setenv("MIRROR_TIMEOUT", "5")
        config = load_config(yaml_fallbacks={"token": "ghp_yaml", "timeout": 30})
        assert config.token == "ghp_env"
        assert config.timeout == 5.0

    def test_cli_overrides_env_and_yaml(self, clean_env):
        clean_env.setenv("GITHUB_TOKEN", "ghp_env")
        config = load_config(token="ghp_cli", yaml_fallbacks={"token": "ghp_yaml"})
        assert config.token == "ghp_cli"

    def test_boolean_field_fallback_debug(self, clean_env):
        assert load_config(yaml_fallbacks={"debug": True}).debug is True

    def test_empty_yaml_fallbacks_same_as_none(self, clean_env):
        assert load_config(yaml_fallbacks={}) == load_config(yaml_fallbacks=None)
