"""Unit tests for logging setup."""

import logging
from unittest.mock import patch

import pytest
import structlog

from app.core.config import Config
from app.core.logging import (
    bound_context,
    build_processors,
    get_logger,
    redact_secrets,
    setup_logging,
)


@pytest.mark.unit
class TestRedactSecrets:
    """Tests for the secret-masking processor."""

    def test_masks_tokens(self):
        """Test credential keys are masked."""
        event = {"event": "call", "access_token": "EAAB...", "page_id": "1"}
        result = redact_secrets(None, "info", event)

        assert result["access_token"] == "***"
        assert result["page_id"] == "1"

    def test_strips_token_from_urls(self):
        """Test token query parameters are masked inside logged URLs."""
        event = {
            "event": "request",
            "url": "https://graph.facebook.com/v21.0/me?access_token=EAAB123&fields=id",
        }
        result = redact_secrets(None, "info", event)

        assert result["url"] == "https://graph.facebook.com/v21.0/me?access_token=***&fields=id"

    def test_leaves_other_events(self):
        """Test events without secrets pass through."""
        event = {"event": "ok", "size": 10, "query": "a=b"}
        assert redact_secrets(None, "info", dict(event)) == event


@pytest.mark.unit
class TestBuildProcessors:
    """Tests for the environment-specific processor chain."""

    def test_production_renders_json(self):
        """Test production output is JSON."""
        processors = build_processors(Config(app_env="production"))
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_development_renders_console(self):
        """Test development output is human readable."""
        processors = build_processors(Config(app_env="development"))
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
        assert redact_secrets in processors


@pytest.mark.unit
class TestGetLogger:
    """Tests for logger creation."""

    def test_logger_accepts_kwargs(self):
        """Test a configured logger logs key/value events."""
        setup_logging()
        logger = get_logger("tests")
        logger.info("Test event", strategy="direct", size=1)

    def test_noisy_libraries_are_quieted(self):
        """Test per-request library logging is raised to WARNING."""
        setup_logging()
        assert logging.getLogger("httpx").level >= logging.WARNING

    def test_debug_flag_forces_debug_level(self):
        """Test debug overrides the configured log level."""
        config = Config(_env_file=None, debug=True, log_level="WARNING")
        with (
            patch("app.core.logging.get_config", return_value=config),
            patch("app.core.logging.logging.basicConfig") as basic_config,
        ):
            setup_logging()

        assert basic_config.call_args.kwargs["level"] == logging.DEBUG


@pytest.mark.unit
class TestBoundContext:
    """Tests for bound_context."""

    def test_binds_and_resets(self):
        """Test fields are visible inside the block only."""
        with bound_context(page_id="123"):
            assert structlog.contextvars.get_contextvars()["page_id"] == "123"

        assert "page_id" not in structlog.contextvars.get_contextvars()
