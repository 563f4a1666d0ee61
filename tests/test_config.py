"""
Tests for configuration parsing and logging setup.
"""

import logging

import pytest
from rich.logging import RichHandler

from fleet_audit.core.config import (
    RISKY_PORTS,
    AuditConfig,
    Thresholds,
    parse_checks,
    validate_group_by,
    validate_output_format,
    validate_top_n,
)
from fleet_audit.core.exceptions import ConfigurationError
from fleet_audit.core.logging import setup_logging
from fleet_audit.core.taxonomy import WASTE_KINDS, ResourceKind


class TestAuditConfig:
    """Tests for AuditConfig class."""

    def test_defaults(self):
        """Test the default checks and thresholds."""
        config = AuditConfig()

        assert config.enabled_checks == frozenset(WASTE_KINDS)
        assert config.thresholds.instance_cpu_percent == 5.0
        assert config.thresholds.database_cpu_percent == 10.0
        assert config.thresholds.certificate_expiry_days == 30
        assert dict(config.thresholds.risky_ports) == dict(RISKY_PORTS)
        assert config.is_enabled(ResourceKind.VOLUME)
        assert not config.is_enabled(ResourceKind.BUCKET)
        config.validate()

    @pytest.mark.parametrize(
        "config",
        [
            AuditConfig(enabled_checks=frozenset()),
            AuditConfig(max_workers=0),
            AuditConfig(thresholds=Thresholds(metric_lookback_days=0)),
            AuditConfig(thresholds=Thresholds(metric_period_seconds=30)),
            AuditConfig(thresholds=Thresholds(certificate_expiry_days=-1)),
        ],
    )
    def test_invalid(self, config):
        """Test that out-of-range options are rejected."""
        with pytest.raises(ConfigurationError):
            config.validate()


class TestParsers:
    """Tests for the option parsers."""

    def test_parse_checks(self):
        """Test names, dashes and case."""
        assert parse_checks(["volume", "Elastic-IP", " database "]) == frozenset(
            {ResourceKind.VOLUME, ResourceKind.ELASTIC_IP, ResourceKind.DATABASE}
        )

    def test_parse_unknown_check(self):
        """Test that an unknown name lists the allowed ones."""
        with pytest.raises(ConfigurationError) as exc_info:
            parse_checks(["volume", "lambda"])
        assert "lambda" in exc_info.value.message
        assert "volume" in exc_info.value.details["allowed"]

    def test_group_by(self):
        """Test both spellings of each dimension."""
        assert validate_group_by("service") == "SERVICE"
        assert validate_group_by("instance-type") == "INSTANCE_TYPE"
        assert validate_group_by("INSTANCE_TYPE") == "INSTANCE_TYPE"
        with pytest.raises(ConfigurationError):
            validate_group_by("account")

    def test_output_format(self):
        assert validate_output_format("JSON") == "json"
        with pytest.raises(ConfigurationError):
            validate_output_format("xml")

    def test_top_n(self):
        assert validate_top_n(1) == 1
        with pytest.raises(ConfigurationError):
            validate_top_n(0)


class TestSetupLogging:
    """Tests for setup_logging."""

    @pytest.fixture(autouse=True)
    def restore_root(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_handlers(self, tmp_path):
        """Test the Rich console handler and the optional file handler."""
        log_file = tmp_path / "audit.log"
        setup_logging(level="debug", log_file=str(log_file))
        root = logging.getLogger()

        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0], RichHandler)
        assert isinstance(root.handlers[1], logging.FileHandler)
        assert logging.getLogger("botocore").level == logging.WARNING

        logging.getLogger("fleet_audit.test").info("hello from the test")
        root.handlers[1].flush()
        assert "hello from the test" in log_file.read_text()

    def test_replaces_handlers(self):
        """Test that repeated setup does not stack handlers."""
        setup_logging(level="WARNING")
        setup_logging(level="WARNING")
        assert len(logging.getLogger().handlers) == 1
