"""
TraceLink Configuration Tests
"""

import logging

import pytest
from PyQt6.QtCore import QSettings

from tracelink.config import APPLICATION, ORGANIZATION, TraceConfig, get_settings, load_config, save_config
from tracelink.utils.logger import NOISY_LOGGERS, setup_logger


@pytest.fixture
def settings(tmp_path):
    """Settings stored in a temporary ini file."""
    return QSettings(str(tmp_path / "tracelink.ini"), QSettings.Format.IniFormat)


class TestTraceConfig:
    """Test configuration validation."""

    def test_defaults_valid(self):
        config = TraceConfig()
        assert config.address == "127.0.0.1:8080"
        assert config.endpoint_path == "/ws"
        assert config.validate() == []

    @pytest.mark.parametrize("address", ["localhost", "10.0.0.1:80", "host:65535"])
    def test_valid_addresses(self, address):
        assert TraceConfig(address=address).validate() == []

    @pytest.mark.parametrize("address", ["", "localhost:abc", "localhost:0", "host:70000", "host/ws"])
    def test_invalid_addresses(self, address):
        assert TraceConfig(address=address).validate()

    def test_invalid_path(self):
        assert TraceConfig(endpoint_path="ws").validate()

    def test_invalid_queue_size(self):
        assert TraceConfig(event_queue_size=-1).validate()


class TestSettings:
    """Test persistence through QSettings."""

    def test_load_defaults(self, settings):
        assert load_config(settings) == TraceConfig()

    def test_save_and_load(self, settings):
        config = TraceConfig(address="192.168.1.5:9000", event_queue_size=100, log_level="DEBUG")

        save_config(config, settings)

        assert load_config(settings) == config

    def test_invalid_stored_value(self, settings):
        settings.setValue("Connection/event_queue_size", "many")
        assert load_config(settings) == TraceConfig()

    def test_settings_store_names(self, qapp):
        """Settings are stored under the TraceLink name."""
        settings = get_settings()

        assert (ORGANIZATION, APPLICATION) == ("TraceLink", "TraceLink")
        assert settings.organizationName() == "TraceLink"
        assert settings.applicationName() == "TraceLink"


class TestLogger:
    """Test logger setup."""

    @pytest.fixture
    def root(self):
        root = logging.getLogger()
        saved_level = root.level
        yield root
        for handler in [h for h in root.handlers if getattr(h, "_tracelink", False)]:
            root.removeHandler(handler)
            handler.close()
        root.setLevel(saved_level)
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.NOTSET)

    def test_setup_logger(self, root, tmp_path):
        log_file = setup_logger(logging.DEBUG, log_dir=tmp_path)
        logging.getLogger("tracelink.test").error("something broke")
        for handler in root.handlers:
            handler.flush()

        assert log_file == tmp_path / "tracelink.log"
        text = log_file.read_text(encoding="utf-8")
        assert "something broke" in text
        assert "[MainThread]" in text
        assert logging.getLogger("websockets").level == logging.WARNING

    def test_reinitialize_replaces_own_handlers(self, root, tmp_path):
        foreign = logging.NullHandler()
        root.addHandler(foreign)
        try:
            setup_logger(log_dir=tmp_path)
            setup_logger(log_dir=tmp_path)

            own = [h for h in root.handlers if getattr(h, "_tracelink", False)]
            assert len(own) == 2
            assert foreign in root.handlers
        finally:
            root.removeHandler(foreign)

    def test_debug_socket(self, root, tmp_path):
        setup_logger(logging.DEBUG, log_dir=tmp_path, debug_socket=True)
        assert logging.getLogger("websockets").level == logging.NOTSET
