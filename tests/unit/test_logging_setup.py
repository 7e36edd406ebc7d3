"""Unit tests for logging configuration."""
from __future__ import annotations

import logging

from yliquid_resolver.logging_setup import LOG_FORMAT, configure_logging


class TestConfigureLogging:
    def test_sets_info_level(self) -> None:
        configure_logging("INFO")
        assert logging.getLogger().level == logging.INFO

    def test_sets_debug_level(self) -> None:
        configure_logging("debug")
        assert logging.getLogger().level == logging.DEBUG

    def test_silences_aiohttp(self) -> None:
        configure_logging("DEBUG")
        assert logging.getLogger("aiohttp").level == logging.WARNING
        assert logging.getLogger("asyncio").level == logging.WARNING

    def test_invalid_level_defaults_to_info(self) -> None:
        configure_logging("NONEXISTENT")
        assert logging.getLogger().level == logging.INFO

    def test_root_handler_uses_resolver_format(self) -> None:
        configure_logging("INFO")
        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert handlers[0].formatter._fmt == LOG_FORMAT

    def test_reconfigure_replaces_existing_handlers(self) -> None:
        stray = logging.StreamHandler()
        logging.getLogger().addHandler(stray)

        configure_logging("WARNING")
        configure_logging("ERROR")

        root = logging.getLogger()
        assert stray not in root.handlers
        assert len(root.handlers) == 1
        assert root.level == logging.ERROR

    def test_formatted_record_names_the_logger(self) -> None:
        configure_logging("INFO")
        formatter = logging.getLogger().handlers[0].formatter
        record = logging.LogRecord(
            "yliquid_resolver.services.log_scanner",
            logging.WARNING,
            __file__,
            1,
            "Scan chunk %d-%d failed",
            (500, 999),
            None,
        )

        line = formatter.format(record)

        assert line.endswith(
            "WARNING  yliquid_resolver.services.log_scanner: Scan chunk 500-999 failed"
        )
