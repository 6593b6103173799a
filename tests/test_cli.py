"""
Tests for the command-line entry point and logging setup.
"""

import logging
from unittest.mock import patch

from voice_clone import cli
from voice_clone.core.logging import setup_logging, silence_noisy_loggers


class TestCli:
    def test_parser_defaults(self):
        args = cli.build_parser().parse_args([])

        assert args.host is None
        assert args.port is None
        assert args.log_level is None
        assert args.reload is False

    def test_main_runs_uvicorn_with_overrides(self):
        with patch("uvicorn.run") as run, patch.object(cli, "load_dotenv"):
            cli.main(["--host", "127.0.0.1", "--port", "8123", "--log-level", "DEBUG"])

        run.assert_called_once()
        target = run.call_args.args[0]
        kwargs = run.call_args.kwargs
        assert target == "voice_clone.main:app"
        assert kwargs["host"] == "127.0.0.1"
        assert kwargs["port"] == 8123
        assert kwargs["workers"] == 1
        assert kwargs["log_level"] == "debug"


class TestLogging:
    def test_named_logger_gets_single_handler(self):
        logger = setup_logging("DEBUG", name="voice_clone.test")
        setup_logging("DEBUG", name="voice_clone.test")

        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1

    def test_unknown_level_falls_back_to_info(self):
        logger = setup_logging("CHATTY", name="voice_clone.test_fallback")

        assert logger.level == logging.INFO

    def test_noisy_loggers_are_raised(self):
        silence_noisy_loggers()

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("uvicorn.access").level == logging.WARNING
