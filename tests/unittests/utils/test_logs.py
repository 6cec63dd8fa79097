import json
import logging
import re

import pytest
import structlog

from betvex_setup.utils.logs import configure_logging, construct_log_file_name


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()


def test_log_file_name_is_placed_in_logs_dir(tmp_path):
    log_file = construct_log_file_name("run", tmp_path)

    assert log_file.parent == tmp_path.joinpath("logs")
    assert re.fullmatch(r"betvex-setup-run_\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.log", log_file.name)


def test_debug_events_are_written_as_json(tmp_path, restore_logging):
    log_file = construct_log_file_name("preflight", tmp_path)

    configure_logging(debug_log_file_path=log_file)
    structlog.get_logger("betvex_setup.tests").debug("Checked balance", token="USDC", balance=12)
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert log_file.exists()
    lines = [json.loads(line) for line in log_file.read_text().splitlines()]
    assert {
        "event": "Checked balance",
        "token": "USDC",
        "balance": 12,
        "level": "debug",
        "logger": "betvex_setup.tests",
    }.items() <= lines[-1].items()


def test_third_party_debug_events_are_filtered(tmp_path, restore_logging):
    log_file = construct_log_file_name("run", tmp_path)

    configure_logging(debug_log_file_path=log_file)
    logging.getLogger("urllib3.connectionpool").debug("Starting new HTTPS connection")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert "Starting new HTTPS connection" not in log_file.read_text()
