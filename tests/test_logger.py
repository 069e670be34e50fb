# ABOUTME: Tests for the logging setup and formatters
# ABOUTME: JSON extras, gameplay-focused console lines and JSON log parsing

import json
import logging

import pytest

from logger import (
    LOGGER_NAME,
    HumanReadableFormatter,
    JSONFormatter,
    parse_json_logs,
    setup_logging,
)


def make_record(level=logging.INFO, msg="message", **extra):
    record = logging.makeLogRecord(
        {"name": LOGGER_NAME, "levelno": level, "levelname": logging.getLevelName(level), "msg": msg}
    )
    record.__dict__.update(extra)
    return record


class TestJSONFormatter:
    def test_includes_extras(self):
        record = make_record(msg="Sending 'N'", event_type="command_sent", command="N", turn=3)

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "Sending 'N'"
        assert data["level"] == "INFO"
        assert data["event_type"] == "command_sent"
        assert data["command"] == "N"
        assert data["turn"] == 3
        assert "msg" not in data


class TestHumanReadableFormatter:
    def test_debug_is_hidden(self):
        assert HumanReadableFormatter().format(make_record(level=logging.DEBUG)) is None

    def test_turn_completed(self):
        record = make_record(
            event_type="turn_completed", turn=4, command="OPEN MAILBOX", outcome="progress", room="West of House"
        )

        assert HumanReadableFormatter().format(record) == (
            "Turn 4: 'OPEN MAILBOX' → progress, Room: West of House"
        )

    def test_warnings_are_prefixed(self):
        record = make_record(level=logging.WARNING, msg="Advisory call failed", event_type="advisory_failed")
        assert HumanReadableFormatter().format(record) == "WARNING: Advisory call failed"

    def test_memory_noise_is_hidden(self):
        assert HumanReadableFormatter().format(make_record(event_type="command_forbidden")) is None


@pytest.fixture
def log_files(tmp_path):
    episode_log = tmp_path / "episode.txt"
    json_log = tmp_path / "episode.jsonl"
    logger = setup_logging(str(episode_log), str(json_log))
    yield logger, episode_log, json_log
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()


class TestSetupLogging:
    def test_writes_both_files(self, log_files):
        logger, episode_log, json_log = log_files

        logger.info(
            "'N' -> progress",
            extra={"event_type": "turn_completed", "turn": 1, "command": "N", "outcome": "progress", "room": "Forest"},
        )
        logger.debug("hidden from the episode log")

        assert episode_log.read_text(encoding="utf-8").strip() == "Turn 1: 'N' → progress, Room: Forest"
        entries = parse_json_logs(str(json_log))
        assert [entry["event_type"] for entry in entries] == ["turn_completed"]

    def test_repeated_setup_replaces_handlers(self, log_files, tmp_path):
        logger, _, _ = log_files
        setup_logging(str(tmp_path / "again.txt"), str(tmp_path / "again.jsonl"))
        assert len(logger.handlers) == 3


def test_parse_json_logs_skips_bad_lines(tmp_path):
    path = tmp_path / "log.jsonl"
    path.write_text('{"event_type": "a"}\nnot json\n{"event_type": "b"}\n', encoding="utf-8")

    assert [entry["event_type"] for entry in parse_json_logs(str(path))] == ["a", "b"]
