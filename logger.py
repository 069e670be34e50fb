import json
import logging
from datetime import datetime
from typing import Any, Dict, List

LOGGER_NAME = "zorkscaffold"

# Attributes every LogRecord carries; anything else came in through extra={}
STANDARD_ATTRS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "message",
    "exc_info",
    "exc_text",
    "stack_info",
    "getMessage",
}


class JSONFormatter(logging.Formatter):
    """Custom formatter that outputs log records as JSON objects."""

    def format(self, record):
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
        }

        for attr_name, attr_value in record.__dict__.items():
            if attr_name not in STANDARD_ATTRS and not attr_name.startswith("_"):
                log_data[attr_name] = attr_value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Custom formatter for human-readable console output focused on gameplay."""

    def format(self, record):
        message = record.getMessage()

        if record.levelname == "DEBUG":
            return None

        if record.levelname in ["ERROR", "WARNING"]:
            return f"{record.levelname}: {message}"

        event_type = getattr(record, "event_type", None)

        if event_type == "session_initialized":
            episode_id = getattr(record, "episode_id", "unknown")
            room = getattr(record, "room", "unknown")
            return f"\n🎮 NEW SESSION: {episode_id} (starting in {room})"

        if event_type == "turn_completed":
            turn = getattr(record, "turn", "?")
            command = getattr(record, "command", "unknown")
            outcome = getattr(record, "outcome", "?")
            room = getattr(record, "room", "unknown")
            return f"Turn {turn}: '{command}' → {outcome}, Room: {room}"

        if event_type == "command_sent":
            command = getattr(record, "command", "unknown")
            return f"  > {command}"

        if event_type == "advisory_tip":
            return f"  Advisor: {getattr(record, 'advice', message)}"

        if event_type == "loop_detected":
            return f"🔁 {message}"

        if event_type == "summary_refreshed":
            return f"📋 Summary: {getattr(record, 'summary', message)}"

        if event_type == "lead_detected":
            return f"🔎 {message}"

        if event_type == "session_stopped":
            turn = getattr(record, "turn", "?")
            reason = getattr(record, "reason", "stopped")
            return f"🏁 Session stopped after {turn} turns ({reason})"

        if event_type == "progress":
            stage = getattr(record, "stage", "")
            if stage in ["session_initialization", "session_reset"]:
                details = getattr(record, "details", "")
                return f"⚙️  {stage.replace('_', ' ').title()}: {details if details else message}"
            return None

        if event_type in ["memory_update", "command_forbidden", "command_adjusted", "lead_resolved"]:
            return None

        if event_type is None and record.levelname == "INFO" and any(
            keyword in message.lower()
            for keyword in ["error", "failed", "exception", "warning", "completed", "initialized"]
        ):
            return message

        return None


class FilteringStreamHandler(logging.StreamHandler):
    """Stream handler that filters out None messages from formatter."""

    def emit(self, record):
        try:
            msg = self.format(record)
            if msg is not None:
                stream = self.stream
                stream.write(msg + self.terminator)
                self.flush()
        except Exception:
            self.handleError(record)


class FilteringFileHandler(logging.FileHandler):
    """File handler that filters out None messages from formatter."""

    def emit(self, record):
        try:
            msg = self.format(record)
            if msg is not None:
                if self.stream is None:
                    self.stream = self._open()
                stream = self.stream
                stream.write(msg + self.terminator)
                self.flush()
        except Exception:
            self.handleError(record)


def setup_logging(
    episode_log_file: str, json_log_file: str, log_level: int = logging.INFO
) -> logging.Logger:
    """
    Set up logging with console and file handlers.

    Args:
        episode_log_file: Path to the human-readable log file
        json_log_file: Path to the JSON log file
        log_level: Logging level (default: INFO)
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    console_handler = FilteringStreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(HumanReadableFormatter())
    logger.addHandler(console_handler)

    file_handler = FilteringFileHandler(episode_log_file, mode="a", encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(HumanReadableFormatter())
    logger.addHandler(file_handler)

    json_handler = logging.FileHandler(json_log_file, mode="a", encoding="utf-8")
    json_handler.setLevel(log_level)
    json_handler.setFormatter(JSONFormatter())
    json_handler.is_json_handler = True
    logger.addHandler(json_handler)

    return logger


def parse_json_logs(json_log_file: str) -> List[Dict[str, Any]]:
    """Parse a JSON log file into a list of log entries."""
    logs = []
    with open(json_log_file, "r", encoding="utf-8") as f:
        for line in f:
            try:
                logs.append(json.loads(line.strip()))
            except json.JSONDecodeError:
                continue
    return logs
