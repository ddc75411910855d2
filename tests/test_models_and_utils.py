"""
Tests for models, helpers, settings and logging setup
"""

import logging
from datetime import datetime, timezone
from pathlib import Path

import pytest

from duely.config import current_owner_id, get_settings
from duely.core.exceptions import ValidationError
from duely.core.models import Attachment, Task, TaskPatch
from duely.logging_setup import setup_logging
from duely.utils import normalize_timestamp, now_iso, parse_timestamp, strip_markdown, validate_color


# --- TaskPatch ---


def test_empty_patch():
    assert TaskPatch().is_empty()
    assert not TaskPatch(completed=False).is_empty()


def test_patch_validate_normalizes():
    patch = TaskPatch(title="  Title  ", priority="HIGH", color="#AABBCC", end_date="2025-01-10").validate()

    assert patch.title == "Title"
    assert patch.priority == "high"
    assert patch.color == "#aabbcc"
    assert patch.end_date == "2025-01-10T00:00:00"


def test_patch_blank_description_clears_it():
    patch = TaskPatch(description="   ").validate()

    assert patch.changes() == {"description": None}


def test_patch_changes_skip_unsupplied_fields():
    assert TaskPatch(title="New").changes() == {"title": "New"}


def test_patch_apply_to_keeps_other_fields():
    task = Task(id="t", owner_id="alice", title="Old", start_date="2025-01-01T00:00:00",
                end_date="2025-01-10T00:00:00", description="Keep")

    patched = TaskPatch(title="New").apply_to(task)

    assert patched.title == "New"
    assert patched.description == "Keep"
    assert task.title == "Old"


def test_task_state_and_serialization():
    attachment = Attachment(id="a", name="f.txt", size=1, mime_type="text/plain", data_ref="r")
    task = Task(id="t", owner_id="alice", title="T", start_date="2025-01-01T00:00:00",
                end_date="2025-01-10T00:00:00", files=[attachment])

    assert task.state == "active"
    task.is_deleted = True
    assert task.state == "trashed"
    assert task.to_dict()["files"][0]["data_ref"] == "r"
    assert Attachment.from_dict(task.to_dict()["files"][0]) == attachment


# --- Helpers ---


def test_parse_timestamp_date_only_is_midnight():
    assert parse_timestamp("2025-01-10") == datetime(2025, 1, 10)


def test_parse_timestamp_converts_aware_to_local_naive():
    aware = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)

    parsed = parse_timestamp(aware)

    assert parsed.tzinfo is None
    assert parsed == aware.astimezone().replace(tzinfo=None)


def test_parse_timestamp_rejects_garbage():
    with pytest.raises(ValidationError):
        parse_timestamp("tomorrow-ish", "end date")


def test_now_iso_drops_timezone():
    aware = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)

    assert now_iso(aware) == aware.astimezone().replace(tzinfo=None).isoformat()
    assert now_iso(datetime(2025, 1, 10, 9, 30)) == "2025-01-10T09:30:00"


def test_normalize_timestamp():
    assert normalize_timestamp("2025-01-10T09:30") == "2025-01-10T09:30:00"


@pytest.mark.parametrize("color", ["blue", "#abc", "#12345g", ""])
def test_validate_color_rejects(color):
    with pytest.raises(ValidationError):
        validate_color(color)


def test_strip_markdown():
    markdown = "# Heading\n\n- [x] **Done** item with [link](http://x)\n\n```\ncode\n```\n> quoted `inline`"

    assert strip_markdown(markdown) == "Heading Done item with link quoted"
    assert strip_markdown(None) == ""


# --- Settings ---


def test_settings_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("DUELY_DB_PATH", str(tmp_path / "x.db"))
    monkeypatch.setenv("DUELY_RETENTION_DAYS", "14")
    monkeypatch.setenv("DUELY_DB_TIMEOUT", "not-a-number")
    monkeypatch.setenv("DUELY_LOG_LEVEL", "debug")

    settings = get_settings()

    assert settings.db_path == tmp_path / "x.db"
    assert settings.retention_days == 14
    assert settings.db_timeout == 5.0
    assert settings.log_level == "DEBUG"


def test_current_owner_prefers_override(monkeypatch):
    monkeypatch.setenv("DUELY_USER", "env-user")

    assert current_owner_id("cli-user") == "cli-user"
    assert current_owner_id(None) == "env-user"
    assert current_owner_id("  ") == "env-user"


def test_no_identity(monkeypatch):
    monkeypatch.setenv("DUELY_USER", "   ")

    assert current_owner_id() is None


# --- Logging ---


def test_setup_logging_writes_log_file(tmp_path):
    root = logging.getLogger()
    saved = list(root.handlers), root.level
    try:
        setup_logging(console_level="WARNING", log_dir=tmp_path / "logs")
        logging.getLogger("duely.test").debug("hello from the test")
        for handler in logging.getLogger().handlers:
            handler.flush()

        log_file = Path(tmp_path / "logs" / "duely.log")
        assert "hello from the test" in log_file.read_text(encoding="utf-8")
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        for handler in saved[0]:
            root.addHandler(handler)
        root.setLevel(saved[1])
