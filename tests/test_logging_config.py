from __future__ import annotations

import logging
import os
import time

from creative_editor.logging_config import DailyRotatingFileHandler


def test_rotated_files_keep_the_log_extension(tmp_path):
    handler = DailyRotatingFileHandler(str(tmp_path), base_name="editor")
    try:
        name = handler.rotation_filename(str(tmp_path / "editor_2026-01-12.log.3"))
        assert name == str(tmp_path / "editor_2026-01-12_03.log")
        assert handler.baseFilename.endswith(f"editor_{handler._today()}.log")
    finally:
        handler.close()


def test_old_logs_are_removed_on_start(tmp_path):
    old = tmp_path / "editor_2000-01-01.log"
    old_split = tmp_path / "editor_2000-01-01_02.log"
    unrelated = tmp_path / "notes.log"
    for path in (old, old_split, unrelated):
        path.write_text("x")

    handler = DailyRotatingFileHandler(str(tmp_path), base_name="editor", backup_days=7)
    try:
        handler.emit(logging.makeLogRecord({"msg": "hello", "levelno": logging.INFO}))
    finally:
        handler.close()

    remaining = sorted(os.listdir(tmp_path))
    assert remaining == ["editor_" + time.strftime("%Y-%m-%d") + ".log", "notes.log"]
