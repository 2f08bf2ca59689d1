"""Tests for terminal output helpers and log setup."""

import logging

import pytest

from mandark.cli_display import packet_diff, setup_logger
from mandark.editing.document import build_document
from mandark.editing.packets import EditPacket, Operation


@pytest.fixture
def mandark_logger():
    logger = logging.getLogger("mandark")
    before = list(logger.handlers)
    yield logger
    for handler in logger.handlers[:]:
        if handler not in before:
            logger.removeHandler(handler)
            handler.close()


def _file_handlers(logger, log_dir):
    return [h for h in logger.handlers
            if isinstance(h, logging.FileHandler) and str(log_dir) in h.baseFilename]


def test_setup_logger_reuses_handler_for_same_dir(tmp_path, mandark_logger):
    setup_logger(str(tmp_path / "logs"))
    setup_logger(str(tmp_path / "logs"))
    assert len(_file_handlers(mandark_logger, tmp_path / "logs")) == 1


def test_repeated_setup_writes_each_line_once(tmp_path, mandark_logger):
    log_dir = tmp_path / "logs"
    setup_logger(str(log_dir))
    setup_logger(str(log_dir))
    logging.getLogger("mandark.test").info("only once")
    for handler in _file_handlers(mandark_logger, log_dir):
        handler.flush()
    text = "".join(p.read_text() for p in log_dir.iterdir())
    assert text.count("only once") == 1


def test_packet_diff_shows_original_and_new_lines(tmp_path):
    doc = build_document([("a.py", "x = 1\ny = 2\n")], root=str(tmp_path))
    replace = EditPacket("a.py", Operation.REPLACE_LINES, 2, 2, ("y = 3",))
    assert packet_diff(doc, replace).splitlines() == [
        "--- a/a.py", "+++ b/a.py", "@@ line 2 @@", "-y = 2", "+y = 3",
    ]
    insert = EditPacket("a.py", Operation.INSERT_AFTER_LINE, 1, new_content=("z = 0",))
    assert packet_diff(doc, insert).splitlines()[3:] == [" x = 1", "+z = 0"]
