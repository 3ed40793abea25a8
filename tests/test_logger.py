import io
import re

from deichain.logger import Logger

STAMP = r"\d{4}-\d\d-\d\d \d\d:\d\d:\d\d"


def test_log_writes_to_stream_and_file(tmp_path):
    path = tmp_path / "run.log"
    stream = io.StringIO()
    logger = Logger(path, stream)
    logger.log("CONTROLLER: hello")
    logger.close()
    match = re.fullmatch(rf"\[({STAMP})\] (.*)\n", stream.getvalue())
    assert match.group(2) == "CONTROLLER: hello"
    content = path.read_text()
    assert len(re.findall(rf"\n--- New logging session started at {STAMP} ---\n", content)) == 1
    assert len(re.findall(rf"\[{STAMP}\] CONTROLLER: hello\n", content)) == 1
    assert len(re.findall(rf"--- Logging session ended at {STAMP} ---\n\n$", content)) == 1


def test_sessions_are_appended(tmp_path):
    path = tmp_path / "run.log"
    for text in ("first", "second"):
        with Logger(path, io.StringIO()) as logger:
            logger.log(text)
    content = path.read_text()
    assert content.count("New logging session started") == 2
    assert content.index("first") < content.index("second")


def test_debug_is_silent_by_default(tmp_path):
    stream = io.StringIO()
    logger = Logger(None, stream)
    logger.debug("hidden")
    assert stream.getvalue() == ""


def test_debug_when_enabled_goes_to_stream_only(tmp_path):
    path = tmp_path / "run.log"
    stream = io.StringIO()
    logger = Logger(path, stream)
    logger.debug_enabled = True
    logger.debug("details")
    logger.close()
    match = re.fullmatch(rf"\[DEBUG ({STAMP})\] (.*)\n", stream.getvalue())
    assert match.group(2) == "details"
    assert "details" not in path.read_text()


def test_log_after_close_still_reaches_stream(tmp_path):
    path = tmp_path / "run.log"
    stream = io.StringIO()
    logger = Logger(path, stream)
    logger.close()
    before = path.read_text()
    logger.log("late")
    logger.close()
    assert "late" in stream.getvalue()
    assert path.read_text() == before


def test_unopenable_path_reports_error(tmp_path, capsys):
    stream = io.StringIO()
    logger = Logger(tmp_path, stream)
    logger.log("still works")
    logger.close()
    assert "Error: Could not open log file" in capsys.readouterr().err
    assert "still works" in stream.getvalue()


def test_default_stream_is_stdout(capsys):
    logger = Logger(None)
    logger.log("to stdout")
    match = re.fullmatch(rf"\[({STAMP})\] (.*)\n", capsys.readouterr().out)
    assert match.group(2) == "to stdout"