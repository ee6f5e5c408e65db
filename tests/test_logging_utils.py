import logging

from pcmsynth.logging_utils import (
    DEBUG_ENV,
    LOG_DIR_ENV,
    configure_logging,
    debug_enabled,
    get_log_dir,
    get_log_path,
    log_exception,
)


def test_log_path_uses_env_override(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv(LOG_DIR_ENV, str(tmp_path))
    assert get_log_dir() == tmp_path
    assert get_log_path() == tmp_path / "pcmsynth.log"


def test_debug_flag_reads_env(monkeypatch) -> None:
    monkeypatch.delenv(DEBUG_ENV, raising=False)
    assert not debug_enabled()
    monkeypatch.setenv(DEBUG_ENV, "1")
    assert debug_enabled()


def test_configure_logging_creates_file_handler(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv(LOG_DIR_ENV, str(tmp_path))
    logger = logging.getLogger("pcmsynth")
    assert configure_logging(force=True) is logger
    try:
        file_handlers = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]
        assert len(file_handlers) == 1
        assert file_handlers[0].baseFilename == str(tmp_path / "pcmsynth.log")
        assert logger.propagate
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()


def test_log_exception_writes_traceback(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv(LOG_DIR_ENV, str(tmp_path))
    try:
        raise RuntimeError("boom")
    except RuntimeError as exc:
        path = log_exception("render", exc)
    assert path == tmp_path / "pcmsynth.log"
    text = path.read_text(encoding="utf-8")
    assert "render: RuntimeError: boom" in text
    assert "Traceback" in text


def test_log_exception_records_details(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv(LOG_DIR_ENV, str(tmp_path))
    path = log_exception("render", ValueError("bad sample"), details={"sample_index": 3, "time": 0.5})
    assert path is not None
    text = path.read_text(encoding="utf-8")
    assert "render: ValueError: bad sample" in text
    assert "    sample_index = 3" in text
    assert "    time = 0.5" in text
    assert "Traceback" not in text


def test_log_exception_survives_unusable_directory(tmp_path, monkeypatch) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")
    monkeypatch.setenv(LOG_DIR_ENV, str(blocker))
    assert log_exception("render", RuntimeError("boom")) is None
