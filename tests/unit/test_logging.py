from pathlib import Path

from loguru import logger

from tradejournal.utils.logging import setup_logging


def test_setup_logging_writes_file(tmp_path: Path) -> None:
    log_dir = tmp_path / "logs"
    setup_logging("DEBUG", log_dir)

    logger.info("journal ready")
    logger.remove()

    log_file = log_dir / "tradejournal.log"
    assert log_file.exists()
    assert "journal ready" in log_file.read_text(encoding="utf-8")


def test_setup_logging_without_file_sink(tmp_path: Path) -> None:
    setup_logging("INFO", None)
    logger.remove()
    assert list(tmp_path.iterdir()) == []
