import logging
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest
from loguru import logger

from cryptotracker.logging_config import setup_logging


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    yield
    logger.remove()
    logger.add(sys.stderr)
    logging.basicConfig(handlers=[], force=True)


def test_standard_logging_is_routed_to_loguru(tmp_path: Path) -> None:
    setup_logging(console_level="WARNING")
    messages: list[str] = []
    logger.add(messages.append, level="DEBUG", format="{level}|{message}")

    logging.getLogger("httpx").info("HTTP Request: GET https://api.test/products")

    assert messages == ["INFO|HTTP Request: GET https://api.test/products\n"]


def test_file_sink_writes_json_lines(tmp_path: Path) -> None:
    log_dir = tmp_path / "logs"
    setup_logging(console_level="WARNING", file_level="INFO", log_dir=log_dir)

    logger.bind(product="BTC-USD").info("Fetched stats for {}.", "BTC-USD")
    logger.complete()
    logger.remove()

    lines = [
        line
        for path in log_dir.glob("cryptotracker_*.log")
        for line in path.read_text(encoding="utf-8").splitlines()
    ]
    assert any('"message": "Fetched stats for BTC-USD."' in line for line in lines)
    assert any('"product": "BTC-USD"' in line for line in lines)
