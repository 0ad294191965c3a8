"""Tests for logging setup and structured event records."""

import json
import logging

import pytest

from petfood.logging_config import get_logger, log_scrape_event, setup_logging


@pytest.fixture
def jsonl_dir(tmp_path):
    setup_logging(log_to_console=False, log_dir=tmp_path)
    yield tmp_path
    root = logging.getLogger("petfood")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.NOTSET)


def _records(log_dir):
    (log_file,) = log_dir.glob("petfood_*.jsonl")
    return [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]


class TestLogScrapeEvent:
    """Test JSONL event records."""

    def test_event_written_with_data(self, jsonl_dir):
        log_scrape_event("pipeline_state", {"state": "idle", "category": "all"})

        (record,) = _records(jsonl_dir)
        assert record["event"] == "pipeline_state"
        assert record["data"] == {"state": "idle", "category": "all"}
        assert record["message"] == "pipeline_state"
        assert record["logger"] == "petfood"
        assert record["level"] == "INFO"
        assert record["ts"].endswith("Z")

    def test_message_key_becomes_log_line(self, jsonl_dir):
        log_scrape_event("price_update", {"message": "Price update completed", "updated": 3})

        (record,) = _records(jsonl_dir)
        assert record["message"] == "Price update completed"
        assert record["data"] == {"updated": 3}

    def test_plain_log_call_has_no_event(self, jsonl_dir):
        get_logger("scraper").debug("Found 2 product links")

        (record,) = _records(jsonl_dir)
        assert record["logger"] == "petfood.scraper"
        assert record["message"] == "Found 2 product links"
        assert "event" not in record

    def test_setup_again_replaces_handlers(self, jsonl_dir, tmp_path_factory):
        other = tmp_path_factory.mktemp("logs")
        setup_logging(log_to_console=False, log_dir=other)

        log_scrape_event("category_start", {"category": "dog"})

        assert list(jsonl_dir.glob("*.jsonl")) == []
        assert _records(other)[0]["data"] == {"category": "dog"}


class TestGetLogger:
    """Test logger naming."""

    @pytest.mark.parametrize("name,expected", [
        ("petfood", "petfood"),
        ("pipeline", "petfood.pipeline"),
        ("petfood.prices", "petfood.prices"),
    ])
    def test_namespaced(self, name, expected):
        assert get_logger(name).name == expected
