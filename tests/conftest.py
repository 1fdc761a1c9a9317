"""Shared pytest fixtures and configuration."""

import json
from datetime import datetime, timezone

import pytest
from loguru import logger

NOW = datetime(2026, 2, 8, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop sinks added by CLI runs so later tests never write to closed streams."""
    yield
    logger.remove()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock(now):
    return lambda: now


@pytest.fixture
def epoch_ms():
    """Convert an aware datetime to epoch milliseconds."""

    def convert(moment: datetime) -> int:
        return int(moment.timestamp() * 1000)

    return convert


@pytest.fixture
def write_store(tmp_path):
    """Write a store file from session entries and optional root metadata."""

    def write(sessions, name="sessions.json", **metadata):
        path = tmp_path / name
        root = dict(metadata)
        root["sessions"] = sessions
        path.write_text(json.dumps(root, indent=2, ensure_ascii=False), encoding="utf-8")
        return path

    return write


@pytest.fixture
def catalog_product():
    """A selected product the way the catalog backend returns it."""
    return {
        "id": 101,
        "price": "45000",
        "custom_name": None,
        "category_id": 7,
        "image": "https://cdn.example.com/p/101.png",
        "sort": 3,
        "weight": 0,
        "attribute_data": {
            "name": {"chopar": {"ru": "Пицца Маргарита", "uz": "Margarita pitsa", "en": "Margherita"}},
            "description": {"chopar": {"ru": "<p>Томаты, моцарелла</p>", "uz": "<p>Pomidor</p>"}},
        },
    }


@pytest.fixture
def big_catalog():
    """A products cache large enough to push a session past 100KB."""
    return [
        {
            "id": index,
            "price": "39000",
            "attribute_data": {
                "name": {"chopar": {"ru": f"Товар {index}", "uz": f"Mahsulot {index}"}},
                "description": {"chopar": {"ru": "Описание " * 40, "uz": "Tavsif " * 40}},
            },
        }
        for index in range(200)
    ]
