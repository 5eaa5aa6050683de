from __future__ import annotations

import pytest
from django.core.cache import caches

from requests_mock import Mocker


@pytest.fixture
def requests_mock():
    with Mocker() as mock:
        yield mock


@pytest.fixture(autouse=True)
def clear_weather_cache():
    caches["weather"].clear()
    yield
    caches["weather"].clear()
