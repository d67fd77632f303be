"""Shared fixtures for collection store tests."""

from typing import List

import pytest

from core.models.content import Chapter
from core.storage.adapters import MemoryStorage
from tests.fakes import CHAPTERS, FakeContentSource


@pytest.fixture
def chapters() -> List[Chapter]:
    return list(CHAPTERS)


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def content() -> FakeContentSource:
    return FakeContentSource()
