from __future__ import annotations

import pytest

from catalog.service import CatalogService
from tests.support import InMemoryCatalogStorage


@pytest.fixture
def storage() -> InMemoryCatalogStorage:
    return InMemoryCatalogStorage()


@pytest.fixture
def service(storage: InMemoryCatalogStorage) -> CatalogService:
    return CatalogService(storage)
