"""Shared test fixtures."""

import pytest

from freemind.core.working_set import WorkingSet
from tests.unit.fakes import SAMPLE_REGISTRY, FakeApi


@pytest.fixture
def fake_api() -> FakeApi:
    """A server holding the sample registry."""
    return FakeApi(SAMPLE_REGISTRY)


@pytest.fixture
def working_set() -> WorkingSet:
    """An empty working set."""
    return WorkingSet()
