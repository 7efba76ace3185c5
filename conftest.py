# SPDX-License-Identifier: MIT
"""Shared pytest fixtures.

Living at the repository root keeps the in-tree ``pointforge`` package and the
``tests`` helpers importable without installing the project.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import pytest

from tests.pointforge_fakes import FakeClock, FakeStore

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "integration: end-to-end tests against the in-memory store")


@pytest.fixture()
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def t0() -> datetime:
    return T0


@pytest.fixture(autouse=True)
def _reset_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
