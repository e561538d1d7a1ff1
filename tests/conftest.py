"""Shared pytest fixtures for test modules."""

from __future__ import annotations

from typing import List

import pytest

from optimization.constraint_handler import FPLConstraintHandler, PoolEntry, Squad
from tests.helpers import squad_entries, uniform_pool


@pytest.fixture
def rules() -> FPLConstraintHandler:
    return FPLConstraintHandler()


@pytest.fixture
def pool() -> List[PoolEntry]:
    """20 players per position at a uniform £5.0M."""
    return uniform_pool()


@pytest.fixture
def entries() -> List[PoolEntry]:
    """A legal squad worth £90.0M: GK 5/4, DEF 6/5/4/1/1, MID 9/8/7/6/5, FWD 3/2/1."""
    return squad_entries()


@pytest.fixture
def squad(entries: List[PoolEntry]) -> Squad:
    return Squad(tuple(entries))
