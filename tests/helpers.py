"""Factories shared by the test modules."""

from __future__ import annotations

import random
from typing import Dict, List, Optional, Sequence

from optimization.constraint_handler import Player, PoolEntry, price_to_tenths

QUOTAS = {'GKP': 2, 'DEF': 5, 'MID': 5, 'FWD': 3}


def make_player(
    player_id: int,
    position: str = 'MID',
    team_id: Optional[int] = None,
    price: float = 5.0,
    status: str = 'a',
    **kwargs,
) -> Player:
    return Player(
        player_id=player_id,
        name=kwargs.pop('name', f"Player {player_id}"),
        position=position,
        team_id=player_id if team_id is None else team_id,
        now_cost=price_to_tenths(price),
        status=status,
        **kwargs,
    )


def make_entry(
    player_id: int,
    position: str = 'MID',
    points: Optional[float] = 5.0,
    team_id: Optional[int] = None,
    price: float = 5.0,
    status: str = 'a',
    **kwargs,
) -> PoolEntry:
    return PoolEntry(make_player(player_id, position, team_id, price, status, **kwargs), points)


def uniform_pool(per_position: int = 20, price: float = 5.0) -> List[PoolEntry]:
    """Every player on his own team, forecasts descending within each position."""
    pool = []
    player_id = 1
    for position in QUOTAS:
        for rank in range(per_position):
            pool.append(make_entry(player_id, position, points=float(per_position - rank), price=price))
            player_id += 1
    return pool


def squad_entries(
    points: Optional[Dict[str, Sequence[float]]] = None,
    price: float = 6.0,
    first_id: int = 1,
) -> List[PoolEntry]:
    """A legal 2-5-5-3 squad with one player per team."""
    points = points or {
        'GKP': [5.0, 4.0],
        'DEF': [6.0, 5.0, 4.0, 1.0, 1.0],
        'MID': [9.0, 8.0, 7.0, 6.0, 5.0],
        'FWD': [3.0, 2.0, 1.0],
    }
    entries = []
    player_id = first_id
    for position, values in points.items():
        for value in values:
            entries.append(make_entry(player_id, position, points=value, price=price))
            player_id += 1
    return entries


def random_pool(seed: int, per_position: int = 12, teams: int = 20) -> List[PoolEntry]:
    """Prices between £4.0M and £6.0M, so the budget alone never starves a full-budget greedy pass."""
    rng = random.Random(seed)
    pool = []
    player_id = 1
    for position in QUOTAS:
        for _ in range(per_position):
            pool.append(make_entry(
                player_id,
                position,
                points=round(rng.uniform(0.0, 12.0), 1),
                team_id=rng.randint(1, teams),
                price=rng.randint(40, 60) / 10,
            ))
            player_id += 1
    return pool


def priced_pool(seed: int, per_position: int = 30, teams: int = 20) -> List[PoolEntry]:
    """
    Prices that rise with the forecast, as in a real game.

    Each position also carries quota-many £4.0M fodder players on clubs of their
    own, so a legal squad always exists well inside £100.0M.
    """
    rng = random.Random(seed)
    pool = []
    player_id = 1
    for position, quota in QUOTAS.items():
        for _ in range(per_position):
            points = round(rng.uniform(0.0, 10.0), 1)
            price = min(14.0, max(4.0, 4.0 + 0.9 * points + rng.uniform(-0.5, 0.5)))
            pool.append(make_entry(
                player_id,
                position,
                points=points,
                team_id=rng.randint(1, teams),
                price=round(price, 1),
            ))
            player_id += 1
        for _ in range(quota):
            pool.append(make_entry(player_id, position, points=0.5, team_id=1000 + player_id, price=4.0))
            player_id += 1
    return pool
