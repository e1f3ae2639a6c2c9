"""Pytest configuration and shared fixtures."""

from unittest.mock import Mock

import pytest
from sqlalchemy.orm import Session

from transfermarket.nlq.model_client import ModelClient
from transfermarket.nlq.schema_context import describe
from transfermarket.store.models import Club, Player, Transfer
from transfermarket.store.sql import SqlAlchemyStore


@pytest.fixture
def store(tmp_path):
    """SQLite store seeded with two clubs, five players and one transfer."""
    store = SqlAlchemyStore(database_url=f"sqlite:///{tmp_path / 'transfer_market.db'}")
    store.create_tables()

    with Session(store.engine) as session:
        session.add_all(
            [
                Club(id=1, name="Barcelona", country="Spain", budget=50_000_000),
                Club(id=2, name="Real Madrid", country="Spain", budget=120_000_000),
            ]
        )
        session.add_all(
            [
                Player(id=1, name="Pedri", position="MF", age=22, market_value=100_000_000, club_id=1),
                Player(id=2, name="Gavi", position="MF", age=21, market_value=90_000_000, club_id=1),
                Player(id=3, name="Yamal", position="FW", age=18, market_value=150_000_000, club_id=1),
                Player(id=4, name="Bellingham", position="MF", age=22, market_value=180_000_000, club_id=2),
                Player(id=5, name="Vinicius", position="FW", age=25, market_value=150_000_000, club_id=2),
            ]
        )
        session.add(Transfer(player_id=4, from_club_id=None, to_club_id=2, fee=103_000_000))
        session.commit()

    yield store

    store.engine.dispose()


@pytest.fixture
def schema_card(store):
    """Schema card described from the seeded store."""
    return describe(store)


@pytest.fixture
def model_client():
    """Model client mock; tests set complete.side_effect per call."""
    return Mock(spec=ModelClient)
