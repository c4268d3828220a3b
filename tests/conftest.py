"""Shared fixtures for TrustCircle tests.

Each test gets a fresh SQLite database under tmp_path and a controllable
clock, so expiry can be exercised without sleeping.
"""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import pytest

from trustcircle.config import Config, LoggingConfig, StoreConfig, SweepConfig
from trustcircle.core.trust_store.sqlite_store import SQLiteTrustStore
from trustcircle.models.user import LifeStatus, UserProfile
from trustcircle.services.trust_circle import TrustCircle

START = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


PROFILES = [
    UserProfile(id="usr_alice", name="Alice", email="alice@example.com"),
    UserProfile(id="usr_bob", name="Bob", email="bob@example.com"),
    UserProfile(id="usr_carol", name="Carol", email="carol@example.com"),
    UserProfile(id="usr_dave", name="Dave", email="dave@example.com", life_status=LifeStatus.DECEASED),
]


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def test_config(tmp_path) -> Config:
    """Config pointing at a throwaway database, no background sweep, console logs only."""
    return Config(
        store=StoreConfig(db_path=str(tmp_path / "trust_circle.db")),
        sweep=SweepConfig(enabled=False),
        logging=LoggingConfig(log_to_file=False),
    )


@pytest.fixture
async def store(test_config) -> AsyncGenerator[SQLiteTrustStore, None]:
    """Initialized SQLite trust store."""
    store = SQLiteTrustStore(db_path=test_config.store.db_path)
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
async def users(store) -> dict[str, UserProfile]:
    """Alice, Bob, Carol and Dave, keyed by lower-case first name."""
    async with store.transaction() as session:
        for profile in PROFILES:
            await session.upsert_user(profile)
    return {profile.name.lower(): profile for profile in PROFILES}


@pytest.fixture
async def circle(test_config, store, clock, users) -> AsyncGenerator[TrustCircle, None]:
    """TrustCircle over the test store, with users already registered."""
    tc = TrustCircle(config=test_config, store=store, clock=clock)
    await tc.initialize()
    yield tc
    await tc.stop_sweeper()


@pytest.fixture
def connect(circle):
    """Invite `recipient` from `sender` and accept it; returns the Connection."""

    async def _connect(
        sender: UserProfile,
        recipient: UserProfile,
        relationship: str = "friend",
        reciprocal: str = "friend",
        proposed: dict | None = None,
        granted: dict | None = None,
    ):
        invite = await circle.create_invite(
            sender_id=sender.id,
            invitee_email=recipient.email,
            invitee_name=recipient.name,
            relationship_to_sender=relationship,
            proposed_permissions=proposed,
        )
        return await circle.accept_invite(invite.id, recipient.id, reciprocal, granted)

    return _connect
