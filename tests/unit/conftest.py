"""Pytest configuration and fixtures for unit tests."""

from datetime import UTC, datetime, timedelta

import pytest

from walkmate.core.context import AppContext
from walkmate.domain.user import Profile, UserRole
from walkmate.domain.walk import ApplicationStatus, WalkStatus
from tests.unit.mocks import InMemoryDBClient


FROZEN_NOW = datetime(2026, 5, 1, 9, 0, tzinfo=UTC)

OWNER_EMAIL = "owner@example.com"
WALKER_EMAIL = "walker@example.com"
PASSWORD = "walkies123"


def sign_in(ctx: AppContext, profile: Profile) -> Profile:
    """Put a profile into the session without going through the backend."""
    ctx.session.user = profile
    ctx.session.loading = False
    return profile


def seed_profile(db: InMemoryDBClient, *, user_id: str, nickname: str, role: UserRole, region: str) -> Profile:
    record = db.seed_record(
        "profiles",
        {"id": user_id, "nickname": nickname, "role": role, "region_code": region, "trust_score": 36.5},
    )
    return Profile.from_record(record)


@pytest.fixture
def in_memory_db() -> InMemoryDBClient:
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def ctx(in_memory_db: InMemoryDBClient) -> AppContext:
    """Application context over the in-memory backend with a frozen clock."""
    return AppContext(backend=in_memory_db, clock=lambda: FROZEN_NOW)


@pytest.fixture
def owner(in_memory_db: InMemoryDBClient) -> Profile:
    in_memory_db.seed_user(email=OWNER_EMAIL, password=PASSWORD, user_id="u1")
    return seed_profile(in_memory_db, user_id="u1", nickname="보리아빠", role=UserRole.OWNER, region="강남구")


@pytest.fixture
def walker(in_memory_db: InMemoryDBClient) -> Profile:
    in_memory_db.seed_user(email=WALKER_EMAIL, password=PASSWORD, user_id="u2")
    return seed_profile(in_memory_db, user_id="u2", nickname="산책왕", role=UserRole.WALKER, region="강남구")


@pytest.fixture
def other_walker(in_memory_db: InMemoryDBClient) -> Profile:
    in_memory_db.seed_user(email="walker2@example.com", password=PASSWORD, user_id="u3")
    return seed_profile(in_memory_db, user_id="u3", nickname="달리기", role=UserRole.WALKER, region="서초구")


@pytest.fixture
def dog(in_memory_db: InMemoryDBClient, owner: Profile) -> dict:
    return in_memory_db.seed_record(
        "dogs",
        {"id": "d1", "owner_id": owner.id, "name": "보리", "breed": "말티즈", "size": "S", "notes": "", "image": ""},
    )


@pytest.fixture
def open_request(in_memory_db: InMemoryDBClient, owner: Profile, dog: dict) -> dict:
    return in_memory_db.seed_record(
        "walk_requests",
        {
            "id": "r1",
            "owner_id": owner.id,
            "dog_id": dog["id"],
            "scheduled_at": (FROZEN_NOW + timedelta(hours=3)).isoformat(),
            "duration": 60,
            "reward": 15000,
            "region": "강남구",
            "status": WalkStatus.OPEN,
        },
    )


@pytest.fixture
def matched_request(in_memory_db: InMemoryDBClient, open_request: dict, walker: Profile) -> dict:
    """r1 matched to the walker through an ACCEPTED application."""
    in_memory_db.seed_record(
        "applications",
        {"id": "a1", "request_id": open_request["id"], "walker_id": walker.id, "status": ApplicationStatus.ACCEPTED},
    )
    in_memory_db._collections["walk_requests"][open_request["id"]]["status"] = WalkStatus.MATCHED.value
    return in_memory_db.records("walk_requests")[0]
