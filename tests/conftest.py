"""Pytest fixtures for engine, service and API tests."""

import os
import threading
import time
from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from itertools import count

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from pushadmin.api.deps import get_db, get_push_sender
from pushadmin.core.security import create_admin_token
from pushadmin.core.subscription import PushSubscriptionInfo, encode_subscription
from pushadmin.db import models  # noqa: F401  # Imported for side effects
from pushadmin.db.base import Base
from pushadmin.db.models import StepSequence, User
from pushadmin.db.store import Store
from pushadmin.main import create_app
from pushadmin.services.broadcast import BroadcastService
from pushadmin.services.progress_engine import ProgressEngine
from pushadmin.services.push_sender import PushDeliveryError, PushPayload

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

_endpoint_ids = count(1)


class StubSender:
    """Records every attempt; endpoints registered via ``fail`` raise instead."""

    def __init__(self) -> None:
        self.attempts: list[tuple[str, PushPayload]] = []
        self.failures: dict[str, int | None] = {}
        self._lock = threading.Lock()

    def fail(self, endpoint: str, status_code: int | None = 500) -> None:
        self.failures[endpoint] = status_code

    def send(self, subscription: PushSubscriptionInfo, payload: PushPayload) -> None:
        with self._lock:
            self.attempts.append((subscription.endpoint, payload))
        if subscription.endpoint in self.failures:
            raise PushDeliveryError("push service rejected message", status_code=self.failures[subscription.endpoint])

    @property
    def delivered(self) -> list[tuple[str, PushPayload]]:
        return [item for item in self.attempts if item[0] not in self.failures]


class ConcurrencyTrackingSender:
    """Counts how many sends overlap."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.active = 0
        self.peak = 0
        self.calls = 0

    def send(self, subscription: PushSubscriptionInfo, payload: PushPayload) -> None:
        with self._lock:
            self.active += 1
            self.calls += 1
            self.peak = max(self.peak, self.active)
        time.sleep(0.005)
        with self._lock:
            self.active -= 1


class FrozenClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(scope="session")
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session(db_engine) -> Generator[Session, None, None]:
    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=db_engine, expire_on_commit=False
    )
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        for table in reversed(Base.metadata.sorted_tables):
            db.execute(table.delete())
        db.commit()
        db.close()


@pytest.fixture()
def store(db_session: Session) -> Store:
    return Store(db_session)


@pytest.fixture()
def sender() -> StubSender:
    return StubSender()


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def engine(store: Store, sender: StubSender, clock: FrozenClock) -> ProgressEngine:
    return ProgressEngine(store, sender, batch_limit=100, deadline_seconds=5.0, clock=clock)


@pytest.fixture()
def broadcast(store: Store, sender: StubSender, clock: FrozenClock) -> BroadcastService:
    return BroadcastService(store, sender, deadline_seconds=5.0, clock=clock)


@pytest.fixture()
def make_user(db_session: Session):
    def _make_user(
        *,
        tenant_id: int | None = None,
        created_at: datetime = NOW - timedelta(days=1),
        device_type: str = "Android",
        browser: str = "Chrome",
        engagement_score: int = 0,
        host: str = "fcm.googleapis.com",
        raw_subscription: str | None = None,
    ) -> User:
        endpoint = f"https://{host}/fcm/send/device-{next(_endpoint_ids)}"
        info = PushSubscriptionInfo(endpoint=endpoint, keys={"p256dh": "key", "auth": "secret"})
        user = User(
            tenant_id=tenant_id,
            subscription=raw_subscription if raw_subscription is not None else encode_subscription(info),
            endpoint=endpoint,
            device_type=device_type,
            browser=browser,
            engagement_score=engagement_score,
            created_at=created_at,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture()
def make_sequence(store: Store):
    def _make_sequence(
        steps: list[dict],
        *,
        name: str = "Onboarding",
        tenant_id: int | None = None,
        is_active: bool = True,
    ) -> StepSequence:
        rows = []
        for order, step in enumerate(steps, start=1):
            rows.append(
                {
                    "step_order": order,
                    "title": step.get("title", f"Step {order}"),
                    "body": step.get("body", f"Body {order}"),
                    "url": step.get("url", ""),
                    "delay_type": step.get("delay_type", "immediate"),
                    "delay_value": step.get("delay_value", 0),
                    "scheduled_time": step.get("scheduled_time"),
                }
            )
        sequence, _ = store.create_sequence_with_steps(
            {"tenant_id": tenant_id, "name": name, "description": "", "is_active": is_active},
            rows,
        )
        return sequence

    return _make_sequence


@pytest.fixture()
def client(db_session: Session, sender: StubSender) -> Generator[TestClient, None, None]:
    app = create_app()

    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_push_sender] = lambda: sender
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {create_admin_token('ops@example.com')}"}


@pytest.fixture()
def cron_headers() -> dict[str, str]:
    return {"Authorization": "Bearer test-cron-secret"}
