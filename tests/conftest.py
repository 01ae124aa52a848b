import fnmatch
import os
import threading
from datetime import datetime, timezone

# Settings are read once; configure them before the app is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AVAILABILITY_CACHE_ENABLED", "false")
os.environ.setdefault("PUBLIC_RATE_LIMIT_PER_SECOND", "1000")
os.environ.setdefault("UTC_OFFSET", "+00:00")
os.environ.setdefault("NO_SHOW_GRACE_MINUTES", "15")

import pytest
import redis
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app.api.dependencies import create_access_token
from app.config.database import build_engine, get_db
from app.main import app
from app.models import Base, User
from app.services.availability.availability_cache import AvailabilityCache, get_availability_cache
from app.services.availability.availability_service import AvailabilityService
from app.utils.clock import get_clock


class FakeRedis:
    """In-process stand-in for the handful of Redis commands the cache issues"""

    def __init__(self):
        self.data = {}
        self.ttls = {}
        self.versions = {}
        self.lock = threading.RLock()

    def _touch(self, key):
        self.versions[key] = self.versions.get(key, 0) + 1

    def get(self, key):
        return self.data.get(key)

    def mget(self, *keys):
        return [self.data.get(key) for key in keys]

    def setex(self, key, ttl, value):
        with self.lock:
            self.data[key] = value
            self.ttls[key] = ttl
            self._touch(key)

    def incr(self, key):
        with self.lock:
            value = int(self.data.get(key) or 0) + 1
            self.data[key] = str(value)
            self._touch(key)
            return value

    def expire(self, key, ttl):
        self.ttls[key] = ttl
        return key in self.data

    def delete(self, *keys):
        with self.lock:
            removed = 0
            for key in keys:
                if self.data.pop(key, None) is not None:
                    removed += 1
                    self._touch(key)
            return removed

    def scan_iter(self, match=None, count=None):
        return [k for k in list(self.data) if match is None or fnmatch.fnmatch(k, match)]

    def pipeline(self, transaction=True):
        return FakePipeline(self)


class FakePipeline:
    """WATCH runs commands immediately until MULTI; EXEC fails if a watched key moved"""

    def __init__(self, server: FakeRedis):
        self.server = server
        self.watched = {}
        self.queued = []
        self.immediate = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.reset()

    def reset(self):
        self.watched = {}
        self.queued = []
        self.immediate = False

    def watch(self, *keys):
        self.watched = {key: self.server.versions.get(key, 0) for key in keys}
        self.immediate = True

    def multi(self):
        self.immediate = False

    def __getattr__(self, name):
        command = getattr(self.server, name)
        if self.immediate:
            return command

        def queue(*args, **kwargs):
            self.queued.append((command, args, kwargs))
            return self
        return queue

    def execute(self):
        with self.server.lock:
            moved = any(self.server.versions.get(k, 0) != v for k, v in self.watched.items())
            if moved:
                self.reset()
                raise redis.WatchError("Watched variable changed.")
            results = [command(*args, **kwargs) for command, args, kwargs in self.queued]
        self.reset()
        return results


class RecordingAvailabilityCache(AvailabilityCache):
    """The real cache over FakeRedis, remembering which invalidations ran"""

    def __init__(self, client=None):
        self.fake = client or FakeRedis()
        super().__init__(client_factory=lambda: self.fake, ttl_seconds=300, enabled=True)
        self.invalidations = []

    def invalidate(self, owner_id, day):
        self.invalidations.append((str(owner_id), day.isoformat()))
        super().invalidate(owner_id, day)

    def invalidate_owner(self, owner_id):
        self.invalidations.append((str(owner_id), "*"))
        super().invalidate_owner(owner_id)


class FixedClock:
    """Callable clock whose time the test controls"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'bookings.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def cache():
    return RecordingAvailabilityCache()


@pytest.fixture
def clock():
    return FixedClock(datetime(2025, 2, 10, 8, 0, tzinfo=timezone.utc))


def make_owner(db, email: str) -> User:
    owner = User(email=email, full_name="Test Owner", is_active=True)
    db.add(owner)
    db.commit()
    db.refresh(owner)
    return owner


@pytest.fixture
def owner(db):
    owner = make_owner(db, "owner@mail.com")
    # Defaults (Mon-Fri 09:00-17:00, 60 minute windows) up front
    AvailabilityService.get_or_create_settings(db, owner.id)
    AvailabilityService.get_or_create_working_hours(db, owner.id)
    return owner


@pytest.fixture
def other_owner(db):
    return make_owner(db, "other@mail.com")


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest.fixture
def client(session_factory, cache, clock):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_availability_cache] = lambda: cache
    app.dependency_overrides[get_clock] = lambda: clock

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def owner_headers(owner):
    return auth_headers(owner)


@pytest.fixture
def other_headers(other_owner):
    return auth_headers(other_owner)


@pytest.fixture
def fake_redis():
    return FakeRedis()
