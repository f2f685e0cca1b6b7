"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient

from invopt.api.deps import get_db
from invopt.database import Base
from invopt.db.handle import Database
from invopt.main import app
from invopt.models import Item, JobStatus, OptimizationJob, OptimizationResult
from invopt.services.optimizer_client import OptimizerError

PLANNER_HEADERS = {"X-User-ID": "7", "X-User-Role": "Manager"}

# Test client runs sync endpoints in a thread pool
SQLITE_OPTIONS = {"connect_args": {"check_same_thread": False}}


def figures_for(payload):
    """Default engine behaviour: one row per item sent."""
    return [
        {"item_id": item["item_id"], "eoq": 100.0, "reorder_point": 20.0, "safety_stock": 5.0}
        for item in payload["items"]
    ]


class FakeOptimizer:
    """
    Stand-in for OptimizerClient.

    ``responder(payload, call_number)`` returns the decoded body, or an
    exception instance to raise.
    """

    def __init__(self, responder=None):
        self.responder = responder or (lambda payload, call: figures_for(payload))
        self.payloads = []
        self.closed = False

    def optimize_batch(self, payload):
        self.payloads.append(payload)
        result = self.responder(payload, len(self.payloads))
        if isinstance(result, Exception):
            raise result
        return result

    def close(self):
        self.closed = True


def failing_on(*calls):
    """Responder that returns HTTP 500 for the given call numbers."""

    def responder(payload, call):
        if call in calls:
            return OptimizerError("HTTP 500: Internal Server Error", status_code=500)
        return figures_for(payload)

    return responder


@pytest.fixture
def db(tmp_path):
    """File-backed SQLite database with the full schema."""
    database = Database(
        f"sqlite:///{tmp_path / 'invopt.db'}", max_attempts=3, retry_delay=0, engine_options=SQLITE_OPTIONS
    )
    Base.metadata.create_all(bind=database.engine)
    yield database
    database.dispose()


@pytest.fixture
def bare_db(tmp_path):
    """Database with job and result tables but no item catalog."""
    database = Database(
        f"sqlite:///{tmp_path / 'bare.db'}", max_attempts=3, retry_delay=0, engine_options=SQLITE_OPTIONS
    )
    Base.metadata.create_all(
        bind=database.engine,
        tables=[OptimizationJob.__table__, OptimizationResult.__table__],
    )
    yield database
    database.dispose()


@pytest.fixture
def make_items(db):
    """Create catalog items, returning their ids in insertion order."""

    def _make(count, **fields):
        with db.session() as session:
            start = session.query(Item).count()
            items = []
            for i in range(start, start + count):
                values = dict(
                    sku=f"SKU-{i:04d}",
                    name=f"Item {i}",
                    avg_daily_demand=10.0 + i,
                    lead_time_days=7,
                    unit_cost=2.5,
                    order_cost=40.0,
                    safety_stock=3.0,
                    is_active=True,
                )
                values.update(fields)
                items.append(Item(**values))
            session.add_all(items)
            session.flush()
            return [item.id for item in items]

    return _make


@pytest.fixture
def running_job(db):
    """Factory for a job already claimed by a runner."""

    def _make(items_total, horizon_days=90, service_level=0.95):
        with db.session() as session:
            job = OptimizationJob(
                user_id=1,
                horizon_days=horizon_days,
                service_level=service_level,
                status=JobStatus.RUNNING,
                items_total=items_total,
                items_processed=0,
            )
            session.add(job)
            session.flush()
            return job

    return _make


@pytest.fixture
def client_with_db(db):
    """Create a test client with database override."""
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()
