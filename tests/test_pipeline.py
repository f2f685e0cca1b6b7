"""Tests for the optimization pipeline."""

import json

import pytest

from invopt.models import Item, JobStatus, OptimizationResult
from invopt.services import job_service
from invopt.services.job_service import InvalidJobStateError
from invopt.services.pipeline import NO_ITEMS_MESSAGE, OptimizationPipeline

from tests.conftest import FakeOptimizer, failing_on


def saved_rows(db, job_id):
    return [row.to_dict() for row in job_service.get_job_results(db, job_id)]


@pytest.fixture
def pipeline_for(db):
    def _make(responder=None, **options):
        return OptimizationPipeline(db, FakeOptimizer(responder), **options)

    return _make


def test_round_trip(db, make_items, running_job, pipeline_for):
    first, second = make_items(2)
    job = running_job(items_total=2)

    def responder(payload, call):
        return [
            {"item_id": first, "eoq": 120, "reorder_point": 40, "safety_stock": 10},
            {"item_id": second, "eoq": 80, "reorder_point": 25, "safety_stock": 5},
        ]

    pipeline = pipeline_for(responder)
    outcome = pipeline.execute(job)

    assert outcome.status == JobStatus.COMPLETE
    stored = job_service.get_job(db, job.id)
    assert stored.status == JobStatus.COMPLETE
    assert stored.items_processed == 2
    assert stored.progress_percent == 100
    assert saved_rows(db, job.id) == [
        {"item_id": first, "eoq": 120.0, "reorder_point": 40.0, "safety_stock": 10.0},
        {"item_id": second, "eoq": 80.0, "reorder_point": 25.0, "safety_stock": 5.0},
    ]
    assert json.loads(stored.results) == saved_rows(db, job.id)

    payload = pipeline.client.payloads[0]
    assert payload["job_id"] == job.id
    assert payload["horizon_days"] == 90
    assert payload["service_level"] == 0.95
    assert [item["item_id"] for item in payload["items"]] == [first, second]


def test_figures_written_back_to_catalog(db, make_items, running_job, pipeline_for):
    item_id = make_items(1)[0]
    job = running_job(items_total=1)

    outcome = pipeline_for().execute(job)

    assert outcome.batches[0].catalog_update.updated == 1
    with db.session() as session:
        item = session.get(Item, item_id)
        assert (item.eoq, item.reorder_point, item.safety_stock) == (100.0, 20.0, 5.0)


def test_partial_batch_failure(db, make_items, running_job, pipeline_for):
    ids = make_items(6)
    job = running_job(items_total=6)

    outcome = pipeline_for(failing_on(2), batch_size=2).execute(job)

    assert outcome.status == JobStatus.COMPLETE
    assert outcome.batches_succeeded == 2
    assert outcome.batches_failed == 1
    assert "HTTP 500" in outcome.batches[1].error
    stored = job_service.get_job(db, job.id)
    assert stored.items_processed == 4
    assert stored.progress_percent == 66
    assert [row["item_id"] for row in saved_rows(db, job.id)] == ids[:2] + ids[4:]


def test_all_batches_fail(db, make_items, running_job, pipeline_for):
    make_items(4)
    job = running_job(items_total=4)

    outcome = pipeline_for(failing_on(1, 2), batch_size=2).execute(job)

    assert outcome.status == JobStatus.FAILED
    stored = job_service.get_job(db, job.id)
    assert stored.status == JobStatus.FAILED
    assert stored.items_processed == 0
    assert stored.error_message.startswith("All 2 batch(es) failed. Last error: HTTP 500")
    assert saved_rows(db, job.id) == []


def test_no_items(db, running_job, pipeline_for):
    job = running_job(items_total=0)

    pipeline = pipeline_for()
    outcome = pipeline.execute(job)

    assert outcome.status == JobStatus.FAILED
    assert job_service.get_job(db, job.id).error_message == NO_ITEMS_MESSAGE
    assert pipeline.client.payloads == []


def test_rows_without_item_id_fail_the_batch(db, make_items, running_job, pipeline_for):
    make_items(1)
    job = running_job(items_total=1)

    outcome = pipeline_for(lambda payload, call: [{"eoq": 5, "reorder_point": 1}]).execute(job)

    assert outcome.status == JobStatus.FAILED
    assert "no usable rows" in job_service.get_job(db, job.id).error_message
    assert saved_rows(db, job.id) == []


def test_duplicate_rows_keep_first(db, make_items, running_job, pipeline_for):
    first, second = make_items(2)
    job = running_job(items_total=2)

    def responder(payload, call):
        return {"results": [
            {"id": first, "EOQ": 11, "ROP": 2, "SS": 1},
            {"id": first, "EOQ": 99, "ROP": 9, "SS": 9},
        ]}

    outcome = pipeline_for(responder).execute(job)

    assert outcome.status == JobStatus.COMPLETE
    assert saved_rows(db, job.id) == [
        {"item_id": first, "eoq": 11.0, "reorder_point": 2.0, "safety_stock": 1.0}
    ]
    assert job_service.get_job(db, job.id).items_processed == 1


def test_rows_for_other_items_are_dropped(db, make_items, running_job, pipeline_for):
    item_id = make_items(1)[0]
    job = running_job(items_total=1)

    def responder(payload, call):
        return [{"item_id": item_id, "eoq": 3}, {"item_id": item_id + 500, "eoq": 4}]

    pipeline_for(responder).execute(job)

    assert [row["item_id"] for row in saved_rows(db, job.id)] == [item_id]
    assert job_service.get_job(db, job.id).items_processed == 1


def test_persistence_failure_rolls_back_batch(db, make_items, running_job, pipeline_for):
    ids = make_items(4)
    job = running_job(items_total=4)
    with db.session() as session:
        session.add(OptimizationResult(job_id=job.id, item_id=ids[1], eoq=1.0))

    outcome = pipeline_for(batch_size=2).execute(job)

    assert outcome.status == JobStatus.COMPLETE
    assert outcome.batches[0].error == "Failed to save results"
    # the conflicting batch saved nothing; only the pre-existing row remains for it
    assert [row["item_id"] for row in saved_rows(db, job.id)] == [ids[1], ids[2], ids[3]]
    assert job_service.get_job(db, job.id).items_processed == 2


def test_catalog_growth_raises_total(db, make_items, running_job, pipeline_for):
    make_items(3)
    job = running_job(items_total=2)

    outcome = pipeline_for().execute(job)

    assert outcome.status == JobStatus.COMPLETE
    stored = job_service.get_job(db, job.id)
    assert stored.items_total == 3
    assert stored.items_processed == 3


def test_snapshot_is_capped(db, make_items, running_job, pipeline_for):
    make_items(3)
    job = running_job(items_total=3)

    pipeline_for(snapshot_limit=2).execute(job)

    stored = job_service.get_job(db, job.id)
    assert len(json.loads(stored.results)) == 2
    assert len(saved_rows(db, job.id)) == 3


def test_parameters_outside_range_are_not_sent(db, make_items, running_job, pipeline_for):
    make_items(1)
    job = running_job(items_total=1, horizon_days=0, service_level=1.0)

    pipeline = pipeline_for()
    pipeline.execute(job)

    assert "horizon_days" not in pipeline.client.payloads[0]
    assert "service_level" not in pipeline.client.payloads[0]


def test_requires_running_job(db, make_items, pipeline_for):
    make_items(1)
    job = job_service.create_job(db, 1, 90, 0.95)

    with pytest.raises(InvalidJobStateError):
        pipeline_for().execute(job)

    assert job_service.get_job(db, job.id).status == JobStatus.PENDING
