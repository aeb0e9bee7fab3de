import random

import pytest

from gateway.errors import Transient
from gateway.models import ConfigKind
from gateway.pipeline import DispatchPipeline
from gateway.simulator import DispatchSimulator
from gateway.store import EventLog, InMemoryConfigStore


def _rule_fields(name: str, pattern: str, is_active: bool = True) -> dict:
    return {
        "name": name,
        "pattern": pattern,
        "target_url": f"https://downstream.example.com/{name.lower()}",
        "is_active": is_active,
    }


@pytest.fixture
def store(clock) -> InMemoryConfigStore:
    return InMemoryConfigStore(clock=clock, rng=random.Random(3))


@pytest.fixture
def pipeline(store) -> DispatchPipeline:
    simulator = DispatchSimulator(random.Random(8), success_rate=1.0)
    return DispatchPipeline(store, EventLog(), simulator)


@pytest.mark.asyncio
async def test_webhook_request_is_dispatched_to_matching_rule(pipeline, store, make_request):
    rule = store.seed(ConfigKind.DISPATCH, _rule_fields("CRM", ".*webhook.*"), protected=True)
    request = make_request(url="/webhook/hubspot/5")

    dispatch = await pipeline.ingest(request)

    assert dispatch is not None
    assert dispatch.status == "SUCCESS"
    assert dispatch.status_code == 200
    assert dispatch.retry_attempts == 0
    assert dispatch.rule_id == rule.id
    assert dispatch.rule_name == "CRM"
    assert pipeline.events.ingest_requests() == [request]
    assert pipeline.events.dispatch_logs() == [dispatch]
    assert pipeline.events.dispatch_for(request.id) == dispatch


@pytest.mark.asyncio
async def test_unmatched_request_is_recorded_without_dispatch(pipeline, store, make_request):
    store.seed(ConfigKind.DISPATCH, _rule_fields("CRM", ".*webhook.*"))
    request = make_request(url="/orders/1")

    assert await pipeline.ingest(request) is None
    assert pipeline.events.ingest_requests() == [request]
    assert pipeline.events.dispatch_logs() == []


@pytest.mark.asyncio
async def test_rule_changes_apply_to_later_requests(pipeline, store, make_request):
    rule = store.seed(ConfigKind.DISPATCH, _rule_fields("CRM", ".*webhook.*"))
    await store.update(ConfigKind.DISPATCH, rule.id, {"is_active": False})

    assert await pipeline.ingest(make_request(url="/webhook/1")) is None


@pytest.mark.asyncio
async def test_store_outage_records_nothing(clock, make_request):
    store = InMemoryConfigStore(clock=clock, rng=random.Random(3), failure_rate=1.0)
    pipeline = DispatchPipeline(store, EventLog(), DispatchSimulator(random.Random(1)))

    with pytest.raises(Transient):
        await pipeline.ingest(make_request(url="/webhook/1"))
    assert pipeline.events.ingest_requests() == []


@pytest.mark.asyncio
async def test_invalid_patterns_are_collected_as_diagnostics(pipeline, store, make_request):
    store.seed(ConfigKind.DISPATCH, _rule_fields("Broken", "(["))
    store.seed(ConfigKind.DISPATCH, _rule_fields("Catch all", ".*"))

    dispatch = await pipeline.ingest(make_request(url="/orders/1"))

    assert dispatch.rule_name == "Catch all"
    assert [error.rule_name for error in pipeline.diagnostics()] == ["Broken"]


def test_backfill_dispatches_matching_requests_only(pipeline, make_request, make_rule):
    rules = [make_rule(".*webhook.*"), make_rule(".*analytics.*", is_active=False)]
    requests = [
        make_request(url="https://api.example.com/v1/webhook/hubspot/1"),
        make_request(url="https://api.example.com/v1/analytics/2"),
        make_request(url="https://api.example.com/v1/webhook/hubspot/3"),
    ]

    dispatches = pipeline.backfill(requests, rules)

    assert [d.ingest_request_id for d in dispatches] == [requests[0].id, requests[2].id]
    assert len(pipeline.events.ingest_requests()) == 3


def test_diagnostics_buffer_is_bounded(store, make_request, make_rule):
    pipeline = DispatchPipeline(
        store, EventLog(), DispatchSimulator(random.Random(1)), diagnostics_buffer=2
    )
    rules = [make_rule("(["), make_rule("*oops"), make_rule("a{2,1}")]
    pipeline.backfill([make_request()], rules)
    assert [error.rule_id for error in pipeline.diagnostics()] == ["rule-2", "rule-3"]


def test_repeated_pattern_errors_keep_one_entry_per_rule(store, make_request, make_rule):
    pipeline = DispatchPipeline(
        store, EventLog(), DispatchSimulator(random.Random(1)), diagnostics_buffer=2
    )
    broken = make_rule("([")
    other = make_rule("*oops")

    pipeline.backfill([make_request()], [other, broken])
    # the same broken rule failing on every request must not push others out
    pipeline.backfill([make_request() for _ in range(5)], [broken])

    assert [error.rule_id for error in pipeline.diagnostics()] == [other.id, broken.id]


def test_edited_pattern_is_reported_separately(store, make_request, make_rule):
    pipeline = DispatchPipeline(store, EventLog(), DispatchSimulator(random.Random(1)))
    broken = make_rule("([")
    pipeline.backfill([make_request()], [broken])
    pipeline.backfill([make_request()], [broken.model_copy(update={"pattern": "*x"})])

    assert [error.pattern for error in pipeline.diagnostics()] == ["([", "*x"]
