"""Tests for the pipeline executor."""

import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from pydantic import BaseModel

from market_agent_flow.errors import (
    ApprovalTimeoutError,
    ConcurrentResumeError,
    InvalidStateError,
    NotFoundError,
    ResuspensionError,
    StageFailedError,
    ValidationError,
)
from market_agent_flow.executor import APPROVAL_TIMEOUT, PipelineExecutor
from market_agent_flow.instance import PipelineInstance, PipelineStatus
from market_agent_flow.stage import Continue, PipelineDefinition, StageContext, StageSpec, Suspend
from market_agent_flow.store import InMemorySuspensionStore, JsonFileSuspensionStore
from market_agent_flow.workflows.investment import build_investment_workflow


class Clock:
    """Manually advanced clock."""

    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class Input(BaseModel):
    value: int


class Decision(BaseModel):
    ok: bool


def double(ctx: StageContext):
    return Continue({"doubled": ctx.state["value"] * 2})


def gate(ctx: StageContext):
    if ctx.resume_data is None:
        return Suspend("needs a human", {"doubled": ctx.state["doubled"]})
    return Continue({"ok": ctx.resume_data["ok"]})


def finish(ctx: StageContext):
    return Continue({"total": ctx.state["doubled"] + (1 if ctx.state["ok"] else 0)})


def make_pipeline(**overrides) -> PipelineDefinition:
    stages = overrides.pop("stages", None) or [
        StageSpec("double", double, reads=("value",), writes=("doubled",)),
        StageSpec("gate", gate, reads=("doubled",), writes=("ok",), resume_model=Decision),
        StageSpec("finish", finish, reads=("doubled", "ok"), writes=("total",)),
    ]
    return PipelineDefinition(id="test", name="Test", input_model=Input, stages=stages, **overrides)


@pytest.fixture
def store():
    return InMemorySuspensionStore()


@pytest.fixture
def executor(store):
    return PipelineExecutor(store)


class TestStartAndComplete:
    def test_runs_until_suspension(self, executor, store):
        instance = executor.start(make_pipeline(), {"value": 2})
        assert instance.status is PipelineStatus.SUSPENDED
        assert instance.stage_index == 1
        assert instance.suspension.reason == "needs a human"
        assert instance.suspension.payload == {"doubled": 4}
        assert instance.suspension.stage_name == "gate"
        assert store.load(instance.id).status is PipelineStatus.SUSPENDED

    def test_resume_completes(self, executor):
        instance = executor.start(make_pipeline(), {"value": 2})
        done = executor.resume(instance.id, {"ok": True})
        assert done.status is PipelineStatus.COMPLETED
        assert done.result == {"total": 5}
        assert done.state == {"value": 2, "doubled": 4, "ok": True, "total": 5}
        assert done.suspension is None
        assert [(e.stage_name, e.event) for e in done.history] == [
            ("double", "continued"),
            ("gate", "suspended"),
            ("gate", "continued"),
            ("finish", "continued"),
        ]

    def test_pipeline_without_suspension(self, executor):
        definition = make_pipeline(stages=[StageSpec("double", double, reads=("value",), writes=("doubled",))])
        instance = executor.start(definition, {"value": 21})
        assert instance.status is PipelineStatus.COMPLETED
        assert instance.result == {"doubled": 42}

    def test_state_is_append_only_superset(self, executor):
        instance = executor.start(make_pipeline(), {"value": 3})
        assert set(instance.state) >= {"value", "doubled"}
        done = executor.resume(instance.id, {"ok": False})
        assert set(done.state) >= set(instance.state)

    def test_stage_sees_copy_of_state(self, executor):
        def mutate(ctx):
            ctx.state["value"] = 999
            return Continue({"doubled": 0})

        definition = make_pipeline(stages=[StageSpec("mutate", mutate, writes=("doubled",))])
        instance = executor.start(definition, {"value": 1})
        assert instance.state["value"] == 1

    def test_get_and_unknown_id(self, executor):
        instance = executor.start(make_pipeline(), {"value": 1})
        assert executor.get(instance.id).id == instance.id
        with pytest.raises(NotFoundError):
            executor.get("nope")
        with pytest.raises(NotFoundError):
            executor.resume("nope", {"ok": True})

    def test_list_suspended(self, executor):
        a = executor.start(make_pipeline(), {"value": 1})
        b = executor.start(make_pipeline(), {"value": 2})
        executor.resume(b.id, {"ok": True})
        assert [i.id for i in executor.list_suspended()] == [a.id]


class TestValidation:
    def test_invalid_input_raises_before_persisting(self, executor, store):
        with pytest.raises(ValidationError) as exc_info:
            executor.start(make_pipeline(), {"value": "not a number"})
        assert exc_info.value.errors
        assert store.list() == []

    def test_invalid_resume_data_leaves_instance_untouched(self, executor, store):
        instance = executor.start(make_pipeline(), {"value": 1})
        before = store.load(instance.id)
        with pytest.raises(ValidationError):
            executor.resume(instance.id, {"ok": "maybe"})
        after = store.load(instance.id)
        assert after.to_dict() == before.to_dict()

    def test_resume_without_model_accepts_dict(self, executor):
        def wait(ctx):
            if ctx.resume_data is None:
                return Suspend("wait")
            return Continue({"note": ctx.resume_data["note"]})

        definition = make_pipeline(stages=[StageSpec("wait", wait, writes=("note",))])
        instance = executor.start(definition, {"value": 1})
        done = executor.resume(instance.id, {"note": "hi"})
        assert done.result == {"note": "hi"}


class TestInvalidState:
    def test_resume_completed_instance(self, executor, store):
        instance = executor.start(make_pipeline(), {"value": 1})
        executor.resume(instance.id, {"ok": True})
        before = store.load(instance.id).to_dict()
        with pytest.raises(InvalidStateError):
            executor.resume(instance.id, {"ok": True})
        assert store.load(instance.id).to_dict() == before

    def test_resume_running_instance(self, executor, store):
        running = PipelineInstance(
            pipeline_id="test",
            definition_version=1,
            state={"value": 1},
            status=PipelineStatus.RUNNING,
        )
        store.save(running, expected_revision=-1)
        executor.register(make_pipeline())
        before = store.load(running.id).to_dict()

        with pytest.raises(InvalidStateError, match="running"):
            executor.resume(running.id, {"ok": True})
        assert store.load(running.id).to_dict() == before

    def test_resume_failed_instance(self, executor):
        def boom(ctx):
            raise RuntimeError("boom")

        definition = make_pipeline(stages=[StageSpec("boom", boom)])
        with pytest.raises(StageFailedError) as exc_info:
            executor.start(definition, {"value": 1})
        instance_id = exc_info.value.instance_id
        with pytest.raises(InvalidStateError, match="failed"):
            executor.resume(instance_id, {"ok": True})
        assert executor.list_suspended() == []

    def test_resume_with_changed_definition_version(self, store):
        instance = PipelineExecutor(store).start(make_pipeline(), {"value": 1})
        newer = PipelineExecutor(store, [make_pipeline(version=2)])
        with pytest.raises(InvalidStateError, match="version"):
            newer.resume(instance.id, {"ok": True})
        assert store.load(instance.id).status is PipelineStatus.SUSPENDED

    def test_resume_unregistered_pipeline(self, store):
        instance = PipelineExecutor(store).start(make_pipeline(), {"value": 1})
        with pytest.raises(NotFoundError):
            PipelineExecutor(store).resume(instance.id, {"ok": True})


class TestStageContract:
    def test_stage_exception_marks_failed(self, executor, store):
        def boom(ctx):
            raise RuntimeError("upstream down")

        definition = make_pipeline(stages=[
            StageSpec("double", double, reads=("value",), writes=("doubled",)),
            StageSpec("boom", boom),
        ])
        with pytest.raises(StageFailedError) as exc_info:
            executor.start(definition, {"value": 1})
        assert exc_info.value.stage_name == "boom"
        assert isinstance(exc_info.value.__cause__, RuntimeError)

        [stored] = store.list()
        assert stored.status is PipelineStatus.FAILED
        assert stored.error == "upstream down"
        assert stored.history[-1].event == "failed"
        assert stored.state["doubled"] == 2

    def test_resuspension_fails_instance(self, executor, store):
        def stubborn(ctx):
            return Suspend("still waiting")

        definition = make_pipeline(stages=[StageSpec("stubborn", stubborn)])
        instance = executor.start(definition, {"value": 1})
        with pytest.raises(StageFailedError) as exc_info:
            executor.resume(instance.id, {})
        assert isinstance(exc_info.value.__cause__, ResuspensionError)
        assert "re-suspension not permitted" in store.load(instance.id).error
        assert store.load(instance.id).status is PipelineStatus.FAILED

    def test_undeclared_write_fails(self, executor, store):
        def sneaky(ctx):
            return Continue({"doubled": 1, "secret": True})

        definition = make_pipeline(stages=[StageSpec("sneaky", sneaky, writes=("doubled",))])
        with pytest.raises(StageFailedError, match="secret"):
            executor.start(definition, {"value": 1})
        [stored] = store.list()
        assert "secret" not in stored.state

    def test_unserializable_update_fails_on_file_store(self, tmp_path):
        def priced(ctx):
            return Continue({"price": Decimal("1.5")})

        store = JsonFileSuspensionStore(tmp_path)
        executor = PipelineExecutor(store)
        definition = make_pipeline(stages=[
            StageSpec("priced", priced, writes=("price",)),
            StageSpec("finish", lambda ctx: Continue()),
        ])
        with pytest.raises(StageFailedError, match="JSON-serializable") as exc_info:
            executor.start(definition, {"value": 1})

        stored = store.load(exc_info.value.instance_id)
        assert stored.status is PipelineStatus.FAILED
        assert stored.stage_index == 0
        assert "price" not in stored.state
        assert stored.history[-1].event == "failed"
        assert executor.list_suspended() == []

    def test_unserializable_suspension_payload_fails(self, executor, store):
        def ask(ctx):
            return Suspend("approve", {"requested_at": datetime(2024, 1, 1)})

        definition = make_pipeline(stages=[StageSpec("ask", ask)])
        with pytest.raises(StageFailedError, match="JSON-serializable"):
            executor.start(definition, {"value": 1})
        [stored] = store.list()
        assert stored.status is PipelineStatus.FAILED
        assert stored.suspension is None

    def test_save_error_marks_failed_without_partial_state(self, store):
        class DiskFullStore:
            """Fails the first save after the instance has been created."""

            def __init__(self, inner):
                self.inner = inner
                self.saves = 0

            def save(self, instance, expected_revision=None):
                self.saves += 1
                if self.saves == 2:
                    raise OSError("disk full")
                self.inner.save(instance, expected_revision)

            def load(self, instance_id):
                return self.inner.load(instance_id)

            def list(self, status=None):
                return self.inner.list(status)

        executor = PipelineExecutor(DiskFullStore(store))
        with pytest.raises(StageFailedError, match="disk full") as exc_info:
            executor.start(make_pipeline(), {"value": 1})
        assert isinstance(exc_info.value.__cause__, OSError)

        stored = store.load(exc_info.value.instance_id)
        assert stored.status is PipelineStatus.FAILED
        assert stored.stage_index == 0
        assert "doubled" not in stored.state
        assert [e.event for e in stored.history] == ["failed"]

    def test_missing_read_fails(self, executor):
        def needs(ctx):
            return Continue()

        definition = make_pipeline(stages=[StageSpec("needs", needs, reads=("absent",))])
        with pytest.raises(StageFailedError, match="absent"):
            executor.start(definition, {"value": 1})

    def test_wrong_return_type_fails(self, executor):
        definition = make_pipeline(stages=[StageSpec("bad", lambda ctx: {"doubled": 1})])
        with pytest.raises(StageFailedError, match="expected Continue or Suspend"):
            executor.start(definition, {"value": 1})

    def test_definition_requires_unique_stages(self):
        with pytest.raises(ValueError):
            make_pipeline(stages=[StageSpec("a", double), StageSpec("a", double)])


class TestConcurrentResume:
    def test_same_executor_rejects_parallel_resume(self, store):
        entered = threading.Event()
        release = threading.Event()

        def slow_gate(ctx):
            if ctx.resume_data is None:
                return Suspend("wait")
            entered.set()
            release.wait(timeout=5)
            return Continue({"ok": True})

        definition = make_pipeline(stages=[StageSpec("gate", slow_gate, writes=("ok",))])
        executor = PipelineExecutor(store)
        instance = executor.start(definition, {"value": 1})

        results = []
        worker = threading.Thread(target=lambda: results.append(executor.resume(instance.id, {})))
        worker.start()
        assert entered.wait(timeout=5)
        try:
            with pytest.raises(ConcurrentResumeError):
                executor.resume(instance.id, {})
        finally:
            release.set()
            worker.join(timeout=5)

        assert results[0].status is PipelineStatus.COMPLETED
        assert [e.event for e in store.load(instance.id).history].count("continued") == 1

    def test_resume_guard_released_for_unknown_ids(self, executor):
        for n in range(1000):
            with pytest.raises(NotFoundError):
                executor.resume(f"missing-{n}", {})
        assert executor._resuming == set()

    def test_resume_guard_released_after_completion_and_failure(self, executor):
        done = executor.start(make_pipeline(), {"value": 1})
        executor.resume(done.id, {"ok": True})
        with pytest.raises(InvalidStateError):
            executor.resume(done.id, {"ok": True})
        assert executor._resuming == set()

    def test_two_executors_exactly_one_wins(self, store):
        barrier = threading.Barrier(2)

        class SyncedStore:
            """Makes both resumes load the same snapshot before either claims it."""

            def __init__(self, inner):
                self.inner = inner

            def save(self, instance, expected_revision=None):
                self.inner.save(instance, expected_revision)

            def load(self, instance_id):
                loaded = self.inner.load(instance_id)
                if loaded.status is PipelineStatus.SUSPENDED:
                    barrier.wait(timeout=5)
                return loaded

            def list(self, status=None):
                return self.inner.list(status)

        definition = make_pipeline()
        instance = PipelineExecutor(store).start(definition, {"value": 1})
        synced = SyncedStore(store)
        executors = [PipelineExecutor(synced, [definition]) for _ in range(2)]

        outcomes = []

        def run(ex, ok):
            try:
                outcomes.append(ex.resume(instance.id, {"ok": ok}))
            except ConcurrentResumeError as e:
                outcomes.append(e)

        threads = [threading.Thread(target=run, args=(ex, ok)) for ex, ok in zip(executors, (True, False))]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        errors = [o for o in outcomes if isinstance(o, ConcurrentResumeError)]
        wins = [o for o in outcomes if not isinstance(o, ConcurrentResumeError)]
        assert len(errors) == 1
        assert len(wins) == 1

        stored = store.load(instance.id)
        assert stored.status is PipelineStatus.COMPLETED
        assert stored.state["ok"] is wins[0].state["ok"]
        assert [e.stage_name for e in stored.history].count("finish") == 1


class TestSuspensionTimeout:
    def test_resume_after_timeout(self, store):
        clock = Clock()
        executor = PipelineExecutor(store, max_suspension=timedelta(hours=1), clock=clock)
        instance = executor.start(make_pipeline(), {"value": 1})

        clock.advance(hours=2)
        with pytest.raises(ApprovalTimeoutError):
            executor.resume(instance.id, {"ok": True})

        stored = store.load(instance.id)
        assert stored.status is PipelineStatus.FAILED
        assert stored.error == APPROVAL_TIMEOUT

    def test_resume_within_window(self, store):
        clock = Clock()
        executor = PipelineExecutor(store, max_suspension=timedelta(hours=1), clock=clock)
        instance = executor.start(make_pipeline(), {"value": 1})
        clock.advance(minutes=30)
        assert executor.resume(instance.id, {"ok": True}).status is PipelineStatus.COMPLETED

    def test_expire_stale(self, store):
        clock = Clock()
        executor = PipelineExecutor(store, max_suspension=timedelta(hours=1), clock=clock)
        old = executor.start(make_pipeline(), {"value": 1})
        clock.advance(hours=2)
        fresh = executor.start(make_pipeline(), {"value": 2})

        expired = executor.expire_stale()
        assert [i.id for i in expired] == [old.id]
        assert store.load(old.id).error == APPROVAL_TIMEOUT
        assert store.load(fresh.id).status is PipelineStatus.SUSPENDED

    def test_no_timeout_configured(self, store):
        clock = Clock()
        executor = PipelineExecutor(store, clock=clock)
        executor.start(make_pipeline(), {"value": 1})
        clock.advance(days=365)
        assert executor.expire_stale() == []


class TestInvestmentScenarios:
    def test_director_approval_round_trip(self, executor, store):
        instance = executor.start(build_investment_workflow(), {"symbol": "NVDA", "amount": 500000})
        assert instance.is_suspended
        assert instance.suspension.payload["approver_tier"] == "director"
        assert instance.suspension.payload["risk_level"] == "high"

        done = executor.resume(
            instance.id, {"approved": True, "approverId": "D1", "adjustedAmount": 400000}
        )
        assert done.status is PipelineStatus.COMPLETED
        assert done.result["status"] == "approved"
        assert done.result["approved_by"] == "D1"
        assert done.result["final_amount"] == 400000

    def test_auto_approval(self, executor):
        done = executor.start(build_investment_workflow(), {"symbol": "AAPL", "amount": 5000})
        assert done.status is PipelineStatus.COMPLETED
        assert done.result["status"] == "approved"
        assert done.result["approved_by"] == "system"
        assert done.result["final_amount"] == 5000
        assert done.result["risk_level"] == "low"

    def test_rejection(self, executor):
        instance = executor.start(build_investment_workflow(), {"symbol": "TSLA", "amount": 50000})
        assert instance.suspension.payload["approver_tier"] == "analyst"
        done = executor.resume(instance.id, {"approved": False, "approver_id": "A7"})
        assert done.result["status"] == "rejected"
        assert done.result["final_amount"] == 50000

    def test_missing_approver_is_validation_error(self, executor):
        instance = executor.start(build_investment_workflow(), {"symbol": "TSLA", "amount": 50000})
        with pytest.raises(ValidationError):
            executor.resume(instance.id, {"approved": True})
        assert executor.get(instance.id).is_suspended
