import pytest

from kubestage.core.errors import NotReadyError, ReconcileCancelled, StepperError
from kubestage.core.models import ReadinessStatus, ResourceBundle, Stage
from kubestage.stages.stepper import ReadinessStepper, StepperPhase


class Recorder:
    """Control function factory that records call order."""

    def __init__(self):
        self.calls = []

    def control(self, label, status=ReadinessStatus.READY, error=None):
        def fn(ctx, bundle):
            self.calls.append(label)
            if error is not None:
                raise error
            return status
        fn.__name__ = label
        return fn


def _stage(name, *controls):
    return Stage(name=name, path=f"/assets/{name}", bundle=ResourceBundle(), controls=tuple(controls))


def test_two_ready_stages_converge(ctx, instance):
    rec = Recorder()
    stages = [
        _stage("master", *(rec.control(f"m{i}") for i in range(3))),
        _stage("worker", *(rec.control(f"w{i}") for i in range(3))),
    ]
    stepper = ReadinessStepper("ns/nfd")
    stepper.initialize(instance, stages)
    assert stepper.phase is StepperPhase.STEPPING

    stepper.step(ctx)
    assert stepper.cursor == 1
    assert not stepper.is_converged()

    stepper.step(ctx)
    assert stepper.cursor == 2
    assert stepper.is_converged()
    assert stepper.phase is StepperPhase.CONVERGED
    assert rec.calls == ["m0", "m1", "m2", "w0", "w1", "w2"]


def test_not_ready_short_circuits_stage(ctx, instance):
    rec = Recorder()
    stages = [_stage("master", rec.control("a"), rec.control("b", ReadinessStatus.NOT_READY), rec.control("c"))]
    stepper = ReadinessStepper()
    stepper.initialize(instance, stages)

    with pytest.raises(NotReadyError) as exc:
        stepper.step(ctx)

    assert rec.calls == ["a", "b"]
    assert exc.value.stage == "master"
    assert stepper.cursor == 0
    assert stepper.phase is StepperPhase.BLOCKED
    assert not stepper.is_converged()


def test_control_error_propagates_unchanged(ctx, instance):
    rec = Recorder()
    boom = RuntimeError("apiserver hiccup")
    stages = [_stage("master", rec.control("a", error=boom), rec.control("b"))]
    stepper = ReadinessStepper()
    stepper.initialize(instance, stages)

    with pytest.raises(RuntimeError) as exc:
        stepper.step(ctx)

    assert exc.value is boom
    assert stepper.last_error is boom
    assert rec.calls == ["a"]
    assert stepper.cursor == 0


def test_cursor_never_moves_back_within_a_pass(ctx, instance):
    flaky = {"ready": False}

    def gate(ctx, bundle):
        return ReadinessStatus.READY if flaky["ready"] else ReadinessStatus.NOT_READY

    stages = [_stage("one", lambda c, b: ReadinessStatus.READY), _stage("two", gate), _stage("three")]
    stepper = ReadinessStepper()
    stepper.initialize(instance, stages)

    seen = [stepper.cursor]
    stepper.step(ctx)
    seen.append(stepper.cursor)
    with pytest.raises(NotReadyError):
        stepper.step(ctx)
    seen.append(stepper.cursor)

    flaky["ready"] = True
    stepper.step(ctx)
    seen.append(stepper.cursor)
    stepper.step(ctx)
    seen.append(stepper.cursor)

    assert seen == [0, 1, 1, 2, 3]
    assert stepper.is_converged()


def test_initialize_rewinds_cursor_and_keeps_stages(ctx, instance):
    first = [_stage("master", lambda c, b: ReadinessStatus.READY)]
    stepper = ReadinessStepper()
    stepper.initialize(instance, first)
    stepper.run(ctx)
    assert stepper.is_converged()

    stepper.initialize(instance, [_stage("other"), _stage("another")])
    assert stepper.cursor == 0
    assert stepper.stages == tuple(first)
    assert not stepper.is_converged()


def test_no_stages_is_converged_immediately(instance):
    stepper = ReadinessStepper()
    stepper.initialize(instance, [])
    assert stepper.is_converged()


def test_misuse_raises(ctx, instance):
    stepper = ReadinessStepper()
    assert stepper.phase is StepperPhase.IDLE
    assert not stepper.is_converged()
    with pytest.raises(StepperError):
        stepper.step(ctx)

    stepper.initialize(instance, [_stage("empty")])
    stepper.step(ctx)
    with pytest.raises(StepperError):
        stepper.step(ctx)


def test_cancellation_checked_before_each_control(ctx, instance):
    rec = Recorder()

    def cancelling(c, b):
        rec.calls.append("cancel")
        c.cancel.cancel()
        return ReadinessStatus.READY

    stages = [_stage("master", rec.control("a"), cancelling, rec.control("never"))]
    stepper = ReadinessStepper()
    stepper.initialize(instance, stages)

    with pytest.raises(ReconcileCancelled):
        stepper.step(ctx)
    assert rec.calls == ["a", "cancel"]
    assert stepper.phase is StepperPhase.BLOCKED
