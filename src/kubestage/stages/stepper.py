#!/usr/bin/env python3
"""
KUBESTAGE READINESS STEPPER
---------------------------
Per-instance state machine that walks the stages in order.

    IDLE --initialize--> STEPPING --step (last stage ok)--> CONVERGED
                             |
                             +--step (not ready / error)--> BLOCKED

A BLOCKED stepper recovers through initialize() on the next reconcile,
which rewinds the cursor to 0 but keeps the already-built stages.

Author: KubeStage Team
Date: 2026-10-18
"""

import enum
import logging
import threading
from typing import Any, Dict, Optional, Sequence, Tuple

from kubestage.core.errors import NotReadyError, StepperError
from kubestage.core.models import ReadinessStatus, ReconcileContext, Stage

logger = logging.getLogger("kubestage.stepper")


class StepperPhase(enum.Enum):
    IDLE = "Idle"
    STEPPING = "Stepping"
    CONVERGED = "Converged"
    BLOCKED = "Blocked"


class ReadinessStepper:
    """
    Holds the cursor and the bound instance for ONE managed instance.
    The stage tuple itself is shared, read-only, with every other stepper.
    """

    def __init__(self, identity: Any = None):
        self.identity = identity
        self.stages: Tuple[Stage, ...] = ()
        self.instance: Optional[Dict[str, Any]] = None
        self.cursor = 0
        self.phase = StepperPhase.IDLE
        self.last_error: Optional[Exception] = None
        # Serializes overlapping reconciles of the same instance
        self.lock = threading.RLock()

    def initialize(self, instance: Dict[str, Any], stages: Sequence[Stage]):
        self.instance = instance
        if not self.stages:
            self.stages = tuple(stages)
        self.cursor = 0
        self.last_error = None
        self.phase = StepperPhase.CONVERGED if not self.stages else StepperPhase.STEPPING

    @property
    def current_stage(self) -> Optional[Stage]:
        if self.cursor < len(self.stages):
            return self.stages[self.cursor]
        return None

    def is_converged(self) -> bool:
        return self.phase is not StepperPhase.IDLE and self.cursor == len(self.stages)

    def step(self, ctx: ReconcileContext):
        """
        Runs every control of the current stage in order and advances the
        cursor when all of them report READY.

        Raises:
            NotReadyError: a control answered NOT_READY (retryable).
            ReconcileCancelled: the context's cancel token fired.
            Exception: whatever a control raised, unchanged.
        """
        if self.phase is StepperPhase.IDLE:
            raise StepperError("step() called before initialize()")
        stage = self.current_stage
        if stage is None:
            raise StepperError("step() called on a converged stepper")

        for idx, control in enumerate(stage.controls):
            kind, name = stage.entries[idx] if idx < len(stage.entries) else (getattr(control, "__name__", "control"), None)
            try:
                ctx.cancel.raise_if_cancelled(f"{kind}/{name}")
                status = control(ctx, stage.bundle)
            except Exception as e:
                self._block(e)
                raise
            if status is not ReadinessStatus.READY:
                err = NotReadyError(stage.name, kind, name)
                self._block(err)
                raise err

        self.cursor += 1
        self.phase = StepperPhase.CONVERGED if self.cursor == len(self.stages) else StepperPhase.STEPPING
        logger.debug(f"[{self.identity}] stage '{stage.name}' ready ({self.cursor}/{len(self.stages)})")

    def run(self, ctx: ReconcileContext):
        """Steps until converged; the first failure propagates."""
        while not self.is_converged():
            self.step(ctx)

    def _block(self, err: Exception):
        self.phase = StepperPhase.BLOCKED
        self.last_error = err
