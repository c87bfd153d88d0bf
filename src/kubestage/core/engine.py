#!/usr/bin/env python3
"""
KUBESTAGE ENGINE - The Reconcile Driver
---------------------------------------
Fetches the managed instance, binds it to that instance's own stepper and
steps through the stages until convergence or the first blocker.

Two pieces of state live here:
  * StageCatalog: the filesystem-derived stages, built lazily once and
    shared read-only by every reconciliation in the process.
  * The stepper registry: one ReadinessStepper per managed instance
    identity, so concurrent reconciles of different instances never share
    a cursor.

Author: KubeStage Team
Date: 2026-10-18
"""

import logging
import threading
from typing import Dict, List, Optional, Sequence, Tuple

from kubestage.cluster.client import ClusterClient, NotFoundError
from kubestage.core.config import EngineConfig
from kubestage.core.errors import DecodeError, NotReadyError, ReconcileCancelled
from kubestage.core.models import CancelToken, ReconcileContext, ReconcileResult, RequestIdentity, Stage
from kubestage.stages.builder import StageBuilder
from kubestage.stages.stepper import ReadinessStepper

logger = logging.getLogger("kubestage.engine")


class StageCatalog:
    """
    Builds the configured stages on first use and caches them for the life
    of the process. Manifest directories are assumed immutable once loaded.
    A failed build caches nothing, so the next call scans again.
    """

    def __init__(self, stage_dirs: Sequence[Tuple[str, str]], builder: Optional[StageBuilder] = None):
        self.stage_dirs = list(stage_dirs)
        self.builder = builder or StageBuilder()
        self._stages: Optional[Tuple[Stage, ...]] = None
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: EngineConfig) -> "StageCatalog":
        return cls(config.stage_dirs())

    @property
    def loaded(self) -> bool:
        return self._stages is not None

    def stages(self) -> Tuple[Stage, ...]:
        if self._stages is not None:
            return self._stages
        with self._lock:
            if self._stages is None:
                built: List[Stage] = [self.builder.build(path, name) for name, path in self.stage_dirs]
                self._stages = tuple(built)
                logger.info(f"Stage catalog ready: {[s.name for s in self._stages]}")
        return self._stages


class Reconciler:
    """
    Entry point called by the surrounding dispatcher for each request.
    Never raises for recoverable conditions: the outcome is reported as a
    ReconcileResult carrying the requeue decision and the error, if any.
    """

    def __init__(self, client: ClusterClient, catalog: StageCatalog,
                 instance_kind: str = "NodeFeatureDiscovery",
                 timeout_seconds: Optional[float] = None):
        self.client = client
        self.catalog = catalog
        self.instance_kind = instance_kind
        self.timeout_seconds = timeout_seconds
        self._steppers: Dict[RequestIdentity, ReadinessStepper] = {}
        self._registry_lock = threading.Lock()

    @classmethod
    def from_config(cls, client: ClusterClient, config: EngineConfig) -> "Reconciler":
        return cls(client, StageCatalog.from_config(config),
                   instance_kind=config.instance_kind,
                   timeout_seconds=config.timeout_seconds)

    def stepper_for(self, identity: RequestIdentity) -> ReadinessStepper:
        with self._registry_lock:
            stepper = self._steppers.get(identity)
            if stepper is None:
                stepper = ReadinessStepper(identity)
                self._steppers[identity] = stepper
            return stepper

    def forget(self, identity: RequestIdentity):
        with self._registry_lock:
            self._steppers.pop(identity, None)

    def tracked(self) -> List[RequestIdentity]:
        with self._registry_lock:
            return list(self._steppers)

    def reconcile(self, identity: RequestIdentity, cancel: Optional[CancelToken] = None) -> ReconcileResult:
        cancel = cancel or CancelToken.with_timeout(self.timeout_seconds)
        logger.info(f"[{identity}] Fetch the {self.instance_kind} instance")

        try:
            cancel.raise_if_cancelled("instance fetch")
            instance = self.client.get(self.instance_kind, identity.name, identity.namespace)
        except NotFoundError:
            logger.info(f"[{identity}] resource has been deleted, nothing to do")
            self.forget(identity)
            return ReconcileResult(requeue=False)
        except ReconcileCancelled as e:
            logger.info(f"[{identity}] {e}")
            return ReconcileResult(requeue=True, error=e)
        except Exception as e:
            logger.warning(f"[{identity}] requeueing since there was an error reading the object: {e}")
            return ReconcileResult(requeue=True, error=e)

        try:
            stages = self.catalog.stages()
        except DecodeError as e:
            logger.error(f"[{identity}] unable to load manifests: {e}")
            return ReconcileResult(requeue=True, error=e)

        stepper = self.stepper_for(identity)
        with stepper.lock:
            logger.info(f"[{identity}] Ready to apply components")
            stepper.initialize(instance, stages)
            ctx = ReconcileContext(client=self.client, instance=instance, cancel=cancel)
            try:
                stepper.run(ctx)
            except (NotReadyError, ReconcileCancelled) as e:
                logger.info(f"[{identity}] {e}; requeueing")
                return ReconcileResult(requeue=True, error=e)
            except Exception as e:
                logger.error(f"[{identity}] readiness check failed in stage "
                             f"'{stepper.current_stage.name if stepper.current_stage else '?'}': {e}")
                return ReconcileResult(requeue=True, error=e)

        logger.info(f"[{identity}] all {len(stages)} stages converged")
        return ReconcileResult(requeue=False)
