#!/usr/bin/env python3
"""
KUBESTAGE CORE MODELS
---------------------
Defines the typed resources, the per-stage ResourceBundle and the value
objects that flow between the builder, the stepper and the reconciler.

Author: KubeStage Team
Date: 2026-10-18
"""

import enum
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from kubestage.core.errors import ReconcileCancelled


class ReadinessStatus(enum.Enum):
    READY = "Ready"
    NOT_READY = "NotReady"


@dataclass(frozen=True)
class ObjectMeta:
    name: Optional[str] = None
    namespace: Optional[str] = None
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class KubeResource:
    """
    Common shape of every decoded manifest.

    Kind-specific subclasses add the fields their readiness checks or the
    CLI need; the full decoded mapping is kept in `raw` for diagnostics.
    """
    api_version: str
    kind: str
    metadata: ObjectMeta
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def name(self) -> Optional[str]:
        return self.metadata.name


@dataclass(frozen=True)
class Namespace(KubeResource):
    pass


@dataclass(frozen=True)
class ServiceAccount(KubeResource):
    pass


@dataclass(frozen=True)
class Role(KubeResource):
    rules: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class ClusterRole(KubeResource):
    rules: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class RoleBinding(KubeResource):
    role_ref: Dict[str, Any] = field(default_factory=dict)
    subjects: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class ClusterRoleBinding(KubeResource):
    role_ref: Dict[str, Any] = field(default_factory=dict)
    subjects: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class ConfigMap(KubeResource):
    data: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DaemonSet(KubeResource):
    spec: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Pod(KubeResource):
    spec: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Service(KubeResource):
    spec: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SecurityContextConstraints(KubeResource):
    users: List[str] = field(default_factory=list)
    allow_privileged_container: bool = False


@dataclass(frozen=True)
class ResourceBundle:
    """
    At most one resource of each supported kind for a single stage.
    Fields for kinds missing from the stage directory stay None.
    """
    namespace: Optional[Namespace] = None
    service_account: Optional[ServiceAccount] = None
    role: Optional[Role] = None
    role_binding: Optional[RoleBinding] = None
    cluster_role: Optional[ClusterRole] = None
    cluster_role_binding: Optional[ClusterRoleBinding] = None
    config_map: Optional[ConfigMap] = None
    daemon_set: Optional[DaemonSet] = None
    pod: Optional[Pod] = None
    service: Optional[Service] = None
    security_context_constraints: Optional[SecurityContextConstraints] = None


@dataclass(frozen=True)
class RequestIdentity:
    namespace: str
    name: str

    @classmethod
    def parse(cls, value: str) -> "RequestIdentity":
        """Parses 'namespace/name'; a bare name lands in 'default'."""
        namespace, sep, name = value.partition("/")
        if not sep:
            return cls(namespace="default", name=namespace)
        if not namespace or not name or "/" in name:
            raise ValueError(f"Invalid request identity '{value}', expected NAMESPACE/NAME")
        return cls(namespace=namespace, name=name)

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class ReconcileResult:
    requeue: bool = False
    error: Optional[Exception] = None


class CancelToken:
    """
    Cooperative cancellation signal threaded through every control function.
    Fires when cancel() is called or when the optional deadline passes.
    """

    def __init__(self, deadline: Optional[float] = None):
        self._event = threading.Event()
        self.deadline = deadline

    @classmethod
    def with_timeout(cls, seconds: Optional[float]) -> "CancelToken":
        if seconds is None:
            return cls()
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def raise_if_cancelled(self, where: str = ""):
        if self.cancelled:
            suffix = f" before {where}" if where else ""
            raise ReconcileCancelled(f"Reconcile cancelled{suffix}")


@dataclass
class ReconcileContext:
    """What a control function sees of the reconciliation in progress."""
    client: Any
    instance: Dict[str, Any]
    cancel: CancelToken = field(default_factory=CancelToken)

    @property
    def instance_namespace(self) -> Optional[str]:
        return (self.instance.get("metadata") or {}).get("namespace")


ControlFunction = Callable[[ReconcileContext, ResourceBundle], ReadinessStatus]


@dataclass(frozen=True)
class Stage:
    """One manifest directory: its bundle plus the ordered readiness checks."""
    name: str
    path: str
    bundle: ResourceBundle
    controls: Tuple[ControlFunction, ...] = ()
    # (kind, name) for each control, same order as `controls`
    entries: Tuple[Tuple[str, Optional[str]], ...] = ()
    skipped: Tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.controls)
