#!/usr/bin/env python3
"""
KUBESTAGE READINESS CONTROLS
----------------------------
One control function per supported kind. Each reads its resource from the
stage bundle, fetches the live counterpart through the cluster client and
answers READY or NOT_READY. A live object that does not exist yet is
NOT_READY, never an error; any other client failure propagates.

Author: KubeStage Team
Date: 2026-10-18
"""

import logging
from typing import Any, Dict, Optional

from kubestage.cluster.client import NotFoundError
from kubestage.core.models import (
    ControlFunction,
    KubeResource,
    ReadinessStatus,
    ReconcileContext,
    ResourceBundle,
)

logger = logging.getLogger("kubestage.controls")

# Kinds that must be fetched without a namespace
CLUSTER_SCOPED = {"Namespace", "ClusterRole", "ClusterRoleBinding", "SecurityContextConstraints"}


def _fetch_live(ctx: ReconcileContext, resource: Optional[KubeResource]) -> Optional[Dict[str, Any]]:
    if resource is None:
        return None
    namespace = None
    if resource.kind not in CLUSTER_SCOPED:
        namespace = resource.metadata.namespace or ctx.instance_namespace
    try:
        return ctx.client.get(resource.kind, resource.name, namespace)
    except NotFoundError:
        logger.debug(f"{resource.kind}/{resource.name} not found in cluster yet")
        return None


def _exists(field_name: str) -> ControlFunction:
    """Control for kinds that are ready as soon as the live object exists."""

    def control(ctx: ReconcileContext, bundle: ResourceBundle) -> ReadinessStatus:
        live = _fetch_live(ctx, getattr(bundle, field_name))
        return ReadinessStatus.READY if live is not None else ReadinessStatus.NOT_READY

    control.__name__ = f"{field_name}_exists"
    return control


def namespace_control(ctx: ReconcileContext, bundle: ResourceBundle) -> ReadinessStatus:
    live = _fetch_live(ctx, bundle.namespace)
    if live is None:
        return ReadinessStatus.NOT_READY
    phase = (live.get("status") or {}).get("phase")
    if phase == "Terminating":
        return ReadinessStatus.NOT_READY
    return ReadinessStatus.READY


def daemon_set_control(ctx: ReconcileContext, bundle: ResourceBundle) -> ReadinessStatus:
    """
    Compares the observed rollout against the desired node count.

    A DaemonSet scheduled on zero nodes is treated as ready: there is
    nothing to wait for.
    """
    live = _fetch_live(ctx, bundle.daemon_set)
    if live is None:
        return ReadinessStatus.NOT_READY

    status = live.get("status") or {}
    desired = int(status.get("desiredNumberScheduled", 0) or 0)
    ready = int(status.get("numberReady", 0) or 0)
    unavailable = int(status.get("numberUnavailable", 0) or 0)

    if desired == 0:
        return ReadinessStatus.READY
    if ready < desired or unavailable > 0:
        logger.debug(f"DaemonSet {bundle.daemon_set.name}: {ready}/{desired} ready, {unavailable} unavailable")
        return ReadinessStatus.NOT_READY
    return ReadinessStatus.READY


def pod_control(ctx: ReconcileContext, bundle: ResourceBundle) -> ReadinessStatus:
    live = _fetch_live(ctx, bundle.pod)
    if live is None:
        return ReadinessStatus.NOT_READY

    status = live.get("status") or {}
    phase = status.get("phase")
    if phase == "Succeeded":
        return ReadinessStatus.READY
    if phase != "Running":
        return ReadinessStatus.NOT_READY

    containers = status.get("containerStatuses") or []
    if containers and all(c.get("ready") for c in containers):
        return ReadinessStatus.READY
    return ReadinessStatus.NOT_READY


# kind -> control function, dispatch table used by the stage builder
CONTROLS: Dict[str, ControlFunction] = {
    "Namespace": namespace_control,
    "ServiceAccount": _exists("service_account"),
    "Role": _exists("role"),
    "RoleBinding": _exists("role_binding"),
    "ClusterRole": _exists("cluster_role"),
    "ClusterRoleBinding": _exists("cluster_role_binding"),
    "ConfigMap": _exists("config_map"),
    "DaemonSet": daemon_set_control,
    "Pod": pod_control,
    "Service": _exists("service"),
    "SecurityContextConstraints": _exists("security_context_constraints"),
}


def control_for(kind: str) -> ControlFunction:
    return CONTROLS[kind]
