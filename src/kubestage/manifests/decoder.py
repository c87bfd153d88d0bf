#!/usr/bin/env python3
"""
KUBESTAGE MANIFEST DECODER
--------------------------
Turns one raw manifest into (kind, typed resource).

The kind is read from the root mapping of the parsed document, never by
scanning lines, so comments and nested 'kind:' keys (roleRef.kind,
subjects[].kind) cannot be mistaken for the resource identity.

Author: KubeStage Team
Date: 2026-10-18
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple, Type, Union

from ruamel.yaml import YAML, YAMLError

from kubestage.core import models
from kubestage.core.errors import DecodeError
from kubestage.validator.validator import KubeValidator

logger = logging.getLogger("kubestage.decoder")


@dataclass(frozen=True)
class DecodedManifest:
    kind: str
    resource: models.KubeResource
    bundle_field: str


@dataclass(frozen=True)
class UnrecognizedKind:
    """Returned, not raised: the caller logs it and moves on."""
    kind: str


def _meta(doc: Dict[str, Any]) -> models.ObjectMeta:
    meta = doc.get("metadata") or {}
    return models.ObjectMeta(
        name=meta.get("name"),
        namespace=meta.get("namespace"),
        labels=dict(meta.get("labels") or {}),
        annotations=dict(meta.get("annotations") or {}),
    )


def _rules(doc):
    return {"rules": list(doc.get("rules") or [])}


def _binding(doc):
    return {"role_ref": dict(doc.get("roleRef") or {}), "subjects": list(doc.get("subjects") or [])}


def _spec(doc):
    return {"spec": dict(doc.get("spec") or {})}


def _scc(doc):
    return {
        "users": list(doc.get("users") or []),
        "allow_privileged_container": bool(doc.get("allowPrivilegedContainer", False)),
    }


# kind -> (ResourceBundle field, resource class, extra-field extractor)
SUPPORTED_KINDS: Dict[str, Tuple[str, Type[models.KubeResource], Callable[[Dict[str, Any]], Dict[str, Any]]]] = {
    "Namespace": ("namespace", models.Namespace, lambda doc: {}),
    "ServiceAccount": ("service_account", models.ServiceAccount, lambda doc: {}),
    "Role": ("role", models.Role, _rules),
    "RoleBinding": ("role_binding", models.RoleBinding, _binding),
    "ClusterRole": ("cluster_role", models.ClusterRole, _rules),
    "ClusterRoleBinding": ("cluster_role_binding", models.ClusterRoleBinding, _binding),
    "ConfigMap": ("config_map", models.ConfigMap, lambda doc: {"data": dict(doc.get("data") or {})}),
    "DaemonSet": ("daemon_set", models.DaemonSet, _spec),
    "Pod": ("pod", models.Pod, _spec),
    "Service": ("service", models.Service, _spec),
    "SecurityContextConstraints": ("security_context_constraints", models.SecurityContextConstraints, _scc),
}


class ManifestDecoder:
    """
    Structural decoder for single-document Kubernetes manifests.
    Safe to share between threads: it keeps no per-call state.
    """

    def __init__(self, validator: Optional[KubeValidator] = None):
        self.validator = validator or KubeValidator()

    def _load(self, raw: bytes, source: Optional[str]) -> Any:
        try:
            text = raw.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise DecodeError(f"Manifest is not valid UTF-8: {e}", source) from e

        yaml = YAML(typ="safe", pure=True)
        try:
            docs = [d for d in yaml.load_all(text) if d is not None]
        except YAMLError as e:
            raise DecodeError(f"Malformed YAML: {e}", source) from e

        if not docs:
            raise DecodeError("Manifest contains no document", source)
        if len(docs) > 1:
            raise DecodeError(f"Expected one document per file, found {len(docs)}", source)
        return docs[0]

    def extract_kind(self, doc: Any, source: Optional[str] = None) -> str:
        """Reads 'kind' from the document root only."""
        if not isinstance(doc, dict):
            raise DecodeError("Manifest root is not a mapping", source)
        kind = doc.get("kind")
        if not isinstance(kind, str) or not kind.strip():
            raise DecodeError("Manifest has no top-level 'kind'", source)
        return kind.strip()

    def decode(self, raw: bytes, source: Optional[str] = None) -> Union[DecodedManifest, UnrecognizedKind]:
        doc = self._load(raw, source)
        kind = self.extract_kind(doc, source)

        entry = SUPPORTED_KINDS.get(kind)
        if entry is None:
            return UnrecognizedKind(kind)
        bundle_field, resource_cls, extract = entry

        valid, err = self.validator.validate(doc)
        if not valid:
            raise DecodeError(f"{kind}: {err}", source)

        try:
            resource = resource_cls(
                api_version=doc["apiVersion"],
                kind=kind,
                metadata=_meta(doc),
                raw=doc,
                **extract(doc),
            )
        except (TypeError, ValueError) as e:
            raise DecodeError(f"{kind}: {e}", source) from e

        logger.debug(f"Decoded {kind}/{resource.name} from {source or '<bytes>'}")
        return DecodedManifest(kind=kind, resource=resource, bundle_field=bundle_field)
