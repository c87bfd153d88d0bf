#!/usr/bin/env python3
"""
KUBESTAGE CLUSTER COLLABORATOR
------------------------------
The engine only ever reads from the cluster: it fetches the managed
instance and, during readiness checks, the live counterpart of each
manifest. Anything that satisfies ClusterClient can be plugged in.

InMemoryCluster is a snapshot-backed implementation, loaded from a
multi-document YAML dump of live objects (e.g. `kubectl get -o yaml`
output split into documents). The CLI and the tests use it.

Author: KubeStage Team
Date: 2026-10-18
"""

import logging
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Protocol, Tuple

from ruamel.yaml import YAML, YAMLError

from kubestage.core.errors import ManifestLoadError

logger = logging.getLogger("kubestage.cluster")


class NotFoundError(LookupError):
    """The requested object does not exist in the cluster."""

    def __init__(self, kind: str, name: str, namespace: Optional[str] = None):
        self.kind = kind
        self.name = name
        self.namespace = namespace
        where = f"{namespace}/{name}" if namespace else name
        super().__init__(f"{kind} '{where}' not found")


class ClusterClient(Protocol):
    def get(self, kind: str, name: str, namespace: Optional[str] = None) -> Dict[str, Any]:
        """Returns the live object or raises NotFoundError."""
        ...


class InMemoryCluster:
    """Thread-safe dict of live objects keyed by (kind, namespace, name)."""

    def __init__(self, objects: Optional[Iterable[Dict[str, Any]]] = None):
        self._objects: Dict[Tuple[str, Optional[str], str], Dict[str, Any]] = {}
        self._lock = threading.Lock()
        for obj in objects or []:
            self.put(obj)

    @classmethod
    def from_yaml(cls, path: str) -> "InMemoryCluster":
        snapshot = Path(path)
        yaml = YAML(typ="safe", pure=True)
        try:
            docs = list(yaml.load_all(snapshot.read_text(encoding="utf-8-sig")))
        except OSError as e:
            raise ManifestLoadError(f"Unable to read cluster snapshot: {e}", str(snapshot)) from e
        except YAMLError as e:
            raise ManifestLoadError(f"Malformed cluster snapshot: {e}", str(snapshot)) from e

        objects = []
        for doc in docs:
            if doc is None:
                continue
            # Accept `kind: List` dumps as well as plain multi-document files
            if isinstance(doc, dict) and doc.get("kind") == "List":
                objects.extend(doc.get("items") or [])
            else:
                objects.append(doc)

        logger.info(f"Loaded {len(objects)} live objects from {snapshot}")
        return cls(objects)

    @staticmethod
    def _key(kind: str, name: str, namespace: Optional[str]) -> Tuple[str, Optional[str], str]:
        return kind, namespace or None, name

    def put(self, obj: Dict[str, Any]):
        if not isinstance(obj, dict) or "kind" not in obj:
            raise ValueError("Live objects must be mappings with a 'kind'")
        meta = obj.get("metadata") or {}
        if not isinstance(meta, dict):
            raise ValueError(f"Live {obj['kind']} object has a non-mapping metadata")
        if not meta.get("name"):
            raise ValueError(f"Live {obj['kind']} object has no metadata.name")
        with self._lock:
            self._objects[self._key(obj["kind"], meta["name"], meta.get("namespace"))] = obj

    def delete(self, kind: str, name: str, namespace: Optional[str] = None):
        with self._lock:
            self._objects.pop(self._key(kind, name, namespace), None)

    def get(self, kind: str, name: str, namespace: Optional[str] = None) -> Dict[str, Any]:
        with self._lock:
            obj = self._objects.get(self._key(kind, name, namespace))
        if obj is None:
            raise NotFoundError(kind, name, namespace)
        return obj

    def __len__(self) -> int:
        with self._lock:
            return len(self._objects)
