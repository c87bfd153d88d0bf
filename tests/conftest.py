import pytest

from kubestage.cluster.client import InMemoryCluster
from kubestage.core.models import CancelToken, ReconcileContext

NAMESPACE = """\
apiVersion: v1
kind: Namespace
metadata:
  name: node-feature-discovery
"""

SERVICE_ACCOUNT = """\
apiVersion: v1
kind: ServiceAccount
metadata:
  name: nfd-master
  namespace: node-feature-discovery
"""

CLUSTER_ROLE = """\
apiVersion: rbac.authorization.k8s.io/v1
kind: ClusterRole
metadata:
  name: nfd-master
rules:
- apiGroups: [""]
  resources: ["nodes"]
  verbs: ["get", "patch", "update"]
"""

CLUSTER_ROLE_BINDING = """\
apiVersion: rbac.authorization.k8s.io/v1
kind: ClusterRoleBinding
metadata:
  name: nfd-master
roleRef:
  apiGroup: rbac.authorization.k8s.io
  kind: ClusterRole
  name: nfd-master
subjects:
- kind: ServiceAccount
  name: nfd-master
  namespace: node-feature-discovery
"""

SERVICE = """\
apiVersion: v1
kind: Service
metadata:
  name: nfd-master
  namespace: node-feature-discovery
spec:
  selector:
    app: nfd-master
  ports:
  - protocol: TCP
    port: 8080
"""

CONFIG_MAP = """\
apiVersion: v1
kind: ConfigMap
metadata:
  name: nfd-worker
  namespace: node-feature-discovery
data:
  nfd-worker.conf: |
    sources:
      cpu: {}
"""

DAEMON_SET = """\
apiVersion: apps/v1
kind: DaemonSet
metadata:
  name: nfd-worker
  namespace: node-feature-discovery
spec:
  selector:
    matchLabels:
      app: nfd-worker
  template:
    metadata:
      labels:
        app: nfd-worker
    spec:
      containers:
      - name: nfd-worker
        image: k8s.gcr.io/nfd/node-feature-discovery:v0.8.2
"""

FROBNICATOR = """\
apiVersion: example.com/v1
kind: Frobnicator
metadata:
  name: frob
"""


def live(manifest_kind, name, namespace=None, status=None):
    meta = {"name": name}
    if namespace:
        meta["namespace"] = namespace
    obj = {"apiVersion": "v1", "kind": manifest_kind, "metadata": meta}
    if status is not None:
        obj["status"] = status
    return obj


def write_manifests(directory, files):
    directory.mkdir(parents=True, exist_ok=True)
    for name, content in files.items():
        path = directory / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return directory


@pytest.fixture
def cluster():
    return InMemoryCluster()


@pytest.fixture
def instance():
    return {
        "apiVersion": "nfd.kubernetes.io/v1",
        "kind": "NodeFeatureDiscovery",
        "metadata": {"name": "nfd-instance", "namespace": "node-feature-discovery"},
    }


@pytest.fixture
def ctx(cluster, instance):
    return ReconcileContext(client=cluster, instance=instance, cancel=CancelToken())
