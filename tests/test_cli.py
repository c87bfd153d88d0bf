import io

import pytest
from rich.console import Console

from conftest import DAEMON_SET, FROBNICATOR, NAMESPACE, write_manifests
from kubestage.cli.formatter import StageFormatter
from kubestage.cli.main import EXIT_FAILURE, EXIT_OK, EXIT_REQUEUE, KubeStageCLI, main
from kubestage.core.models import ReconcileResult, RequestIdentity

INSTANCE = (
    "apiVersion: nfd.kubernetes.io/v1\n"
    "kind: NodeFeatureDiscovery\n"
    "metadata:\n"
    "  name: nfd-instance\n"
    "  namespace: node-feature-discovery\n"
)


@pytest.fixture
def assets(tmp_path):
    write_manifests(tmp_path / "assets" / "master", {"ns.yaml": NAMESPACE, "frob.yaml": FROBNICATOR})
    write_manifests(tmp_path / "assets" / "worker", {"ds.yaml": DAEMON_SET})
    return tmp_path / "assets"


def test_plan_lists_stages(assets, capsys):
    code = KubeStageCLI().run(["plan", "--assets-dir", str(assets)])
    out = capsys.readouterr().out

    assert code == EXIT_OK
    assert "Namespace" in out
    assert "DaemonSet" in out
    assert "2 stages, 2 readiness controls" in out


def test_plan_reports_decode_errors(tmp_path):
    write_manifests(tmp_path / "assets" / "master", {"bad.yaml": "kind: [\n"})
    code = KubeStageCLI().run(["plan", "--assets-dir", str(tmp_path / "assets"), "--stage", "master"])
    assert code == EXIT_FAILURE


def test_reconcile_exit_codes(assets, tmp_path):
    snapshot = tmp_path / "cluster.yaml"
    snapshot.write_text(INSTANCE)
    argv = ["reconcile", "node-feature-discovery/nfd-instance",
            "--assets-dir", str(assets), "--cluster", str(snapshot)]

    assert KubeStageCLI().run(argv) == EXIT_REQUEUE

    snapshot.write_text(
        INSTANCE
        + "---\napiVersion: v1\nkind: Namespace\nmetadata:\n  name: node-feature-discovery\n"
        + "---\napiVersion: apps/v1\nkind: DaemonSet\nmetadata:\n  name: nfd-worker\n"
        + "  namespace: node-feature-discovery\nstatus:\n  desiredNumberScheduled: 1\n  numberReady: 1\n"
    )
    assert KubeStageCLI().run(argv) == EXIT_OK


def test_reconcile_deleted_instance(assets, tmp_path):
    snapshot = tmp_path / "cluster.yaml"
    snapshot.write_text("apiVersion: v1\nkind: Namespace\nmetadata:\n  name: unrelated\n")
    code = KubeStageCLI().run(["reconcile", "ns/gone", "--assets-dir", str(assets), "--cluster", str(snapshot)])
    assert code == EXIT_OK


def test_bad_identity(assets, tmp_path):
    snapshot = tmp_path / "cluster.yaml"
    snapshot.write_text(INSTANCE)
    code = KubeStageCLI().run(["reconcile", "/missing-namespace", "--assets-dir", str(assets),
                               "--cluster", str(snapshot)])
    assert code == EXIT_FAILURE


def test_main_exits_with_status(assets):
    with pytest.raises(SystemExit) as exc:
        main(["plan", "--assets-dir", str(assets)])
    assert exc.value.code == EXIT_OK


@pytest.mark.parametrize("requeue, header, absent", [
    (False, "Failed", "Requeue"),
    (True, "Requeue", "Failed"),
])
def test_outcome_header_follows_requeue(requeue, header, absent):
    buf = io.StringIO()
    formatter = StageFormatter(Console(file=buf, width=120))

    formatter.print_outcome(RequestIdentity("ns", "nfd"), ReconcileResult(requeue=requeue, error=RuntimeError("boom")))

    out = buf.getvalue()
    assert header in out
    assert absent not in out
    assert "RuntimeError: boom" in out


def test_identity_with_extra_segment(assets, tmp_path):
    snapshot = tmp_path / "cluster.yaml"
    snapshot.write_text(INSTANCE)
    code = KubeStageCLI().run(["reconcile", "node-feature-discovery/nfd-instance/extra",
                               "--assets-dir", str(assets), "--cluster", str(snapshot)])
    assert code == EXIT_FAILURE


def test_snapshot_with_scalar_metadata_fails_cleanly(assets, tmp_path):
    snapshot = tmp_path / "cluster.yaml"
    snapshot.write_text("apiVersion: v1\nkind: Pod\nmetadata: just-a-string\n")
    code = KubeStageCLI().run(["reconcile", "node-feature-discovery/nfd-instance",
                               "--assets-dir", str(assets), "--cluster", str(snapshot)])
    assert code == EXIT_FAILURE
