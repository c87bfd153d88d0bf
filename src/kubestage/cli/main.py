#!/usr/bin/env python3
"""
KUBESTAGE CLI
-------------
Two commands over the staged reconciliation engine:

  plan       build every configured stage and show the apply order
  reconcile  run one reconcile of a managed instance against a cluster
             snapshot and report which stage it converged to

Author: KubeStage Team
Date: 2026-10-18
"""

import sys
import argparse
import logging
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from kubestage.cli.formatter import StageFormatter
from kubestage.cluster.client import InMemoryCluster
from kubestage.core.config import EngineConfig
from kubestage.core.engine import Reconciler, StageCatalog
from kubestage.core.errors import ConfigError, DecodeError
from kubestage.core.models import CancelToken, RequestIdentity

console = Console()

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_REQUEUE = 2


class KubeStageCLI:
    """
    CLI wrapper that translates user commands into Engine actions.
    """

    def __init__(self):
        self.parser = argparse.ArgumentParser(
            prog="kubestage",
            description="KubeStage - staged readiness reconciliation for Kubernetes manifests",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self.formatter = StageFormatter(console)
        self._setup_args()

    def _setup_args(self):
        self.parser.add_argument("--version", action="version", version="kubestage v0.1.0")
        self.parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
        subparsers = self.parser.add_subparsers(dest="command", metavar="Command")

        common = argparse.ArgumentParser(add_help=False)
        common.add_argument("--config", help="YAML engine config (assetsDir, stages, instanceKind, timeoutSeconds)")
        common.add_argument("--assets-dir", help="Root directory holding one sub-directory per stage")
        common.add_argument("--stage", action="append", dest="stages", metavar="NAME",
                            help="Stage directory name, repeat in apply order (default: master, worker)")

        subparsers.add_parser("plan", parents=[common], help="Show the stages and their control order")

        rec_parser = subparsers.add_parser("reconcile", parents=[common], help="Reconcile one managed instance")
        rec_parser.add_argument("identity", help="Managed instance as NAMESPACE/NAME")
        rec_parser.add_argument("--cluster", required=True, help="YAML snapshot of live cluster objects")
        rec_parser.add_argument("--kind", dest="instance_kind", help="Kind of the managed instance")
        rec_parser.add_argument("--timeout", type=float, help="Deadline in seconds for the whole reconcile")

    def _load_config(self, args: argparse.Namespace) -> EngineConfig:
        config = EngineConfig.from_file(args.config) if args.config else EngineConfig()
        if args.assets_dir:
            config.assets_dir = args.assets_dir
        if args.stages:
            config.stages = list(args.stages)
        if getattr(args, "instance_kind", None):
            config.instance_kind = args.instance_kind
        if getattr(args, "timeout", None) is not None:
            config.timeout_seconds = args.timeout
        return config

    def _cmd_plan(self, args: argparse.Namespace) -> int:
        config = self._load_config(args)
        catalog = StageCatalog.from_config(config)
        stages = catalog.stages()
        self.formatter.print_plan(stages)
        total = sum(len(s) for s in stages)
        console.print(f"[dim]{len(stages)} stages, {total} readiness controls[/dim]")
        return EXIT_OK

    def _cmd_reconcile(self, args: argparse.Namespace) -> int:
        config = self._load_config(args)
        identity = RequestIdentity.parse(args.identity)
        cluster = InMemoryCluster.from_yaml(args.cluster)

        reconciler = Reconciler.from_config(cluster, config)
        result = reconciler.reconcile(identity, CancelToken.with_timeout(config.timeout_seconds))

        stepper = reconciler.stepper_for(identity) if identity in reconciler.tracked() else None
        self.formatter.print_outcome(identity, result, stepper)

        if isinstance(result.error, DecodeError):
            return EXIT_FAILURE
        return EXIT_REQUEUE if result.requeue else EXIT_OK

    def run(self, argv: Optional[List[str]] = None) -> int:
        args = self.parser.parse_args(argv)
        logging.basicConfig(
            level=logging.DEBUG if args.verbose else logging.INFO,
            format="%(name)s: %(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )

        if args.command is None:
            self.parser.print_help()
            return EXIT_OK

        try:
            if args.command == "plan":
                return self._cmd_plan(args)
            return self._cmd_reconcile(args)
        except (ConfigError, DecodeError, ValueError) as e:
            console.print(Panel(f"[bold red]{type(e).__name__}:[/bold red] {e}", border_style="red", expand=False))
            return EXIT_FAILURE


def main(argv: Optional[List[str]] = None):
    """Application entry point with interrupt handling."""
    try:
        sys.exit(KubeStageCLI().run(argv))
    except KeyboardInterrupt:
        console.print("\n[bold red]Terminated by user.[/bold red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
