#!/usr/bin/env python3
"""
KUBESTAGE STAGE BUILDER
-----------------------
Loads one manifest directory into a Stage: the ResourceBundle plus the
ordered list of readiness controls.

Files are discovered recursively (symlinks excluded to avoid loops) and
applied in sorted relative-path order, so the same directory always yields
the same control order. An unreadable sub-directory fails the stage.

Author: KubeStage Team
Date: 2026-10-18
"""

import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Tuple

from kubestage.core.errors import ManifestLoadError
from kubestage.core.models import ControlFunction, ResourceBundle, Stage
from kubestage.manifests.decoder import ManifestDecoder, UnrecognizedKind
from kubestage.stages.controls import control_for

logger = logging.getLogger("kubestage.builder")


def discover_manifests(directory: Path) -> List[Path]:
    if not directory.is_dir():
        raise ManifestLoadError("Manifest directory does not exist", str(directory))

    def _unreadable(err: OSError):
        raise ManifestLoadError(f"Unable to scan manifest directory: {err}", err.filename or str(directory)) from err

    files = []
    # followlinks=False keeps symlinked directories out of the walk
    for dirpath, _, filenames in os.walk(directory, onerror=_unreadable):
        for filename in filenames:
            path = Path(dirpath) / filename
            if path.is_file() and not path.is_symlink():
                files.append(path)
    return sorted(files, key=lambda f: f.relative_to(directory).as_posix())


class StageBuilder:
    """Builds Stage objects; a single DecodeError aborts the whole stage."""

    def __init__(self, decoder: Optional[ManifestDecoder] = None):
        self.decoder = decoder or ManifestDecoder()

    def build(self, directory: str, name: Optional[str] = None) -> Stage:
        root = Path(directory)
        stage_name = name or root.name

        bundle = ResourceBundle()
        controls: List[ControlFunction] = []
        entries: List[Tuple[str, Optional[str]]] = []
        skipped: List[str] = []

        for file_path in discover_manifests(root):
            rel_path = file_path.relative_to(root).as_posix()
            try:
                raw = file_path.read_bytes()
            except OSError as e:
                raise ManifestLoadError(f"Unable to read manifest: {e}", str(file_path)) from e

            decoded = self.decoder.decode(raw, source=str(file_path))

            if isinstance(decoded, UnrecognizedKind):
                logger.info(f"Unknown resource kind '{decoded.kind}' in {rel_path}, skipping")
                skipped.append(rel_path)
                continue

            if getattr(bundle, decoded.bundle_field) is not None:
                logger.warning(
                    f"Stage '{stage_name}': {decoded.kind} from {rel_path} replaces an earlier {decoded.kind}"
                )
            bundle = replace(bundle, **{decoded.bundle_field: decoded.resource})
            controls.append(control_for(decoded.kind))
            entries.append((decoded.kind, decoded.resource.name))

        logger.info(f"Built stage '{stage_name}' from {root}: {len(controls)} controls, {len(skipped)} skipped")
        return Stage(
            name=stage_name,
            path=str(root),
            bundle=bundle,
            controls=tuple(controls),
            entries=tuple(entries),
            skipped=tuple(skipped),
        )


def build_stage(directory: str, name: Optional[str] = None) -> Stage:
    return StageBuilder().build(directory, name)
