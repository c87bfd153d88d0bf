#!/usr/bin/env python3
"""
KUBESTAGE ERRORS
----------------
Exception hierarchy shared by the decoder, the stage builder, the stepper
and the reconcile driver. Retryable conditions (NotReadyError,
ReconcileCancelled) are kept distinct from hard failures so the driver can
log them at the right level.

Author: KubeStage Team
Date: 2026-10-18
"""

from typing import Optional


class KubeStageError(Exception):
    """Base class for every error raised by the engine."""


class ConfigError(KubeStageError):
    """Raised when an engine configuration file is malformed."""


class DecodeError(KubeStageError):
    """A manifest could not be parsed against the schema of its kind."""

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        if source:
            message = f"{source}: {message}"
        super().__init__(message)


class ManifestLoadError(DecodeError):
    """A manifest directory or file could not be read from disk."""


class NotReadyError(KubeStageError):
    """A control function reported that its resource is not ready yet."""

    def __init__(self, stage: str, kind: str, name: Optional[str]):
        self.stage = stage
        self.kind = kind
        self.name = name
        super().__init__(f"ResourceNotReady: {kind}/{name or '<unnamed>'} in stage '{stage}'")


class ReconcileCancelled(KubeStageError):
    """The caller's cancel token fired or its deadline passed mid-reconcile."""


class StepperError(KubeStageError):
    """The stepper was driven outside of its valid phases."""
