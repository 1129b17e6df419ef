"""Data model of an OpenTelemetry Collector instance and its volume claims."""

from __future__ import annotations

import copy as _copy
from dataclasses import dataclass, field
from enum import Enum


class UpgradeStrategy(str, Enum):
    """How the operator treats an instance when a newer version is known."""

    AUTOMATIC = "automatic"
    NONE = "none"


@dataclass
class PersistentVolumeClaim:
    """A persistent volume claim template for a stateful collector."""

    name: str
    access_modes: list[str] = field(default_factory=list)
    requests: dict[str, str] = field(default_factory=dict)


@dataclass
class CollectorSpec:
    """Desired state of a collector instance."""

    mode: str = ""
    config: str = ""
    args: dict[str, str] = field(default_factory=dict)
    volume_claim_templates: list[PersistentVolumeClaim] = field(default_factory=list)
    upgrade_strategy: UpgradeStrategy = UpgradeStrategy.AUTOMATIC


@dataclass
class CollectorStatus:
    """Observed state of a collector instance."""

    version: str = ""
    messages: list[str] = field(default_factory=list)


@dataclass
class Collector:
    """An OpenTelemetry Collector custom resource."""

    name: str = ""
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    spec: CollectorSpec = field(default_factory=CollectorSpec)
    status: CollectorStatus = field(default_factory=CollectorStatus)

    def copy(self) -> Collector:
        """Return a deep, independent copy of this instance."""
        return _copy.deepcopy(self)


def volume_claim_templates(collector: Collector) -> list[PersistentVolumeClaim]:
    """Build the volume claim templates for the given instance.

    Only stateful sets get claims; the user's templates replace the default one.
    """
    if collector.spec.mode != "statefulset":
        return []
    if collector.spec.volume_claim_templates:
        return list(collector.spec.volume_claim_templates)
    return [
        PersistentVolumeClaim(
            name="default-volume",
            access_modes=["ReadWriteOnce"],
            requests={"storage": "50Mi"},
        )
    ]