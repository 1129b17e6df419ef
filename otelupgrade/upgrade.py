"""Step-wise upgrade of collector instances to the current version."""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

import semver

from otelupgrade.collector import Collector, UpgradeStrategy
from otelupgrade.configyaml import UpgradeError
from otelupgrade.steps_early import (
    upgrade_0_2_10,
    upgrade_0_9_0,
    upgrade_0_15_0,
    upgrade_0_19_0,
    upgrade_0_24_0,
    upgrade_0_31_0,
)
from otelupgrade.steps_late import (
    upgrade_0_36_0,
    upgrade_0_38_0,
    upgrade_0_39_0,
    upgrade_0_41_0,
)

logger = logging.getLogger(__name__)

MANAGED_BY_LABELS = {"app.kubernetes.io/managed-by": "opentelemetry-operator"}


def _parse_version(text: str) -> semver.Version:
    candidate = text[1:] if text.startswith(("v", "V")) else text
    try:
        return semver.Version.parse(candidate, optional_minor_and_patch=True)
    except (ValueError, TypeError) as exc:
        raise UpgradeError(f"invalid version {text!r}: {exc}") from exc


@dataclass(frozen=True)
class VersionStep:
    """A known collector version and the routine that brings an instance to it."""

    version: semver.Version
    upgrade: Callable[[Collector], Collector]

    def __str__(self) -> str:
        return str(self.version)


VERSIONS: tuple[VersionStep, ...] = tuple(
    VersionStep(_parse_version(text), func)
    for text, func in (
        ("0.2.10", upgrade_0_2_10),
        ("0.9.0", upgrade_0_9_0),
        ("0.15.0", upgrade_0_15_0),
        ("0.19.0", upgrade_0_19_0),
        ("0.24.0", upgrade_0_24_0),
        ("0.31.0", upgrade_0_31_0),
        ("0.36.0", upgrade_0_36_0),
        ("0.38.0", upgrade_0_38_0),
        ("0.39.0", upgrade_0_39_0),
        ("0.41.0", upgrade_0_41_0),
    )
)

# The latest version that needs an upgrade routine, not necessarily the latest known one.
LATEST: VersionStep = VERSIONS[-1]


class CollectorClient:
    """In-memory store of collector instances, keyed by namespace and name."""

    def __init__(self, collectors: Iterable[Collector] = ()) -> None:
        self._store: dict[tuple[str, str], Collector] = {
            (item.namespace, item.name): item.copy() for item in collectors
        }

    def list(self, labels: dict[str, str]) -> list[Collector]:
        """Return copies of the instances carrying all the given labels."""
        return [
            item.copy()
            for item in self._store.values()
            if all(item.labels.get(key) == value for key, value in labels.items())
        ]

    def _stored(self, collector: Collector) -> Collector:
        try:
            return self._store[(collector.namespace, collector.name)]
        except KeyError:
            raise KeyError(
                f"collector {collector.namespace}/{collector.name} not found"
            ) from None

    def patch(self, original: Collector, upgraded: Collector) -> Collector:
        """Apply the metadata and spec of ``upgraded`` to the stored ``original``."""
        stored = self._stored(original)
        stored.labels = dict(upgraded.labels)
        stored.spec = copy.deepcopy(upgraded.spec)
        return stored.copy()

    def patch_status(self, original: Collector, upgraded: Collector) -> Collector:
        """Apply the status of ``upgraded`` to the stored ``original``."""
        stored = self._stored(original)
        stored.status = copy.deepcopy(upgraded.status)
        return stored.copy()


def managed_instance(collector: Collector, current_version: str) -> Collector:
    """Return a copy of ``collector`` brought up to ``current_version``.

    Raises UpgradeError when the instance's version cannot be parsed or a step fails.
    """
    result = collector.copy()
    if not result.status.version:
        # Likely a new instance: assume it is already up to date.
        return result

    try:
        instance_version = _parse_version(result.status.version)
    except UpgradeError:
        logger.error(
            "failed to parse version for OpenTelemetry Collector instance %s/%s: %s",
            result.namespace,
            result.name,
            result.status.version,
        )
        raise

    if instance_version > LATEST.version:
        logger.info(
            "skipping upgrade for OpenTelemetry Collector instance %s/%s, "
            "as its version %s is newer than our latest version %s",
            result.namespace,
            result.name,
            result.status.version,
            LATEST,
        )
        return result

    for step in VERSIONS:
        if step.version > instance_version:
            try:
                result = step.upgrade(result)
            except UpgradeError:
                logger.error(
                    "failed to upgrade managed otelcol instance %s/%s",
                    result.namespace,
                    result.name,
                )
                raise
            logger.debug(
                "step upgrade of %s/%s to %s", result.namespace, result.name, step
            )
            result.status.version = str(step)

    result.status.version = current_version
    logger.debug(
        "final version of %s/%s: %s", result.namespace, result.name, current_version
    )
    return result


def managed_instances(client: CollectorClient, current_version: str) -> None:
    """Upgrade every instance managed by the operator, skipping those that fail."""
    logger.info("looking for managed instances to upgrade")
    try:
        items = client.list(dict(MANAGED_BY_LABELS))
    except Exception as exc:
        raise UpgradeError(f"failed to list: {exc}") from exc

    for original in items:
        where = f"{original.namespace}/{original.name}"
        if original.spec.upgrade_strategy == UpgradeStrategy.NONE:
            logger.info("skipping instance upgrade of %s due to UpgradeStrategy", where)
            continue
        try:
            upgraded = managed_instance(original, current_version)
        except UpgradeError:
            continue

        if upgraded == original:
            continue

        try:
            client.patch(original, upgraded)
        except Exception:
            logger.exception("failed to apply changes to instance %s", where)
            continue
        try:
            client.patch_status(original, upgraded)
        except Exception:
            logger.exception("failed to apply changes to instance's status object %s", where)
            continue
        logger.info("instance %s upgraded to version %s", where, upgraded.status.version)

    if not items:
        logger.info("no instances to upgrade")