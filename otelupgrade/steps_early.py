"""Upgrade steps for collector versions up to 0.31.0."""

from __future__ import annotations

import json
from typing import Any

from otelupgrade.collector import Collector
from otelupgrade.configyaml import UpgradeError, config_from_string, config_to_string


def _quote(value: Any) -> str:
    return json.dumps(str(value), ensure_ascii=False)


def _load(collector: Collector, version: str) -> dict:
    try:
        return config_from_string(collector.spec.config)
    except UpgradeError as exc:
        raise UpgradeError(f"couldn't upgrade to v{version}, {exc}") from exc


def _store(collector: Collector, cfg: dict, version: str) -> Collector:
    try:
        collector.spec.config = config_to_string(cfg)
    except UpgradeError as exc:
        raise UpgradeError(f"couldn't upgrade to v{version}, {exc}") from exc
    return collector


def noop(collector: Collector) -> Collector:
    """Return an unchanged copy of the instance."""
    return collector.copy()


def upgrade_0_2_10(collector: Collector) -> Collector:
    """First known version; the instance comes back unchanged."""
    return noop(collector)


def upgrade_0_9_0(collector: Collector) -> Collector:
    """Drop ``reconnection_delay`` from opencensus exporters."""
    if not collector.spec.config:
        return collector

    cfg = _load(collector, "0.9.0")
    exporters = cfg.get("exporters")
    if not isinstance(exporters, dict):
        raise UpgradeError(
            "couldn't upgrade to v0.9.0, failed to extract list of exporters "
            f"from the configuration: {_quote(exporters)}"
        )

    for key, exporter in exporters.items():
        if not "opencensus".startswith(str(key)):
            continue
        if isinstance(exporter, dict):
            exporter.pop("reconnection_delay", None)
            collector.status.messages.append(
                "upgrade to v0.9.0 removed the property reconnection_delay "
                f"for exporter {_quote(key)}"
            )
        elif not isinstance(exporter, str):
            raise UpgradeError(
                f"couldn't upgrade to v0.9.0, the exporter {_quote(key)} "
                "is invalid (neither a string nor map)"
            )

    return _store(collector, cfg, "0.9.0")


def upgrade_0_15_0(collector: Collector) -> Collector:
    """Remove the obsolete metrics type flags."""
    collector.spec.args.pop("--new-metrics", None)
    collector.spec.args.pop("--legacy-metrics", None)
    return collector


def _prior_attributes(processor: dict, key: Any, migrated: list | None) -> list:
    if "attributes" not in processor:
        return []
    attrs = processor["attributes"]
    if migrated is not None and attrs is migrated:
        return attrs
    raise UpgradeError(
        "couldn't upgrade to v0.19.0, the attributes list for processors "
        f"{_quote(key)} couldn't be parsed based on the previous value. "
        f"Type: {type(attrs).__name__}, value: {attrs}"
    )


def upgrade_0_19_0(collector: Collector) -> Collector:
    """Remove queued_retry processors and migrate resource processor settings."""
    if not collector.spec.config:
        return collector

    cfg = _load(collector, "0.19.0")
    processors = cfg.get("processors")
    if not isinstance(processors, dict):
        return collector

    for key, processor in list(processors.items()):
        name = str(key)
        if name.startswith("queued_retry"):
            del processors[key]
            collector.status.messages.append(
                f"upgrade to v0.19.0 removed the processor {_quote(key)}"
            )
            continue

        if not name.startswith("resource"):
            continue
        if isinstance(processor, str):
            continue
        if not isinstance(processor, dict):
            raise UpgradeError(
                f"couldn't upgrade to v0.19.0, the processor {_quote(key)} "
                "is invalid (neither a string nor map)"
            )

        migrated: list | None = None
        if "type" in processor:
            attributes = _prior_attributes(processor, key, migrated)
            attributes.append(
                {"key": "opencensus.type", "value": str(processor["type"]), "action": "upsert"}
            )
            processor["attributes"] = attributes
            migrated = attributes
            del processor["type"]
            collector.status.messages.append(
                f"upgrade to v0.19.0 migrated the property 'type' for processor {_quote(key)}"
            )

        if "labels" in processor:
            attributes = _prior_attributes(processor, key, migrated)
            labels = processor["labels"]
            if isinstance(labels, dict):
                attributes.extend(
                    {"key": str(label), "value": str(value), "action": "upsert"}
                    for label, value in labels.items()
                )
            processor["attributes"] = attributes
            del processor["labels"]
            collector.status.messages.append(
                f"upgrade to v0.19.0 migrated the property 'labels' for processor {_quote(key)}"
            )

    return _store(collector, cfg, "0.19.0")


def upgrade_0_24_0(collector: Collector) -> Collector:
    """Replace the health_check ``port`` with an ``endpoint``."""
    if not collector.spec.config:
        return collector

    cfg = _load(collector, "0.24.0")
    extensions = cfg.get("extensions")
    if not isinstance(extensions, dict):
        return collector

    for key, extension in extensions.items():
        if not str(key).startswith("health_check"):
            continue
        if isinstance(extension, dict):
            if "port" in extension:
                port = extension.pop("port")
                extension["endpoint"] = f"0.0.0.0:{port}"
                collector.status.messages.append(
                    "upgrade to v0.24.0 migrated the property 'port' to 'endpoint' "
                    f"for extension {_quote(key)}"
                )
        elif extension is not None and not isinstance(extension, str):
            raise UpgradeError(
                f"couldn't upgrade to v0.24.0, the extension {_quote(key)} is invalid "
                f"(expected string or map but was {extension})"
            )

    return _store(collector, cfg, "0.24.0")


def upgrade_0_31_0(collector: Collector) -> Collector:
    """Drop ``metrics_schema`` from influxdb receivers."""
    if not collector.spec.config:
        return collector

    cfg = _load(collector, "0.31.0")
    receivers = cfg.get("receivers")
    if not isinstance(receivers, dict):
        return collector

    for key, receiver in receivers.items():
        if not str(key).startswith("influxdb"):
            continue
        if not isinstance(receiver, dict):
            return collector
        for field_key in list(receiver):
            if str(field_key).startswith("metrics_schema"):
                del receiver[field_key]
                collector.status.messages.append(
                    f"upgrade to v0.31.0 dropped the 'metrics_schema' field from {_quote(key)} receiver"
                )

    return _store(collector, cfg, "0.31.0")