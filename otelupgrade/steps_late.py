"""Upgrade steps for collector versions 0.36.0 to 0.41.0."""

from __future__ import annotations

from otelupgrade.collector import Collector
from otelupgrade.configyaml import UpgradeError, config_from_string, config_to_string

_TLS_KEYS = frozenset(
    {
        "ca_file",
        "cert_file",
        "key_file",
        "min_version",
        "max_version",
        "insecure",
        "insecure_skip_verify",
        "server_name_override",
    }
)

_LOGGING_ARGS = ("--log-level", "--log-profile", "--log-format")

_CORS_KEYS = ("cors_allowed_origins", "cors_allowed_headers")


def _load(collector: Collector, version: str) -> dict:
    try:
        return config_from_string(collector.spec.config)
    except UpgradeError as exc:
        raise UpgradeError(f"couldn't upgrade to v{version}, {exc}") from exc


def _store(collector: Collector, cfg: dict, version: str, drop_nulls: bool = False) -> Collector:
    try:
        collector.spec.config = config_to_string(cfg, drop_nulls)
    except UpgradeError as exc:
        raise UpgradeError(f"couldn't upgrade to v{version}, {exc}") from exc
    return collector


def _update_config(collector: Collector, cfg: dict) -> Collector:
    # Drops the explicit nulls that the round trip through the parser introduces.
    return _store(collector, cfg, "0.39.0", drop_nulls=True)


def _child_mapping(parent: dict, key: str) -> dict:
    value = parent.get(key)
    if not isinstance(value, dict):
        value = {}
        parent[key] = value
    return value


def upgrade_0_36_0(collector: Collector) -> Collector:
    """Rename ``tls_settings`` to ``tls`` in otlp receivers and group otlp exporter TLS options."""
    if not collector.spec.config:
        return collector

    cfg = _load(collector, "0.36.0")
    messages = collector.status.messages

    receivers = cfg.get("receivers")
    if not isinstance(receivers, dict):
        return collector

    for name, receiver in receivers.items():
        if not str(name).startswith("otlp"):
            continue
        if not isinstance(receiver, dict):
            return collector
        for key, protocols in receiver.items():
            if key != "protocols":
                continue
            if not isinstance(protocols, dict):
                return collector
            for protocol, settings in protocols.items():
                if protocol not in ("grpc", "http"):
                    continue
                if not isinstance(settings, dict):
                    return collector
                if "tls_settings" in settings:
                    settings["tls"] = settings.pop("tls_settings")
                    messages.append(
                        "upgrade to v0.36.0 has changed the tls_settings field name to tls "
                        f"in {protocol} protocol of {name} receiver"
                    )

    exporters = cfg.get("exporters")
    if not isinstance(exporters, dict):
        return collector

    for name, exporter in exporters.items():
        if not str(name).startswith("otlp"):
            continue
        if not isinstance(exporter, dict):
            return collector
        tls: dict = {}
        for key in list(exporter):
            if key in _TLS_KEYS:
                tls[key] = exporter.pop(key)
            exporter["tls"] = tls
            messages.append(
                "upgrade to v0.36.0 move tls config i.e. ca_file, key_file, cert_file, "
                f"min_version, max_version to tls.* in {name} exporter"
            )

    return _store(collector, cfg, "0.36.0")


def upgrade_0_38_0(collector: Collector) -> Collector:
    """Move the deprecated logging arguments into ``service.telemetry.logs``."""
    args = collector.spec.args
    if not args:
        return collector

    found = {key: args.pop(key) for key in _LOGGING_ARGS if key in args}
    if not found:
        return collector

    cfg = _load(collector, "0.38.0")
    service = _child_mapping(cfg, "service")
    telemetry = _child_mapping(service, "telemetry")
    logs = _child_mapping(telemetry, "logs")

    # Logging settings already present in the configuration win over the arguments.
    if not logs:
        if "--log-level" in found:
            logs["level"] = found["--log-level"]
        if "--log-profile" in found:
            logs["development"] = True
        if "--log-format" in found:
            logs["encoding"] = found["--log-format"]

    cfg["service"] = service
    _store(collector, cfg, "0.38.0")

    keys = " ".join(sorted(found))
    collector.status.messages.append(
        "upgrade to v0.38.0 dropped the deprecated logging arguments "
        f"i.e. [{keys}] from otelcol custom resource otelcol.spec.args and adding them "
        "to otelcol.spec.config.service.telemetry.logs, if no logging parameters are "
        "configured already."
    )
    return collector


def upgrade_0_39_0(collector: Collector) -> Collector:
    """Drop ``ballast_size_mib`` from memory limiters and rename httpd receivers to apache."""
    cfg = _load(collector, "0.39.0")
    messages = collector.status.messages

    processors = cfg.get("processors")
    if isinstance(processors, dict):
        for name, processor in processors.items():
            if not str(name).startswith("memory_limiter"):
                continue
            if isinstance(processor, dict) and "ballast_size_mib" in processor:
                del processor["ballast_size_mib"]
                messages.append(
                    "upgrade to v0.39.0 has dropped the ballast_size_mib field name "
                    f"from {name} processor"
                )

    _update_config(collector, cfg)

    receivers = cfg.get("receivers")
    if not isinstance(receivers, dict):
        return _update_config(collector, cfg)

    for name, receiver in list(receivers.items()):
        if not str(name).startswith("httpd"):
            continue
        receivers[str(name).replace("httpd", "apache", 1)] = receiver
        del receivers[name]

        service = cfg.get("service")
        if not isinstance(service, dict):
            return collector
        pipelines = service.get("pipelines")
        if not isinstance(pipelines, dict):
            return collector

        for pipeline_name, pipeline in pipelines.items():
            if str(pipeline_name) != "metrics":
                continue
            if not isinstance(pipeline, dict):
                return collector
            for key, value in pipeline.items():
                if str(key) != "receivers":
                    continue
                if not isinstance(value, list):
                    return collector
                for index, item in enumerate(value):
                    old = str(item)
                    if old.startswith("httpd"):
                        new = old.replace("httpd", "apache", 1)
                        value[index] = new
                        messages.append(
                            f"upgrade to v0.39.0 has renamed the {old} to {new} receiver"
                        )

    return _update_config(collector, cfg)


def upgrade_0_41_0(collector: Collector) -> Collector:
    """Group the otlp receiver's ``cors_*`` settings under ``cors``."""
    cfg = _load(collector, "0.41.0")

    receivers = cfg.get("receivers")
    if isinstance(receivers, dict):
        for name, receiver in receivers.items():
            if not str(name).startswith("otlp") or not isinstance(receiver, dict):
                continue
            cors: dict | None = None
            for key in list(receiver):
                if str(key) not in _CORS_KEYS:
                    continue
                if cors is None:
                    cors = {}
                    receiver["cors"] = cors
                cors[str(key).replace("cors_", "", 1)] = receiver.pop(key)
                collector.status.messages.append(
                    f"upgrade to v0.41.0 has re-structured the {key} inside otlp "
                    "receiver config according to the upstream otlp receiver changes "
                    "in 0.41.0 release"
                )

    return _update_config(collector, cfg)