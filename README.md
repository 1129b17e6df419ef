# otelupgrade

Migrates OpenTelemetry Collector resources from older collector versions to
newer ones. Every known version has an upgrade step. A step rewrites the
collector's arguments and its YAML configuration so that they match what that
collector release expects. Each step also records a human-readable message in
the collector's status for every change it makes.

## Installation

```
pip install otelupgrade
```

## The data model

`otelupgrade.collector` holds plain dataclasses:

- `Collector` – `name`, `namespace`, `labels`, `spec` and `status`; `copy()`
  returns a deep, independent copy.
- `CollectorSpec` – `mode`, `config` (YAML text), `args`,
  `volume_claim_templates` and `upgrade_strategy`.
- `CollectorStatus` – `version` and `messages`.
- `UpgradeStrategy` – `AUTOMATIC` (the default) or `NONE`.
- `PersistentVolumeClaim` – `name`, `access_modes` and `requests`.

## Upgrading a single collector

```python
from otelupgrade.collector import Collector, CollectorSpec, CollectorStatus
from otelupgrade.upgrade import managed_instance

collector = Collector(
    name="my-instance",
    namespace="default",
    spec=CollectorSpec(config="""
extensions:
  health_check/3:
    port: 13133
"""),
    status=CollectorStatus(version="0.23.0"),
)

upgraded = managed_instance(collector, "0.41.0")
print(upgraded.spec.config)
print(upgraded.status.version)   # "0.41.0"
print(upgraded.status.messages)  # one entry per change that was made
```

`managed_instance` works on a copy and leaves the collector passed in
untouched. It applies, in order, every step in `otelupgrade.upgrade.VERSIONS`
whose version is newer than the one recorded in the collector's status, and at
the end sets the status version to the version you pass in.

- A collector with no recorded version is treated as new and is returned
  unchanged.
- A collector newer than `otelupgrade.upgrade.LATEST` (0.41.0) is returned
  unchanged.
- A version that cannot be parsed, or a step that fails, raises
  `otelupgrade.configyaml.UpgradeError`.

## Upgrading every managed collector

`otelupgrade.upgrade.CollectorClient` is an in-memory store of collectors,
keyed by namespace and name. It has three methods:

- `list(labels)` – copies of the collectors carrying all the given labels.
- `patch(original, upgraded)` – stores the labels and spec of `upgraded`.
- `patch_status(original, upgraded)` – stores the status of `upgraded`.

```python
from otelupgrade.upgrade import CollectorClient, managed_instances

client = CollectorClient([collector])
managed_instances(client, "0.41.0")
```

`managed_instances` lists the collectors labelled
`app.kubernetes.io/managed-by: opentelemetry-operator`, skips those whose
upgrade strategy is `UpgradeStrategy.NONE`, upgrades the rest and patches back
the ones that changed. A collector that fails to upgrade or to be patched is
skipped and the others continue. A failure to list raises `UpgradeError`.

To keep collectors elsewhere, subclass `CollectorClient` and override these
three methods.

## Volume claim templates

`otelupgrade.collector.volume_claim_templates(collector)` only gives claims
for collectors in `statefulset` mode:

- It returns the claims given in the spec.
- If the spec gives none, it returns a default `default-volume` claim of 50Mi
  with `ReadWriteOnce` access.
- For every other mode it returns an empty list.

## Individual steps

The steps can also be called on their own. Each takes a `Collector` and
returns the upgraded one:

- `otelupgrade.steps_early`: `upgrade_0_2_10`, `upgrade_0_9_0`,
  `upgrade_0_15_0`, `upgrade_0_19_0`, `upgrade_0_24_0`, `upgrade_0_31_0`
  (and `noop`, which returns an unchanged copy).
- `otelupgrade.steps_late`: `upgrade_0_36_0`, `upgrade_0_38_0`,
  `upgrade_0_39_0`, `upgrade_0_41_0`.

`otelupgrade.configyaml` has the helpers they share: `config_from_string`
parses a configuration into a mapping, and `config_to_string` writes one back
with sorted keys.

## What it does not do

The package does not talk to a Kubernetes cluster, watch resources or run as a
service, and it has no command-line tool. It works on `Collector` objects you
build and hand to it, and on the in-memory `CollectorClient` or a subclass of
your own.