"""Reading and writing of collector configuration documents."""

from __future__ import annotations

from typing import Any

import yaml


class UpgradeError(Exception):
    """Raised when a collector instance cannot be upgraded."""


class _Dumper(yaml.SafeDumper):
    """Block-style dumper that prefers double quotes."""

    def choose_scalar_style(self) -> str:
        style = super().choose_scalar_style()
        return '"' if style == "'" else style


def _sort_key(key: Any) -> tuple[int, Any]:
    if isinstance(key, (int, float)) and not isinstance(key, bool):
        return (0, key)
    return (1, str(key))


def _represent_dict(dumper: yaml.SafeDumper, data: dict) -> yaml.Node:
    items = sorted(data.items(), key=lambda item: _sort_key(item[0]))
    return dumper.represent_mapping("tag:yaml.org,2002:map", items)


_Dumper.add_representer(dict, _represent_dict)


def _unshared(value: Any) -> Any:
    """Rebuild containers so that no node is shared and no alias is emitted."""
    if isinstance(value, dict):
        return {key: _unshared(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_unshared(item) for item in value]
    return value


def config_from_string(text: str) -> dict:
    """Parse a configuration document into a mapping."""
    try:
        cfg = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise UpgradeError(f"failed to parse configuration: {exc}") from exc
    if cfg is None:
        return {}
    if not isinstance(cfg, dict):
        raise UpgradeError(
            f"failed to parse configuration: expected a mapping, got {type(cfg).__name__}"
        )
    return cfg


def config_to_string(cfg: dict, drop_nulls: bool = False) -> str:
    """Serialise a configuration mapping with sorted keys.

    With ``drop_nulls`` the explicit ``null`` values are left empty.
    """
    try:
        text = yaml.dump(
            _unshared(cfg),
            Dumper=_Dumper,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
            width=2**31 - 1,
        )
    except yaml.YAMLError as exc:
        raise UpgradeError(f"failed to marshal back configuration: {exc}") from exc
    if drop_nulls:
        text = text.replace(" null", "")
    return text