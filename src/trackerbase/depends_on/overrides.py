"""Merge an override patch into a field config."""

from typing import Any

_PATCH_KEYS = ("isHidden", "isRequired", "isDisabled")


def apply_field_overrides(base_config: dict[str, Any] | None, patch: dict[str, Any] | None) -> dict[str, Any]:
    """
    Shallow-merge the decided keys of ``patch`` over ``base_config``.

    A forced ``value`` is carried into the result; keeping the field
    read-only while it is forced is up to the caller.
    """
    effective = dict(base_config or {})
    if not patch:
        return effective
    for key in _PATCH_KEYS:
        if patch.get(key) is not None:
            effective[key] = patch[key]
    if "value" in patch:
        effective["value"] = patch["value"]
    return effective
