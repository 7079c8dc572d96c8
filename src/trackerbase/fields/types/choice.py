"""Select-style field type handlers."""

from typing import Any

from trackerbase.fields.base import BaseFieldTypeHandler


class OptionsFieldHandler(BaseFieldTypeHandler):
    """Handler for static single-select fields."""

    field_type = "options"

    @classmethod
    def check(cls, value: Any, config: dict[str, Any] | None = None) -> str | None:
        return None

    @classmethod
    def default(cls, config: dict[str, Any] | None = None) -> Any:
        return cls._configured_default(config, None)


class MultiselectFieldHandler(OptionsFieldHandler):
    """Handler for static multi-select fields. Values are lists."""

    field_type = "multiselect"

    @classmethod
    def default(cls, config: dict[str, Any] | None = None) -> Any:
        return cls._configured_default(config, [])


class DynamicSelectFieldHandler(OptionsFieldHandler):
    """Single-select whose options come from a dynamic option function."""

    field_type = "dynamic_select"


class DynamicMultiselectFieldHandler(MultiselectFieldHandler):
    """Multi-select whose options come from a dynamic option function."""

    field_type = "dynamic_multiselect"
