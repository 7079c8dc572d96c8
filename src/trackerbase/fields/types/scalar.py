"""Date and boolean field type handlers."""

from typing import Any

from trackerbase.fields.base import BaseFieldTypeHandler


class DateFieldHandler(BaseFieldTypeHandler):
    """Handler for date fields. Values are ISO 8601 strings and are not parsed."""

    field_type = "date"

    @classmethod
    def check(cls, value: Any, config: dict[str, Any] | None = None) -> str | None:
        return None

    @classmethod
    def default(cls, config: dict[str, Any] | None = None) -> Any:
        return cls._configured_default(config, None)


class BooleanFieldHandler(BaseFieldTypeHandler):
    """Handler for checkbox-style boolean fields."""

    field_type = "boolean"

    @classmethod
    def check(cls, value: Any, config: dict[str, Any] | None = None) -> str | None:
        return None

    @classmethod
    def default(cls, config: dict[str, Any] | None = None) -> Any:
        return cls._configured_default(config, False)
