"""Text-like field type handlers."""

from typing import Any

from trackerbase.fields.base import BaseFieldTypeHandler


class StringFieldHandler(BaseFieldTypeHandler):
    """Handler for single-line string fields."""

    field_type = "string"
    is_string_like = True

    @classmethod
    def check(cls, value: Any, config: dict[str, Any] | None = None) -> str | None:
        return None

    @classmethod
    def default(cls, config: dict[str, Any] | None = None) -> Any:
        return cls._configured_default(config, "")


class TextFieldHandler(StringFieldHandler):
    """Handler for multi-line text fields."""

    field_type = "text"


class LinkFieldHandler(StringFieldHandler):
    """Handler for link fields. The URL is stored as plain text."""

    field_type = "link"
