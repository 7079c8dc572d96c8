"""Base class for field type handlers."""

import math
from abc import ABC, abstractmethod
from typing import Any

from trackerbase.expr.coerce import parse_number_text


class BaseFieldTypeHandler(ABC):
    """
    Base class for field type handlers.

    Each tracker data type (string, number, options, etc.) implements this
    class to describe how the validation evaluator and the calculation
    engine treat its values: what counts as empty, how a raw cell value is
    read as a number, and which type-specific check runs after all
    declarative rules passed.

    Type families:
        - ``is_string_like``: minLength/maxLength rules apply
        - ``is_number_like``: non-empty values must parse as numbers

    Example:
        class SliderFieldHandler(BaseFieldTypeHandler):
            field_type = "slider"
            is_number_like = True

            @classmethod
            def check(cls, value: Any, config: dict[str, Any] | None = None) -> str | None:
                return cls._check_numeric(value)

            @classmethod
            def default(cls, config: dict[str, Any] | None = None) -> Any:
                return 0
    """

    field_type: str
    is_string_like: bool = False
    is_number_like: bool = False

    @classmethod
    def is_empty(cls, value: Any) -> bool:
        """True for None, empty string and empty list."""
        return value is None or value == "" or (isinstance(value, list) and not value)

    @classmethod
    def parse_number(cls, value: Any) -> float:
        """
        Permissive numeric parse used by min/max rules.

        Numbers pass through, non-blank strings are parsed, anything else
        (including booleans) is NaN.
        """
        if isinstance(value, bool):
            return math.nan
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str) and value.strip():
            number = parse_number_text(value)
            return math.nan if number is None else float(number)
        return math.nan

    @classmethod
    def text_length(cls, value: Any) -> int:
        """Length of the value's text form; None counts as empty."""
        return len(value if isinstance(value, str) else ("" if value is None else str(value)))

    @classmethod
    @abstractmethod
    def check(cls, value: Any, config: dict[str, Any] | None = None) -> str | None:
        """
        Type-specific check run after the declarative rules.

        Args:
            value: Cell value to check
            config: Field configuration

        Returns:
            An error message, or None when the value is acceptable
        """
        pass

    @classmethod
    @abstractmethod
    def default(cls, config: dict[str, Any] | None = None) -> Any:
        """
        Initial cell value for new rows.

        Args:
            config: Field configuration; ``defaultValue`` wins when present

        Returns:
            Default value (JSON-serializable)
        """
        pass

    @classmethod
    def _configured_default(cls, config: dict[str, Any] | None, fallback: Any) -> Any:
        if config and config.get("defaultValue") is not None:
            return config["defaultValue"]
        return fallback

    @classmethod
    def _check_numeric(cls, value: Any) -> str | None:
        """
        Helper for number-like handlers.

        Returns:
            "Enter a valid number" when a non-empty value does not parse
        """
        if cls.is_empty(value):
            return None
        if math.isnan(cls.parse_number(value)):
            return "Enter a valid number"
        return None
