"""Number-like field type handlers."""

from typing import Any

from trackerbase.fields.base import BaseFieldTypeHandler


class NumberFieldHandler(BaseFieldTypeHandler):
    """Handler for number field type."""

    field_type = "number"
    is_number_like = True

    @classmethod
    def check(cls, value: Any, config: dict[str, Any] | None = None) -> str | None:
        """
        Validate number field value.

        Args:
            value: Value to validate
            config: Field configuration (bounds are declarative rules)

        Returns:
            "Enter a valid number" for non-empty values that do not parse
        """
        return cls._check_numeric(value)

    @classmethod
    def default(cls, config: dict[str, Any] | None = None) -> Any:
        return cls._configured_default(config, None)


class CurrencyFieldHandler(NumberFieldHandler):
    """Handler for currency amounts."""

    field_type = "currency"


class PercentageFieldHandler(NumberFieldHandler):
    """Handler for percentages."""

    field_type = "percentage"
