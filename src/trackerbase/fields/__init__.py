"""Field type handlers for TrackerBase.

Each tracker data type maps to a handler describing emptiness, numeric
parsing, its type family and the check that runs after declarative
validation rules.
"""

from trackerbase.fields.base import BaseFieldTypeHandler
from trackerbase.fields.types.choice import (
    DynamicMultiselectFieldHandler,
    DynamicSelectFieldHandler,
    MultiselectFieldHandler,
    OptionsFieldHandler,
)
from trackerbase.fields.types.number import (
    CurrencyFieldHandler,
    NumberFieldHandler,
    PercentageFieldHandler,
)
from trackerbase.fields.types.scalar import BooleanFieldHandler, DateFieldHandler
from trackerbase.fields.types.text import LinkFieldHandler, StringFieldHandler, TextFieldHandler

# Registry of field type handlers
FIELD_HANDLERS: dict[str, type[BaseFieldTypeHandler]] = {
    # Text-like
    StringFieldHandler.field_type: StringFieldHandler,
    TextFieldHandler.field_type: TextFieldHandler,
    LinkFieldHandler.field_type: LinkFieldHandler,
    # Number-like
    NumberFieldHandler.field_type: NumberFieldHandler,
    CurrencyFieldHandler.field_type: CurrencyFieldHandler,
    PercentageFieldHandler.field_type: PercentageFieldHandler,
    # Scalars
    DateFieldHandler.field_type: DateFieldHandler,
    BooleanFieldHandler.field_type: BooleanFieldHandler,
    # Selects
    OptionsFieldHandler.field_type: OptionsFieldHandler,
    MultiselectFieldHandler.field_type: MultiselectFieldHandler,
    DynamicSelectFieldHandler.field_type: DynamicSelectFieldHandler,
    DynamicMultiselectFieldHandler.field_type: DynamicMultiselectFieldHandler,
}


def get_field_handler(field_type: str) -> type[BaseFieldTypeHandler] | None:
    """
    Get field handler for given field type.

    Args:
        field_type: Field type identifier

    Returns:
        Field handler class or None if not found
    """
    return FIELD_HANDLERS.get(field_type)


def register_field_handler(handler: type[BaseFieldTypeHandler]) -> None:
    """
    Register a new field handler.

    Args:
        handler: Field handler class to register
    """
    FIELD_HANDLERS[handler.field_type] = handler


def list_field_types() -> list[str]:
    """
    List all registered field types.

    Returns:
        List of field type identifiers
    """
    return list(FIELD_HANDLERS.keys())


__all__ = [
    "BaseFieldTypeHandler",
    "FIELD_HANDLERS",
    "get_field_handler",
    "register_field_handler",
    "list_field_types",
    "StringFieldHandler",
    "TextFieldHandler",
    "LinkFieldHandler",
    "NumberFieldHandler",
    "CurrencyFieldHandler",
    "PercentageFieldHandler",
    "DateFieldHandler",
    "BooleanFieldHandler",
    "OptionsFieldHandler",
    "MultiselectFieldHandler",
    "DynamicSelectFieldHandler",
    "DynamicMultiselectFieldHandler",
]
