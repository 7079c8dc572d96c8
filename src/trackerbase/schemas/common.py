"""Shared schema building blocks."""

import math
from typing import Annotated, Any

import orjson
from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class CamelModel(BaseModel):
    """Base schema accepting the camelCase keys written by the authoring surface."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_camel_dict(self) -> dict:
        """Dump using camelCase keys, dropping unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True)


class StrictCamelModel(CamelModel):
    """CamelModel that rejects unknown keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class CompileIssue(CamelModel):
    """A compile problem attributed to a graph node and/or edge."""

    message: str = Field(..., description="Human-readable problem description")
    node_id: str | None = Field(None, description="Node the problem belongs to")
    edge_id: str | None = Field(None, description="Edge the problem belongs to")


def json_safe(value: Any) -> Any:
    """Replace non-finite floats (NaN, infinities) with None, recursively."""
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, dict):
        return {key: json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(item) for item in value]
    return value


def tag_non_finite(value: Any) -> Any:
    """Replace non-finite floats with ``{"$float": "nan" | "inf" | "-inf"}`` markers, recursively."""
    if isinstance(value, float):
        return value if math.isfinite(value) else {"$float": repr(value)}
    if isinstance(value, dict):
        return {key: tag_non_finite(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [tag_non_finite(item) for item in value]
    return value


def stable_dumps(value: Any) -> bytes:
    """
    Serialize a value for use as a cache key.

    Keys are sorted and non-finite floats keep distinct markers, since plain
    JSON writes NaN and infinities as null.

    Raises:
        TypeError: If the value holds something orjson cannot serialize
    """
    return orjson.dumps(tag_non_finite(value), option=orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS)
