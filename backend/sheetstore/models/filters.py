"""Row filter conditions shared by the query builder and the query API."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

FilterOperator = Literal[
    "=",
    "!=",
    "contains",
    "startsWith",
    "endsWith",
    ">",
    ">=",
    "<",
    "<=",
    "between",
    "empty",
    "!empty",
]


class FilterCondition(BaseModel):
    field: str = Field(..., min_length=1)
    operator: FilterOperator
    value: Any = None
    value2: Any = Field(None, description="Upper bound for 'between'")

    @field_validator("field")
    @classmethod
    def strip_field(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field must be a non-empty string")
        return v

    @model_validator(mode="after")
    def check_operands(self) -> "FilterCondition":
        if self.operator == "between" and (self.value is None or self.value2 is None):
            raise ValueError("'between' requires both value and value2")
        if self.operator not in ("empty", "!empty") and self.value is None:
            raise ValueError(f"operator '{self.operator}' requires a value")
        return self
