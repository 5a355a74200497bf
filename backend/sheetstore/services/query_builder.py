"""Render row and import queries as parameterised Cosmos SQL."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Sequence

from sheetstore.models.documents import (
    IMPORT_DOCUMENT_TYPE,
    IMPORTS_PARTITION_KEY,
    ROW_DOCUMENT_TYPE,
)
from sheetstore.models.filters import FilterCondition

COMPARISON_OPERATORS = ("=", "!=", ">", ">=", "<", "<=")
STRING_FUNCTIONS = {
    "contains": "CONTAINS",
    "startsWith": "STARTSWITH",
    "endsWith": "ENDSWITH",
}


@dataclass
class QuerySpec:
    query: str
    parameters: list[dict[str, Any]] = field(default_factory=list)


def field_ref(name: str) -> str:
    """Bracket accessor with the name as an escaped string literal, never raw SQL."""
    if not name or not name.strip():
        raise ValueError("Field name must be a non-empty string")
    return f"c[{json.dumps(name)}]"


def filter_clause(condition: FilterCondition, index: int) -> tuple[str, list[dict[str, Any]]]:
    ref = field_ref(condition.field)
    param = f"@filterValue{index}"
    op = condition.operator

    if op in COMPARISON_OPERATORS:
        return f"{ref} {op} {param}", [{"name": param, "value": condition.value}]
    if op in STRING_FUNCTIONS:
        # third argument makes the match case-insensitive
        clause = f"{STRING_FUNCTIONS[op]}(TOSTRING({ref}), {param}, true)"
        return clause, [{"name": param, "value": str(condition.value)}]
    if op == "between":
        upper = f"@filterValue2_{index}"
        return (
            f"({ref} >= {param} AND {ref} <= {upper})",
            [{"name": param, "value": condition.value}, {"name": upper, "value": condition.value2}],
        )
    if op == "empty":
        return f"(NOT IS_DEFINED({ref}) OR IS_NULL({ref}) OR {ref} = '')", []
    if op == "!empty":
        return f"(IS_DEFINED({ref}) AND NOT IS_NULL({ref}) AND {ref} != '')", []
    raise ValueError(f"Unsupported filter operator: {op}")


def _row_predicate(
    fields: Sequence[str],
    filters: Sequence[FilterCondition],
    import_id: str | None,
) -> tuple[str, list[dict[str, Any]]]:
    clauses = ["c.documentType = @documentType"]
    parameters: list[dict[str, Any]] = [{"name": "@documentType", "value": ROW_DOCUMENT_TYPE}]

    if import_id:
        clauses.append("c._importId = @importId")
        parameters.append({"name": "@importId", "value": import_id})

    clauses.extend(f"IS_DEFINED({field_ref(name)})" for name in fields)

    for index, condition in enumerate(filters):
        clause, params = filter_clause(condition, index)
        clauses.append(clause)
        parameters.extend(params)

    return " AND ".join(clauses), parameters


def order_by_clause(sort: str | None) -> str:
    if not sort or not sort.lstrip("-"):
        return ""
    direction = "DESC" if sort.startswith("-") else "ASC"
    return f" ORDER BY {field_ref(sort[1:] if sort.startswith('-') else sort)} {direction}"


def projection(fields: Sequence[str]) -> str:
    if not fields:
        return "*"
    # id is always returned so rows can be addressed later
    names = ["id", *[name for name in fields if name != "id"]]
    members = ", ".join(f"{json.dumps(name)}: {field_ref(name)}" for name in names)
    return f"VALUE {{{members}}}"


def build_rows_query(
    fields: Sequence[str] = (),
    filters: Sequence[FilterCondition] = (),
    import_id: str | None = None,
    *,
    limit: int = 100,
    offset: int = 0,
    sort: str | None = None,
) -> QuerySpec:
    """Rows matching every filter, optionally restricted to one import.

    When ``fields`` is given only those columns are projected and rows missing
    any of them are excluded.
    """
    predicate, parameters = _row_predicate(fields, filters, import_id)
    query = (
        f"SELECT {projection(fields)} FROM c WHERE {predicate}"
        f"{order_by_clause(sort)} OFFSET @offset LIMIT @limit"
    )
    parameters.extend([{"name": "@offset", "value": offset}, {"name": "@limit", "value": limit}])
    return QuerySpec(query, parameters)


def build_count_query(
    fields: Sequence[str] = (),
    filters: Sequence[FilterCondition] = (),
    import_id: str | None = None,
) -> QuerySpec:
    predicate, parameters = _row_predicate(fields, filters, import_id)
    return QuerySpec(f"SELECT VALUE COUNT(1) FROM c WHERE {predicate}", parameters)


def _imports_predicate(status: str | None) -> tuple[str, list[dict[str, Any]]]:
    clauses = ["c._partitionKey = @partitionKey", "c.documentType = @documentType"]
    parameters: list[dict[str, Any]] = [
        {"name": "@partitionKey", "value": IMPORTS_PARTITION_KEY},
        {"name": "@documentType", "value": IMPORT_DOCUMENT_TYPE},
    ]
    if status:
        clauses.append("c.status = @status")
        parameters.append({"name": "@status", "value": status})
    return " AND ".join(clauses), parameters


def build_imports_query(limit: int = 50, offset: int = 0, status: str | None = None) -> QuerySpec:
    predicate, parameters = _imports_predicate(status)
    parameters.extend([{"name": "@offset", "value": offset}, {"name": "@limit", "value": limit}])
    return QuerySpec(
        f"SELECT * FROM c WHERE {predicate} ORDER BY c.processedAt DESC OFFSET @offset LIMIT @limit",
        parameters,
    )


def build_imports_count_query(status: str | None = None) -> QuerySpec:
    predicate, parameters = _imports_predicate(status)
    return QuerySpec(f"SELECT VALUE COUNT(1) FROM c WHERE {predicate}", parameters)


def build_import_row_ids_query(import_id: str) -> QuerySpec:
    return QuerySpec(
        "SELECT c.id, c._partitionKey FROM c WHERE c._importId = @importId AND c.documentType = @documentType",
        [
            {"name": "@importId", "value": import_id},
            {"name": "@documentType", "value": ROW_DOCUMENT_TYPE},
        ],
    )


def build_headers_query() -> QuerySpec:
    predicate, parameters = _imports_predicate("completed")
    return QuerySpec(f"SELECT c.headers FROM c WHERE {predicate}", parameters)


def build_distinct_values_query(field_name: str, import_id: str | None = None) -> QuerySpec:
    """Distinct defined values of one column across row documents."""
    ref = field_ref(field_name)
    clauses = ["c.documentType = @documentType", f"IS_DEFINED({ref})"]
    parameters: list[dict[str, Any]] = [{"name": "@documentType", "value": ROW_DOCUMENT_TYPE}]
    if import_id:
        clauses.append("c._importId = @importId")
        parameters.append({"name": "@importId", "value": import_id})
    return QuerySpec(f"SELECT DISTINCT VALUE {ref} FROM c WHERE {' AND '.join(clauses)}", parameters)
