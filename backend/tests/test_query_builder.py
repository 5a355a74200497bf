"""Tests for Cosmos SQL generation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from sheetstore.api.schemas.query import RowQueryRequest
from sheetstore.models.filters import FilterCondition
from sheetstore.services import query_builder


def params(spec) -> dict:
    return {p["name"]: p["value"] for p in spec.parameters}


class TestFilterClause:
    @pytest.mark.parametrize("operator", ["=", "!=", ">", ">=", "<", "<="])
    def test_comparisons_are_parameterised(self, operator) -> None:
        clause, parameters = query_builder.filter_clause(
            FilterCondition(field="price", operator=operator, value=10), 0
        )
        assert clause == f'c["price"] {operator} @filterValue0'
        assert parameters == [{"name": "@filterValue0", "value": 10}]

    @pytest.mark.parametrize(
        ("operator", "function"),
        [("contains", "CONTAINS"), ("startsWith", "STARTSWITH"), ("endsWith", "ENDSWITH")],
    )
    def test_string_matches_are_case_insensitive(self, operator, function) -> None:
        clause, parameters = query_builder.filter_clause(
            FilterCondition(field="product", operator=operator, value="wid"), 3
        )
        assert clause == f'{function}(TOSTRING(c["product"]), @filterValue3, true)'
        assert parameters == [{"name": "@filterValue3", "value": "wid"}]

    def test_between(self) -> None:
        clause, parameters = query_builder.filter_clause(
            FilterCondition(field="qty", operator="between", value=1, value2=5), 1
        )
        assert clause == '(c["qty"] >= @filterValue1 AND c["qty"] <= @filterValue2_1)'
        assert parameters == [
            {"name": "@filterValue1", "value": 1},
            {"name": "@filterValue2_1", "value": 5},
        ]

    def test_empty_and_not_empty_take_no_parameters(self) -> None:
        empty, empty_params = query_builder.filter_clause(
            FilterCondition(field="note", operator="empty"), 0
        )
        present, present_params = query_builder.filter_clause(
            FilterCondition(field="note", operator="!empty"), 0
        )
        assert "NOT IS_DEFINED" in empty
        assert "IS_NULL" in present
        assert empty_params == present_params == []

    def test_field_names_are_escaped(self) -> None:
        clause, _ = query_builder.filter_clause(
            FilterCondition(field='name"] OR 1=1 --', operator="=", value="x"), 0
        )
        assert clause == 'c["name\\"] OR 1=1 --"] = @filterValue0'


class TestFilterValidation:
    def test_between_needs_two_values(self) -> None:
        with pytest.raises(ValidationError):
            FilterCondition(field="qty", operator="between", value=1)

    def test_comparison_needs_a_value(self) -> None:
        with pytest.raises(ValidationError):
            FilterCondition(field="qty", operator=">")

    def test_unknown_operator(self) -> None:
        with pytest.raises(ValidationError):
            FilterCondition(field="qty", operator="LIKE", value="x")

    def test_blank_field(self) -> None:
        with pytest.raises(ValidationError):
            FilterCondition(field="   ", operator="=", value=1)

    def test_request_limits(self) -> None:
        with pytest.raises(ValidationError):
            RowQueryRequest(limit=0)
        with pytest.raises(ValidationError):
            RowQueryRequest(limit=1001)
        with pytest.raises(ValidationError):
            RowQueryRequest(offset=-1)

    def test_request_accepts_camel_case_import_id(self) -> None:
        assert RowQueryRequest.model_validate({"importId": "import_1"}).import_id == "import_1"


class TestRowsQuery:
    def test_defaults(self) -> None:
        spec = query_builder.build_rows_query()

        assert spec.query == (
            "SELECT * FROM c WHERE c.documentType = @documentType OFFSET @offset LIMIT @limit"
        )
        assert params(spec) == {"@documentType": "excel-row", "@offset": 0, "@limit": 100}

    def test_fields_filters_and_import(self) -> None:
        spec = query_builder.build_rows_query(
            ["product", "unit price"],
            [FilterCondition(field="unit price", operator=">", value=5)],
            "import_1",
            limit=10,
            offset=20,
            sort="-unit price",
        )

        assert spec.query.startswith(
            'SELECT VALUE {"id": c["id"], "product": c["product"], "unit price": c["unit price"]} FROM c'
        )
        assert "c._importId = @importId" in spec.query
        assert 'IS_DEFINED(c["product"]) AND IS_DEFINED(c["unit price"])' in spec.query
        assert 'c["unit price"] > @filterValue0' in spec.query
        assert spec.query.endswith('ORDER BY c["unit price"] DESC OFFSET @offset LIMIT @limit')
        assert params(spec) == {
            "@documentType": "excel-row",
            "@importId": "import_1",
            "@filterValue0": 5,
            "@offset": 20,
            "@limit": 10,
        }

    def test_ascending_sort(self) -> None:
        spec = query_builder.build_rows_query(sort="product")
        assert 'ORDER BY c["product"] ASC' in spec.query

    def test_count_query_shares_the_predicate(self) -> None:
        filters = [FilterCondition(field="qty", operator="<=", value=3)]
        rows = query_builder.build_rows_query(["qty"], filters, "import_1")
        count = query_builder.build_count_query(["qty"], filters, "import_1")

        assert count.query.startswith("SELECT VALUE COUNT(1) FROM c WHERE ")
        predicate = count.query.split(" WHERE ", 1)[1]
        assert predicate in rows.query
        assert "@offset" not in params(count)

    def test_blank_field_name_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            query_builder.field_ref(" ")


class TestImportQueries:
    def test_imports_listing(self) -> None:
        spec = query_builder.build_imports_query(limit=5, offset=10, status="failed")

        assert "ORDER BY c.processedAt DESC OFFSET @offset LIMIT @limit" in spec.query
        assert params(spec) == {
            "@partitionKey": "imports",
            "@documentType": "excel-import",
            "@status": "failed",
            "@offset": 10,
            "@limit": 5,
        }

    def test_imports_count_without_status(self) -> None:
        spec = query_builder.build_imports_count_query()

        assert "c.status" not in spec.query
        assert spec.query.startswith("SELECT VALUE COUNT(1)")

    def test_row_ids_for_import(self) -> None:
        spec = query_builder.build_import_row_ids_query("import_1")

        assert spec.query.startswith("SELECT c.id, c._partitionKey FROM c")
        assert params(spec) == {"@importId": "import_1", "@documentType": "excel-row"}

    def test_headers_of_completed_imports(self) -> None:
        spec = query_builder.build_headers_query()

        assert spec.query.startswith("SELECT c.headers FROM c")
        assert params(spec)["@status"] == "completed"


class TestDistinctValuesQuery:
    def test_distinct_values(self) -> None:
        spec = query_builder.build_distinct_values_query("unit price")

        assert spec.query == (
            'SELECT DISTINCT VALUE c["unit price"] FROM c '
            'WHERE c.documentType = @documentType AND IS_DEFINED(c["unit price"])'
        )
        assert params(spec) == {"@documentType": "excel-row"}

    def test_distinct_values_of_one_import(self) -> None:
        spec = query_builder.build_distinct_values_query("qty", import_id="import_1")

        assert spec.query.endswith("AND c._importId = @importId")
        assert params(spec)["@importId"] == "import_1"

    def test_field_name_cannot_break_out(self) -> None:
        spec = query_builder.build_distinct_values_query('a"] FROM c --')

        assert spec.query.startswith('SELECT DISTINCT VALUE c["a\\"] FROM c --"] FROM c WHERE')


def test_schema_module_reexports_filter_condition() -> None:
    from sheetstore.api.schemas import query as query_schemas

    assert query_schemas.FilterCondition is FilterCondition
