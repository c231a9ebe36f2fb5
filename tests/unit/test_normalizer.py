from __future__ import annotations

from datetime import datetime

import numpy as np
import pytest

from elabel_import.models.entity_schemas import INGREDIENT_SCHEMA, PRODUCT_SCHEMA
from elabel_import.models.field_alias import EntitySchema, FieldAlias
from elabel_import.models.import_result import MissingRequiredField
from elabel_import.services.normalizer import coerce_value, normalize, normalize_row


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, None),
        ("", None),
        ("   ", None),
        ("  Sucrose ", "Sucrose"),
        (2019, "2019"),
        (2019.0, "2019"),
        (13.5, "13.5"),
        (float("nan"), None),
        (np.int64(750), "750"),
        (np.float64(12.0), "12"),
        (True, "TRUE"),
        (datetime(2021, 9, 1), "2021-09-01"),
        (datetime(2021, 9, 1, 12, 30), "2021-09-01T12:30:00"),
    ],
)
def test_coerce_value(value, expected):
    assert coerce_value(value) == expected


def test_coerce_value_null_sentinels():
    assert coerce_value(" null ", {"NULL"}) is None
    assert coerce_value("N/A", {"N/A"}) is None
    assert coerce_value("Nullable", {"NULL"}) == "Nullable"


def test_counts_add_up_to_input_rows():
    rows = [
        {"Name": "Sucrose"},
        {"Name": ""},
        {"name": "Citric acid"},
        {},
        {"NAME": "  Sulphites  "},
    ]
    result = normalize(rows, INGREDIENT_SCHEMA)
    assert len(result.accepted) + len(result.rejected) == len(rows)
    assert result.total_rows == 5
    assert result.accepted_rows == [0, 2, 4]
    assert result.rejected_rows == [1, 3]
    assert set(result.accepted_rows).isdisjoint(result.rejected_rows)


@pytest.mark.parametrize("header", ["E Number", "e_number", "E number", "  e NUMBER  "])
def test_header_matching_is_case_and_whitespace_insensitive(header: str):
    result = normalize([{"Name": "Sucrose", header: "E954"}], INGREDIENT_SCHEMA)
    assert result.accepted[0]["e_number"] == "E954"


def test_unlisted_spelling_is_treated_as_absent():
    result = normalize([{"Name": "Sucrose", "ENumber": "E954", "E_No": "E954"}], INGREDIENT_SCHEMA)
    assert result.rejected == []
    assert result.accepted[0]["e_number"] is None


def test_priority_canonical_key_before_alias():
    row = {"E Number": "from alias", "e_number": "from canonical"}
    assert normalize([row | {"name": "x"}], INGREDIENT_SCHEMA).accepted[0]["e_number"] == "from canonical"


def test_blank_cell_falls_through_to_next_spelling():
    row = {"name": "   ", "Name": "Sucrose"}
    result = normalize([row], INGREDIENT_SCHEMA)
    assert result.accepted[0]["name"] == "Sucrose"


@pytest.mark.parametrize("blank", ["", "   ", "\t", None])
def test_blank_required_field_is_rejected(blank):
    result = normalize([{"Name": blank, "Category": "Preservative"}], INGREDIENT_SCHEMA)
    assert result.accepted == []
    assert result.rejected[0].reason == MissingRequiredField(row=0, field="name")


def test_default_applies_only_to_fields_declaring_one():
    result = normalize([{"Name": "Sucrose"}], INGREDIENT_SCHEMA)
    rec = result.accepted[0]
    assert rec["category"] == "Other ingredient"
    assert rec["e_number"] is None
    assert rec["allergen"] is None


def test_explicit_value_overrides_default():
    result = normalize([{"Name": "Sucrose", "Category": "Sweetener"}], INGREDIENT_SCHEMA)
    assert result.accepted[0]["category"] == "Sweetener"


def test_sucrose_scenario():
    rows = [{"Name": "Sucrose", "Category": "", "E Number": "E954"}]
    result = normalize(rows, INGREDIENT_SCHEMA)
    assert result.accepted == [
        {"name": "Sucrose", "category": "Other ingredient", "e_number": "E954", "allergen": None}
    ]
    assert result.rejected == []


def test_whitespace_name_scenario():
    result = normalize([{"Name": "  ", "Category": "Preservative"}], INGREDIENT_SCHEMA)
    assert result.accepted == []
    assert len(result.rejected) == 1
    rej = result.rejected[0]
    assert rej.row == 0
    assert rej.reason.row == 0
    assert rej.reason.field == "name"
    assert str(rej.reason) == "row 0: missing required field 'name'"


def test_first_missing_required_field_in_schema_order_is_reported():
    schema = EntitySchema(
        entity="t",
        table="t",
        fields=(FieldAlias("a", required=True), FieldAlias("b", required=True)),
    )
    record, missing = normalize_row({}, schema)
    assert missing == "a"
    assert record == {"a": None, "b": None}


def test_accepted_rows_preserve_input_order():
    rows = [{"Name": n} for n in ["c", "a", "", "b"]]
    result = normalize(rows, INGREDIENT_SCHEMA)
    assert [r["name"] for r in result.accepted] == ["c", "a", "b"]
    assert result.rejected[0].row == 2


def test_product_values_coerced_to_strings():
    row = {
        "Name": "Chateau Test",
        "Vintage": 2019.0,
        "Alcohol": 13.5,
        "EAN/GTIN": 3760123456789,
        "Net volume": " 750 ml ",
    }
    rec = normalize([row], PRODUCT_SCHEMA).accepted[0]
    assert rec["vintage"] == "2019"
    assert rec["alcohol"] == "13.5"
    assert rec["ean_gtin"] == "3760123456789"
    assert rec["net_volume"] == "750 ml"
    assert rec["brand"] is None
    # user_id は normalize の責務外
    assert "user_id" not in rec


def test_null_sentinels_make_required_field_missing():
    result = normalize([{"Name": "NULL"}, {"Name": "Sucrose", "Allergen": "n/a"}], INGREDIENT_SCHEMA, ["null", "N/A"])
    assert result.rejected_rows == [0]
    assert result.accepted[0]["allergen"] is None


def test_normalize_is_pure():
    rows = [{"Name": " Sucrose ", "Category": ""}]
    snapshot = [dict(r) for r in rows]
    first = normalize(rows, INGREDIENT_SCHEMA)
    second = normalize(rows, INGREDIENT_SCHEMA)
    assert first == second
    assert rows == snapshot
