from __future__ import annotations

from .field_alias import EntitySchema, FieldAlias

"""Built-in import declarations for the two importable entities.

Aliases mirror the column names listed on the ingredient / product import
screens, plus the spellings found in exported backups.
"""

__all__ = [
    "DEFAULT_INGREDIENT_CATEGORY",
    "INGREDIENT_CATEGORIES",
    "INGREDIENT_SCHEMA",
    "PRODUCT_SCHEMA",
    "SCHEMAS",
    "get_schema",
]

DEFAULT_INGREDIENT_CATEGORY = "Other ingredient"

# 管理画面で選択可能なカテゴリ (行の検証には使わない。--inspect-data で標準外を表示)
INGREDIENT_CATEGORIES: tuple[str, ...] = (
    DEFAULT_INGREDIENT_CATEGORY,
    "Antioxidant",
    "Acidity regulator",
    "Stabiliser",
    "Raw material",
    "Sweetener",
    "Enrichment substance",
    "Clarifying agent",
    "Preservative",
)


INGREDIENT_SCHEMA = EntitySchema(
    entity="ingredients",
    table="ingredients",
    fields=(
        FieldAlias("name", ("Name",), required=True),
        FieldAlias("category", ("Category",), default=DEFAULT_INGREDIENT_CATEGORY),
        FieldAlias("e_number", ("E Number", "E number")),
        FieldAlias("allergen", ("Allergen",)),
    ),
)


PRODUCT_SCHEMA = EntitySchema(
    entity="products",
    table="products",
    fields=(
        FieldAlias("name", ("Name",), required=True),
        FieldAlias("net_volume", ("Net Volume", "Net volume")),
        FieldAlias("vintage", ("Vintage",)),
        FieldAlias("type", ("Type",)),
        FieldAlias("sugar_content", ("Sugar Content", "Sugar content")),
        FieldAlias("sku_code", ("SKU Code", "SKU code")),
        FieldAlias("brand", ("Brand",)),
        FieldAlias("alcohol", ("Alcohol",)),
        FieldAlias("country_of_origin", ("Country of Origin", "Country of origin")),
        FieldAlias("ean_gtin", ("EAN/GTIN", "EAN GTIN")),
    ),
    requires_user=True,
)


SCHEMAS: dict[str, EntitySchema] = {
    INGREDIENT_SCHEMA.entity: INGREDIENT_SCHEMA,
    PRODUCT_SCHEMA.entity: PRODUCT_SCHEMA,
}


def get_schema(entity: str) -> EntitySchema:
    try:
        return SCHEMAS[entity]
    except KeyError:
        raise KeyError(f"unknown entity '{entity}' (expected one of {sorted(SCHEMAS)})") from None
