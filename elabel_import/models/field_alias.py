from __future__ import annotations

from dataclasses import dataclass, field

"""Field alias & entity schema declarations.

A FieldAlias ties one canonical record field to the spreadsheet header
spellings accepted for it. Lookup order is fixed: the canonical key first,
then each alias in declaration order. Header comparison ignores case and
surrounding whitespace but never goes beyond the declared list.
"""

__all__ = [
    "FieldAlias",
    "EntitySchema",
    "header_key",
]


def header_key(header: object) -> str:
    """Comparison key for a spreadsheet header (trim + casefold)."""
    return str(header).strip().casefold()


@dataclass(frozen=True)
class FieldAlias:
    """Canonical field with its accepted header spellings.

    Attributes:
        name: Canonical field name (record key / DB column)
        aliases: Accepted header spellings in priority order
        required: Row is rejected when the field resolves to None
        default: Value used when an optional field is absent (None = no default)
    """
    name: str
    aliases: tuple[str, ...] = ()
    required: bool = False
    default: str | None = None

    def __post_init__(self) -> None:
        if self.required and self.default is not None:
            raise ValueError(f"field '{self.name}' cannot be required and declare a default")

    @property
    def spellings(self) -> tuple[str, ...]:
        """Canonical key followed by aliases, de-duplicated by comparison key."""
        seen: set[str] = set()
        ordered: list[str] = []
        for s in (self.name, *self.aliases):
            k = header_key(s)
            if k in seen:
                continue
            seen.add(k)
            ordered.append(s)
        return tuple(ordered)

    @property
    def lookup_keys(self) -> tuple[str, ...]:
        return tuple(header_key(s) for s in self.spellings)

    @property
    def label(self) -> str:
        """Display header (first alias, or the canonical name when none)."""
        return self.aliases[0] if self.aliases else self.name


@dataclass(frozen=True)
class EntitySchema:
    """Import declaration for one entity (one remote table)."""
    entity: str  # CLI / log 上のエンティティ名
    table: str  # bulk insert 対象テーブル
    fields: tuple[FieldAlias, ...] = field(default_factory=tuple)
    requires_user: bool = False  # True の場合 user_id 列でユーザーにスコープ
    user_column: str = "user_id"

    def __post_init__(self) -> None:
        names = [f.name for f in self.fields]
        if len(names) != len(set(names)):
            raise ValueError(f"schema '{self.entity}' declares duplicate fields: {names}")

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def required_fields(self) -> list[str]:
        return [f.name for f in self.fields if f.required]

    def get(self, name: str) -> FieldAlias:
        for f in self.fields:
            if f.name == name:
                return f
        raise KeyError(name)
