"""Layer-name to record-field mapping tables."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict, ValidationError

FieldMap = Mapping[str, str]

DEFAULT_FIELD_MAP: FieldMap = MappingProxyType(
    {
        "#product_name": "productName",
        "#shipping_fee": "shippingFee",
        "#supply_price_vat": "supplyPriceVat",
        "#group_price": "groupPrice",
        "#online_price": "onlinePrice",
    }
)


class FieldMapFile(BaseModel):
    """On-disk YAML structure for an alternate field map."""

    model_config = ConfigDict(extra="forbid")

    fields: dict[str, str]


def freeze_field_map(mapping: Mapping[str, str]) -> FieldMap:
    """Return an immutable copy of ``mapping``."""

    return MappingProxyType(dict(mapping))


def load_field_map(path: Path | None = None) -> FieldMap:
    """Load a field map from YAML, or return the built-in table when ``path`` is None."""

    if path is None:
        return DEFAULT_FIELD_MAP

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ValueError(f"Field map file not found: {path}") from exc
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in field map file: {path}") from exc

    if not isinstance(raw, dict):
        raise ValueError(f"Field map file must contain a mapping: {path}")

    try:
        parsed = FieldMapFile.model_validate(raw)
    except ValidationError as exc:
        raise ValueError(f"Invalid field map schema: {path}") from exc

    for layer_name, field_key in parsed.fields.items():
        if not layer_name or not field_key:
            raise ValueError(f"Field map entries must be non-empty strings: {path}")

    return freeze_field_map(parsed.fields)
