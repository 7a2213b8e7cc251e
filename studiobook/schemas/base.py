"""
Base schemas with standardized field types for consistent responses.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, PlainSerializer

CENT = Decimal("0.01")


def quantize_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


# Amounts travel as Decimal internally and serialize as fixed two-place strings.
MoneyStr = Annotated[
    Decimal,
    PlainSerializer(lambda v: str(quantize_money(v)), return_type=str, when_used="json"),
]


class StandardizedModel(BaseModel):
    """Base model for responses built from ORM rows."""

    model_config = ConfigDict(use_enum_values=True, populate_by_name=True, from_attributes=True)
