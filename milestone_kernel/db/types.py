"""
Module: milestone_kernel.db.types
Responsibility: Column length constants and the single sanctioned rounding
    helper for monetary values.
Architecture position: Kernel > DB.  May be imported by models/, services/
    and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats for money.  Monetary columns are Numeric(38, 9) (see the
      type_annotation_map in db/base.py).
    - round_money() is the only rounding applied to stored amounts.
"""

from decimal import ROUND_HALF_UP, Decimal

# Column lengths shared by the models
REF_LENGTH = 50
CODE_LENGTH = 50
NAME_LENGTH = 255
TEXT_LENGTH = 4000
HASH_LENGTH = 64

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    Used when snapshotting a milestone's billable amount onto its
    acceptance certificate.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places else "1"
    return Decimal(value).quantize(Decimal(quantize_str), rounding=rounding)
