"""
Module: warehouse_kernel.db.types
Responsibility: Reusable annotated column declarations for the stock columns,
    so every model declares quantities, rates, SKUs and location text
    identically (``level1_quantity: Mapped[TierQty]``).
Architecture position: Kernel > DB.  May be imported by models/.  MUST NOT
    import from models/ or services/.

Invariants enforced:
    - Tier quantities and rates are plain integers (never floats); the
      packaging arithmetic is integer-only and truncating.
    - Quantities default to 0 and are NOT NULL; rates default to 0, which the
      calculator treats as "unconfigured" (adds nothing to a total).
"""

from typing import Annotated

from sqlalchemy import Integer, String
from sqlalchemy.orm import mapped_column

# Tier quantity (carton / box / piece count)
TierQty = Annotated[int, mapped_column(Integer, nullable=False, default=0)]

# Tier-to-piece multiplier
TierRate = Annotated[int, mapped_column(Integer, nullable=False, default=0)]

# Product identifier
Sku = Annotated[str, mapped_column(String(100), nullable=False, index=True)]

# Location text as stored (canonical when written through the kernel)
LocationText = Annotated[str, mapped_column(String(32), nullable=False, index=True)]

# Display label of a packaging tier
TierName = Annotated[str | None, mapped_column(String(50), nullable=True)]
