"""
Per-level commission rates.

Ad spend and store orders pay out on separate tables. Level 1 is the direct
sponsor of the user whose spend generated the revenue. Levels missing from a
table earn nothing.
"""

from decimal import Decimal

AD_COMMISSION_RATES = {
    1: Decimal("0.10"),  # 10% for level 1 (direct sponsor)
    2: Decimal("0.07"),
    3: Decimal("0.05"),
    4: Decimal("0.03"),
    5: Decimal("0.02"),
}

ORDER_COMMISSION_RATES = {
    1: Decimal("0.10"),  # 10% for level 1 (direct sponsor)
    2: Decimal("0.05"),
    3: Decimal("0.03"),
    4: Decimal("0.02"),
    5: Decimal("0.01"),
}
