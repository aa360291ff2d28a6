"""
Discount Calculation

A discount code takes precedence; without one, the athlete's active
scholarship applies. Amounts are euros, rounded to 2 decimals.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional
from sqlalchemy.orm import Session

from zaltyko.models.charges import Charge, Discount, Scholarship


@dataclass
class DiscountResult:
    discount_amount: float
    final_amount: float
    discount_type: str
    source: str
    source_id: str
    name: str

    def to_dict(self) -> dict:
        return {
            "discountAmount": self.discount_amount,
            "finalAmount": self.final_amount,
            "discountType": self.discount_type,
            "source": self.source,
            "sourceId": self.source_id,
            "name": self.name,
        }


def _in_date_range(start: date, end: Optional[date], today: date) -> bool:
    return start <= today and (end is None or end >= today)


def compute_discount_amount(amount: float, discount_type: str, value, cap=None) -> float:
    value = float(value)
    if discount_type == "percentage":
        discount = amount * value / 100
        if cap is not None:
            discount = min(discount, float(cap))
    else:
        discount = value
    return round(discount, 2)


def find_discount(db: Session, academy_id: str, tenant_id: str, code: str, today: date) -> Optional[Discount]:
    candidates = db.query(Discount).filter(
        Discount.academy_id == academy_id,
        Discount.tenant_id == tenant_id,
        Discount.code == code,
        Discount.is_active.is_(True),
    ).all()
    for discount in candidates:
        if not _in_date_range(discount.start_date, discount.end_date, today):
            continue
        if discount.max_uses is not None and discount.current_uses >= discount.max_uses:
            continue
        return discount
    return None


def find_scholarship(db: Session, academy_id: str, tenant_id: str, athlete_id: str, today: date) -> Optional[Scholarship]:
    candidates = db.query(Scholarship).filter(
        Scholarship.academy_id == academy_id,
        Scholarship.tenant_id == tenant_id,
        Scholarship.athlete_id == athlete_id,
        Scholarship.is_active.is_(True),
    ).all()
    for scholarship in candidates:
        if _in_date_range(scholarship.start_date, scholarship.end_date, today):
            return scholarship
    return None


def calculate_discount(
    db: Session,
    academy_id: str,
    tenant_id: str,
    amount: float,
    discount_code: Optional[str] = None,
    athlete_id: Optional[str] = None,
    today: Optional[date] = None,
) -> Optional[DiscountResult]:
    """Best applicable reduction for an amount, or None."""
    today = today or date.today()

    if discount_code:
        discount = find_discount(db, academy_id, tenant_id, discount_code, today)
        if discount:
            value = compute_discount_amount(
                amount, discount.discount_type, discount.discount_value, discount.max_discount
            )
            return DiscountResult(
                discount_amount=value,
                final_amount=round(max(0.0, amount - value), 2),
                discount_type=discount.discount_type,
                source="discount",
                source_id=discount.id,
                name=discount.name,
            )

    if athlete_id:
        scholarship = find_scholarship(db, academy_id, tenant_id, athlete_id, today)
        if scholarship:
            value = compute_discount_amount(amount, scholarship.discount_type, scholarship.discount_value)
            return DiscountResult(
                discount_amount=value,
                final_amount=round(max(0.0, amount - value), 2),
                discount_type=scholarship.discount_type,
                source="scholarship",
                source_id=scholarship.id,
                name=scholarship.name,
            )

    return None


def apply_discount_to_charge(db: Session, charge: Charge, result: DiscountResult) -> None:
    """Rewrite the charge amount and count one use of a discount code."""
    charge.amount_cents = int(round(Decimal(str(result.final_amount)) * 100))
    if result.source == "discount":
        discount = db.query(Discount).filter(Discount.id == result.source_id).first()
        if discount:
            discount.current_uses = (discount.current_uses or 0) + 1
