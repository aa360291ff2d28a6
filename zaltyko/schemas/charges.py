"""
Charge, Billing Item, Discount and Scholarship Schemas
"""
from pydantic import Field, model_validator
from typing import Optional
from datetime import date, datetime

from zaltyko.schemas.common import APIModel, PERIOD_PATTERN

CHARGE_STATUS_PATTERN = "^(pending|paid|overdue|cancelled|partial)$"
PAYMENT_METHOD_PATTERN = "^(cash|transfer|bizum|card_manual|other)$"
DISCOUNT_TYPE_PATTERN = "^(percentage|fixed)$"


class BillingItemCreate(APIModel):
    academy_id: str
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    amount_cents: int = Field(..., gt=0)
    currency: str = Field("EUR", min_length=3, max_length=3)
    periodicity: str = Field("monthly", pattern="^(one_time|monthly|quarterly|yearly)$")
    is_active: bool = True


class BillingItemUpdate(APIModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    amount_cents: Optional[int] = Field(None, gt=0)
    periodicity: Optional[str] = Field(None, pattern="^(one_time|monthly|quarterly|yearly)$")
    is_active: Optional[bool] = None


class BillingItemResponse(APIModel):
    id: str
    academy_id: str
    name: str
    description: Optional[str]
    amount_cents: int
    currency: str
    periodicity: str
    is_active: bool


class ChargeCreate(APIModel):
    """
    label and amount_cents may be omitted when billing_item_id is given;
    they are then taken from the item.
    """
    academy_id: str
    athlete_id: str
    billing_item_id: Optional[str] = None
    class_id: Optional[str] = None
    label: Optional[str] = Field(None, min_length=1, max_length=255)
    amount_cents: Optional[int] = Field(None, gt=0)
    currency: str = Field("EUR", min_length=3, max_length=3)
    period: str = Field(..., pattern=PERIOD_PATTERN)
    due_date: Optional[date] = None
    payment_method: Optional[str] = Field(None, pattern=PAYMENT_METHOD_PATTERN)
    notes: Optional[str] = None
    discount_code: Optional[str] = None
    apply_scholarship: bool = True

    @model_validator(mode="after")
    def require_amount_or_item(self):
        if not self.billing_item_id and (self.amount_cents is None or not self.label):
            raise ValueError("label and amountCents are required without billingItemId")
        return self


class ChargeUpdate(APIModel):
    label: Optional[str] = Field(None, min_length=1, max_length=255)
    amount_cents: Optional[int] = Field(None, gt=0)
    due_date: Optional[date] = None
    status: Optional[str] = Field(None, pattern=CHARGE_STATUS_PATTERN)
    payment_method: Optional[str] = Field(None, pattern=PAYMENT_METHOD_PATTERN)
    notes: Optional[str] = None


class ChargeResponse(APIModel):
    id: str
    tenant_id: str
    academy_id: str
    athlete_id: str
    billing_item_id: Optional[str]
    class_id: Optional[str]
    label: str
    amount_cents: int
    currency: str
    period: str
    due_date: Optional[date]
    status: str
    payment_method: Optional[str]
    paid_at: Optional[datetime]
    notes: Optional[str]
    created_at: datetime


class ChargeListResponse(APIModel):
    items: list[ChargeResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class ChargeBulkUpdate(APIModel):
    charge_ids: list[str] = Field(..., min_length=1, max_length=500)
    status: str = Field(..., pattern=CHARGE_STATUS_PATTERN)
    payment_method: Optional[str] = Field(None, pattern=PAYMENT_METHOD_PATTERN)


class GenerateMonthlyRequest(APIModel):
    academy_id: str
    group_id: Optional[str] = None
    period: str = Field(..., pattern=PERIOD_PATTERN)
    skip_duplicates: bool = True


class GenerateMonthlyResponse(APIModel):
    message: str
    created: int
    skipped: int


class DiscountCreate(APIModel):
    academy_id: str
    code: Optional[str] = Field(None, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    discount_type: str = Field(..., pattern=DISCOUNT_TYPE_PATTERN)
    discount_value: float = Field(..., gt=0)
    max_discount: Optional[float] = Field(None, gt=0)
    start_date: date
    end_date: Optional[date] = None
    max_uses: Optional[int] = Field(None, ge=1)
    is_active: bool = True

    @model_validator(mode="after")
    def check_percentage(self):
        if self.discount_type == "percentage" and self.discount_value > 100:
            raise ValueError("percentage discounts cannot exceed 100")
        if self.end_date and self.end_date < self.start_date:
            raise ValueError("endDate must be on or after startDate")
        return self


class DiscountUpdate(APIModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    discount_value: Optional[float] = Field(None, gt=0)
    max_discount: Optional[float] = Field(None, gt=0)
    end_date: Optional[date] = None
    max_uses: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None


class DiscountResponse(APIModel):
    id: str
    academy_id: str
    code: Optional[str]
    name: str
    discount_type: str
    discount_value: float
    max_discount: Optional[float]
    start_date: date
    end_date: Optional[date]
    max_uses: Optional[int]
    current_uses: int
    is_active: bool


class DiscountPreviewRequest(APIModel):
    academy_id: str
    amount: float = Field(..., gt=0)
    discount_code: Optional[str] = None
    athlete_id: Optional[str] = None


class ScholarshipCreate(APIModel):
    academy_id: str
    athlete_id: str
    name: str = Field(..., min_length=1, max_length=255)
    discount_type: str = Field(..., pattern=DISCOUNT_TYPE_PATTERN)
    discount_value: float = Field(..., gt=0)
    start_date: date
    end_date: Optional[date] = None
    is_active: bool = True


class ScholarshipUpdate(APIModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    discount_value: Optional[float] = Field(None, gt=0)
    end_date: Optional[date] = None
    is_active: Optional[bool] = None


class ScholarshipResponse(APIModel):
    id: str
    academy_id: str
    athlete_id: str
    name: str
    discount_type: str
    discount_value: float
    start_date: date
    end_date: Optional[date]
    is_active: bool
