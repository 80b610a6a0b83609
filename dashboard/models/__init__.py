"""
Pydantic models for dashboard API requests.
"""
from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from models.supplier_order import OrderDetails, OrderItemInput, ReceptionUpdate


class OrderPayload(BaseModel):
    """Create / full-replace update body: header fields plus the complete line set."""
    supplier_id: Optional[int] = None
    order_date: Optional[date] = None
    expected_delivery_date: Optional[date] = None
    currency: Optional[str] = None
    shipping_cost: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")
    payment_terms: Optional[str] = None
    notes: Optional[str] = None
    items: list[OrderItemInput] = Field(default_factory=list)

    def details(self) -> OrderDetails:
        return OrderDetails(**self.model_dump(exclude={"items"}))


class ItemsPayload(BaseModel):
    items: list[OrderItemInput]


class StatusUpdate(BaseModel):
    status: str   # one of the seven order statuses


class ReceptionPayload(BaseModel):
    items: list[ReceptionUpdate]
    advance_status: bool = False   # also move shipped orders to (partially_)delivered


class Credentials(BaseModel):
    email: str
    password: str


class UserUpdate(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class CompanySettingsUpdate(BaseModel):
    company_name: str
    logo_url: Optional[str] = None
    address: Optional[str] = None
    siret: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
