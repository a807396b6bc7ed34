from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

PaymentMethod = Literal["cash", "qr"]
ManualDiscountType = Literal["percent", "fixed"]


class Product(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    product_code: str = Field(alias="productCode")
    product_name: str | None = Field(default=None, alias="productName")
    price: Decimal = Decimal("0")
    promotion_code: str | None = Field(default=None, alias="promotionCode")
    discount_value: Decimal | None = Field(default=None, alias="discountValue")


class CartLineItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_code: str
    product_name: str | None = None
    unit_price_original: Decimal
    quantity: int = Field(default=1, gt=0)
    promotion_code: str | None = None
    discount_value: Decimal | None = None

    @classmethod
    def from_product(cls, product: Product) -> "CartLineItem":
        return cls(
            product_code=product.product_code,
            product_name=product.product_name,
            unit_price_original=product.price,
            quantity=1,
            promotion_code=product.promotion_code,
            discount_value=product.discount_value,
        )


class ManualDiscount(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: ManualDiscountType = "percent"
    value: Decimal = Decimal("0")

    @field_validator("value")
    @classmethod
    def _non_negative(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError("manual discount value must be >= 0")
        return value


class Promotion(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    promotion_code: str = Field(alias="promotionCode")
    value: Decimal | None = None
    status: bool | None = None
    end_date: datetime | None = Field(default=None, alias="endDate")


class MemberInfo(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    customer_code: str | None = None
    name: str = ""
    role: str = ""
    discount_rate: Decimal = Decimal("0")
    loyalty_points: int = 0
    linked_promotion_code: str | None = None
    phone: str | None = None
    email: str | None = None
    address: str | None = None


class OrderDraftLine(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    product_code: str = Field(alias="productCode")
    quantity: int
    promotion_code: str | None = Field(default=None, alias="promotionCode")


class OrderDraft(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    order_code: str = Field(alias="orderCode")
    customer_code: str = Field(alias="customerCode")
    employee_code: str = Field(alias="employeeCode")
    payment_method: str = Field(alias="paymentMethod")
    order_type: str = Field(default="Offline", alias="orderType")
    promotion_customer_code: str | None = Field(default=None, alias="promotionCustomerCode")
    promotion_customer_value: Decimal | None = Field(default=None, alias="promotionCustomerValue")
    coupon_code: str | None = Field(default=None, alias="couponCode")
    coupon_discount_value: Decimal | None = Field(default=None, alias="couponDiscountValue")
    discount: Decimal = Decimal("0")
    note: str | None = None
    address: str | None = None
    phone_number: str | None = Field(default=None, alias="phoneNumber")
    details: tuple[OrderDraftLine, ...] = ()

    def to_payload(self) -> dict:
        payload = self.model_dump(by_alias=True, mode="json", exclude={"order_code"})
        # Decimal dumps as a string in json mode; the order endpoint wants numbers.
        payload["discount"] = _as_number(self.discount)
        payload["promotionCustomerValue"] = _as_number(self.promotion_customer_value)
        payload["couponDiscountValue"] = _as_number(self.coupon_discount_value)
        payload["details"] = [
            line.model_dump(by_alias=True, mode="json", exclude_none=True) for line in self.details
        ]
        return payload


class OrderLine(BaseModel):
    model_config = ConfigDict(extra="allow")

    product_code: str | None = None
    product_name: str | None = None
    quantity: int = 0
    unit_price: Decimal = Decimal("0")


class Order(BaseModel):
    model_config = ConfigDict(extra="allow")

    order_code: str
    payment_method: str | None = None
    total_amount: Decimal = Decimal("0")
    final_amount: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    items: list[OrderLine] = Field(default_factory=list)
    received_amount: Decimal | None = None
    change: Decimal | None = None
    status: str | None = None
    created_at: datetime | None = None


class RecentOrder(BaseModel):
    model_config = ConfigDict(extra="allow")

    order_code: str
    final_amount: Decimal | None = None


def _as_number(value: Decimal | None) -> int | float | None:
    if value is None:
        return None
    if value == value.to_integral_value():
        return int(value)
    return float(value)
