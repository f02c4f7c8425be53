"""Wire models for the order server."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from storefront._types import ZERO, round_cents
from storefront.coupon import Coupon
from storefront.orders import Order, OrderStatus, items_from_json, order_to_wire
from storefront.shipping import ShippingAddress


class CreateOrderIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amount: Decimal = Field(gt=0)
    items: str
    full_name: str = Field("", alias="fullName")
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    zip_code: str = Field("", alias="zipCode")
    country: str = ""
    paypal_order_id: str = Field(alias="paypalOrderId", min_length=1)
    paypal_transaction_id: str = Field(alias="paypalTransactionId", min_length=1)
    subtotal: Decimal | None = None
    discount_amount: Decimal | None = Field(None, alias="discountAmount")
    coupon_id: str | None = Field(None, alias="couponId")
    coupon_code: str | None = Field(None, alias="couponCode")

    def to_domain(self) -> Order:
        """Raises ValueError when `items` is not a JSON list of products."""
        final = round_cents(self.amount)
        discount = round_cents(self.discount_amount or ZERO)
        return Order(
            id="",
            items=items_from_json(self.items),
            subtotal=round_cents(self.subtotal) if self.subtotal is not None else final + discount,
            discount_amount=discount,
            final_amount=final,
            shipping=ShippingAddress(
                full_name=self.full_name.strip(),
                email=self.email.strip(),
                phone=self.phone.strip(),
                address=self.address.strip(),
                city=self.city.strip(),
                zip_code=self.zip_code.strip(),
                country=self.country.strip(),
            ),
            provider_order_id=self.paypal_order_id,
            transaction_id=self.paypal_transaction_id,
            coupon_id=self.coupon_id or None,
            coupon_code=self.coupon_code or None,
        )


class CreateOrderOut(BaseModel):
    success: bool
    order_id: str = Field(alias="orderId")

    @classmethod
    def from_domain(cls, order: Order) -> CreateOrderOut:
        return cls(success=True, orderId=order.id)


class UpdateStatusIn(BaseModel):
    status: OrderStatus


class OrderOut(BaseModel):
    id: str
    amount: str
    subtotal: str
    discount_amount: str = Field(alias="discountAmount")
    items: str
    full_name: str = Field(alias="fullName")
    email: str
    phone: str
    address: str
    city: str
    zip_code: str = Field(alias="zipCode")
    country: str
    paypal_order_id: str = Field(alias="paypalOrderId")
    paypal_transaction_id: str = Field(alias="paypalTransactionId")
    coupon_id: str | None = Field(None, alias="couponId")
    coupon_code: str | None = Field(None, alias="couponCode")
    status: str
    created_at: str = Field(alias="createdAt")

    @classmethod
    def from_domain(cls, order: Order) -> OrderOut:
        return cls.model_validate(order_to_wire(order))


class CouponOut(BaseModel):
    id: str
    code: str
    discount_percent: str = Field(alias="discountPercent")
    active: bool
    usage_count: int = Field(alias="usageCount")

    @classmethod
    def from_domain(cls, coupon: Coupon) -> CouponOut:
        return cls(
            id=coupon.id,
            code=coupon.code,
            discountPercent=str(coupon.discount_percent),
            active=coupon.active,
            usageCount=coupon.usage_count,
        )


class ErrorOut(BaseModel):
    error: str
