"""
SQLAlchemy order store.

Insert with ON CONFLICT DO NOTHING on `transaction_id`, then read the row
back, so concurrent or repeated creates converge on one order.
"""

from __future__ import annotations

import json
from typing import Any

import structlog
from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront._types import from_cents, to_cents
from storefront.cart import normalize_item
from storefront.db import OrderTable
from storefront.orders._store import new_order_id
from storefront.orders._types import Order, OrderStatus, OrderStoreError
from storefront.shipping import ShippingAddress

log = structlog.get_logger()


class SQLAlchemyOrderStore:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        dialect: str = "sqlite",
    ) -> None:
        self._session_factory = session_factory
        self._insert = pg_insert if dialect == "postgresql" else sqlite_insert

    async def create(self, order: Order) -> Order:
        saved, _ = await self.create_or_get(order)
        return saved

    async def create_or_get(self, order: Order) -> tuple[Order, bool]:
        """Returns (stored order, True if this call inserted it)."""
        stmt = (
            self._insert(OrderTable)
            .values(**_to_row(order.with_id(new_order_id())))
            .on_conflict_do_nothing(index_elements=["transaction_id"])
        )
        try:
            async with self._session_factory() as session:
                cursor = await session.execute(stmt)
                await session.commit()
                created = cursor.rowcount > 0  # type: ignore[attr-defined]

                row = (
                    await session.execute(
                        select(OrderTable).where(OrderTable.transaction_id == order.transaction_id)
                    )
                ).scalar_one()
                saved = _to_order(row)
        except SQLAlchemyError as e:
            raise OrderStoreError(f"Failed to save order: {e}") from e

        if not created:
            log.info("order.duplicate_create", order_id=saved.id, transaction_id=order.transaction_id)
        return saved, created

    async def get(self, order_id: str) -> Order | None:
        async with self._session_factory() as session:
            row = await session.get(OrderTable, order_id)
            return None if row is None else _to_order(row)

    async def get_by_transaction(self, transaction_id: str) -> Order | None:
        async with self._session_factory() as session:
            row = (
                await session.execute(
                    select(OrderTable).where(OrderTable.transaction_id == transaction_id)
                )
            ).scalar_one_or_none()
            return None if row is None else _to_order(row)

    async def update_status(self, order_id: str, status: OrderStatus) -> Order:
        async with self._session_factory() as session:
            cursor = await session.execute(
                update(OrderTable).where(OrderTable.id == order_id).values(status=status.value)
            )
            await session.commit()
        if cursor.rowcount == 0:  # type: ignore[attr-defined]
            raise OrderStoreError(f"Order {order_id} not found", status=404)
        order = await self.get(order_id)
        if order is None:
            raise OrderStoreError(f"Order {order_id} vanished after update", status=500)
        return order


def _to_row(order: Order) -> dict[str, Any]:
    return {
        "id": order.id,
        "transaction_id": order.transaction_id,
        "provider_order_id": order.provider_order_id,
        "items_json": json.dumps([item.to_dict() for item in order.items]),
        "subtotal_cents": to_cents(order.subtotal),
        "discount_cents": to_cents(order.discount_amount),
        "amount_cents": to_cents(order.final_amount),
        "full_name": order.shipping.full_name,
        "email": order.shipping.email,
        "phone": order.shipping.phone,
        "address": order.shipping.address,
        "city": order.shipping.city,
        "zip_code": order.shipping.zip_code,
        "country": order.shipping.country,
        "coupon_id": order.coupon_id,
        "coupon_code": order.coupon_code,
        "status": order.status.value,
        "created_at": order.created_at.replace(tzinfo=None),
    }


def _to_order(row: OrderTable) -> Order:
    items = tuple(item for item in map(normalize_item, json.loads(row.items_json)) if item is not None)
    shipping = ShippingAddress(
        full_name=row.full_name,
        email=row.email,
        phone=row.phone,
        address=row.address,
        city=row.city,
        zip_code=row.zip_code,
        country=row.country,
    )
    return Order(
        id=row.id,
        items=items,
        subtotal=from_cents(row.subtotal_cents),
        discount_amount=from_cents(row.discount_cents),
        final_amount=from_cents(row.amount_cents),
        shipping=shipping,
        provider_order_id=row.provider_order_id,
        transaction_id=row.transaction_id,
        coupon_id=row.coupon_id,
        coupon_code=row.coupon_code,
        status=OrderStatus(row.status),
        created_at=row.created_at,
    )
