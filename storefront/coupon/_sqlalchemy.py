"""SQLAlchemy coupon store for the order server."""

from __future__ import annotations

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront._types import from_cents, to_cents
from storefront.coupon._types import Coupon, normalize_code
from storefront.db import CouponTable


class SQLAlchemyCouponStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find_active(self, code: str) -> Coupon | None:
        async with self._session_factory() as session:
            row = (
                await session.execute(
                    select(CouponTable).where(
                        func.upper(CouponTable.code) == normalize_code(code),
                        CouponTable.active.is_(True),
                    )
                )
            ).scalar_one_or_none()
            return None if row is None else _to_coupon(row)

    async def get(self, coupon_id: str) -> Coupon | None:
        async with self._session_factory() as session:
            row = await session.get(CouponTable, coupon_id)
            return None if row is None else _to_coupon(row)

    async def increment_usage(self, coupon_id: str) -> None:
        async with self._session_factory() as session:
            cursor = await session.execute(
                update(CouponTable)
                .where(CouponTable.id == coupon_id)
                .values(usage_count=CouponTable.usage_count + 1)
            )
            await session.commit()
            if cursor.rowcount == 0:  # type: ignore[attr-defined]
                raise KeyError(coupon_id)

    async def add(self, coupon: Coupon) -> None:
        async with self._session_factory() as session:
            session.add(
                CouponTable(
                    id=coupon.id,
                    code=normalize_code(coupon.code),
                    discount_bps=to_cents(coupon.discount_percent),
                    active=coupon.active,
                    usage_count=coupon.usage_count,
                )
            )
            await session.commit()


def _to_coupon(row: CouponTable) -> Coupon:
    return Coupon(
        id=row.id,
        code=row.code,
        discount_percent=from_cents(row.discount_bps),
        active=row.active,
        usage_count=row.usage_count,
    )
