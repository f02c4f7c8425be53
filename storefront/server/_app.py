"""
Order server — FastAPI app backing `HttpOrderStore` and `HttpCouponStore`.

    app = create_app(SQLAlchemyOrderStore(sf), SQLAlchemyCouponStore(sf))

or, from the environment (e.g. `uvicorn --factory`):

    app = create_app_from_settings()
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import fastapi
import structlog
from combinators import lift as L
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from kungfu import Error

from storefront.config import Settings
from storefront.coupon import SQLAlchemyCouponStore
from storefront.db import create_database
from storefront.orders import OrderStoreError, SQLAlchemyOrderStore
from storefront.server._schemas import (
    CouponOut,
    CreateOrderIn,
    CreateOrderOut,
    ErrorOut,
    OrderOut,
    UpdateStatusIn,
)

log = structlog.get_logger()


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content=ErrorOut(error=message).model_dump())


def _orders(request: fastapi.Request) -> SQLAlchemyOrderStore:
    return request.app.state.orders


def _coupons(request: fastapi.Request) -> SQLAlchemyCouponStore:
    return request.app.state.coupons


def _mount(app: fastapi.FastAPI) -> fastapi.FastAPI:
    @app.exception_handler(RequestValidationError)
    async def _invalid(request: fastapi.Request, exc: RequestValidationError) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'][1:]) or 'body'}: {err['msg']}"
            for err in exc.errors()
        )
        return _error(400, f"Invalid request: {details}")

    @app.post("/api/create-order", response_model=CreateOrderOut, responses={400: {"model": ErrorOut}, 500: {"model": ErrorOut}})
    async def create_order(
        body: CreateOrderIn,
        orders: SQLAlchemyOrderStore = fastapi.Depends(_orders),
        coupons: SQLAlchemyCouponStore = fastapi.Depends(_coupons),
    ) -> CreateOrderOut | JSONResponse:
        try:
            order = body.to_domain()
        except ValueError as e:
            return _error(400, f"Invalid items: {e}")

        bound = log.bind(transaction_id=order.transaction_id, provider_order_id=order.provider_order_id)
        try:
            saved, created = await orders.create_or_get(order)
        except OrderStoreError as e:
            bound.error("server.order_save_failed", error=e.message)
            return _error(500, "Failed to save order")

        if created and saved.coupon_id:
            coupon_id = saved.coupon_id
            usage = await L.catching_async(lambda: coupons.increment_usage(coupon_id), on_error=repr)
            match usage:
                case Error(reason):
                    bound.warning("server.coupon_usage_failed", coupon_id=coupon_id, error=reason)

        bound.info("server.order_created" if created else "server.order_replayed", order_id=saved.id)
        return CreateOrderOut.from_domain(saved)

    @app.get("/api/orders", response_model=OrderOut)
    async def find_order(
        transaction_id: str = fastapi.Query(alias="transactionId"),
        orders: SQLAlchemyOrderStore = fastapi.Depends(_orders),
    ) -> OrderOut | JSONResponse:
        order = await orders.get_by_transaction(transaction_id)
        if order is None:
            return _error(404, "Order not found")
        return OrderOut.from_domain(order)

    @app.get("/api/orders/{order_id}", response_model=OrderOut)
    async def get_order(
        order_id: str,
        orders: SQLAlchemyOrderStore = fastapi.Depends(_orders),
    ) -> OrderOut | JSONResponse:
        order = await orders.get(order_id)
        if order is None:
            return _error(404, "Order not found")
        return OrderOut.from_domain(order)

    @app.patch("/api/orders/{order_id}", response_model=OrderOut)
    async def update_order_status(
        order_id: str,
        body: UpdateStatusIn,
        orders: SQLAlchemyOrderStore = fastapi.Depends(_orders),
    ) -> OrderOut | JSONResponse:
        try:
            order = await orders.update_status(order_id, body.status)
        except OrderStoreError as e:
            return _error(e.status or 500, e.message)
        return OrderOut.from_domain(order)

    @app.get("/api/coupons/{code}", response_model=CouponOut)
    async def get_coupon(
        code: str,
        coupons: SQLAlchemyCouponStore = fastapi.Depends(_coupons),
    ) -> CouponOut | JSONResponse:
        coupon = await coupons.find_active(code)
        if coupon is None:
            return _error(404, "Coupon not found")
        return CouponOut.from_domain(coupon)

    return app


def create_app(orders: SQLAlchemyOrderStore, coupons: SQLAlchemyCouponStore) -> fastapi.FastAPI:
    app = fastapi.FastAPI(title="storefront")
    app.state.orders = orders
    app.state.coupons = coupons
    return _mount(app)


def create_app_from_settings(settings: Settings | None = None) -> fastapi.FastAPI:
    settings = settings if settings is not None else Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: fastapi.FastAPI) -> AsyncIterator[None]:
        session_factory, engine = await create_database(settings.database_url)
        dialect = engine.dialect.name
        app.state.orders = SQLAlchemyOrderStore(session_factory, dialect=dialect)
        app.state.coupons = SQLAlchemyCouponStore(session_factory)
        log.info("server.started", database=engine.url.render_as_string(hide_password=True))
        try:
            yield
        finally:
            await engine.dispose()

    return _mount(fastapi.FastAPI(title="storefront", lifespan=lifespan))
