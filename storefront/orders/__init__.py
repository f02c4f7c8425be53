"""
Orders — order value, stores, persistence with retry, recovery log.

    from storefront import orders as O

    persistence = O.OrderPersistence(O.HttpOrderStore(client, endpoint))
    match await persistence.save(order):
        case Ok(saved): saved.id
        case Error(failed): recovery.append(...)
"""

from storefront.orders._types import (
    Order,
    OrderStatus,
    OrderStoreError,
    OrderSaveFailed,
    RecoveryRecord,
    items_from_json,
)
from storefront.orders._policy import RetryPolicy
from storefront.orders._store import (
    OrderStore,
    MemoryOrderStore,
    HttpOrderStore,
    new_order_id,
    order_to_wire,
    order_from_wire,
)
from storefront.orders._sqlalchemy import SQLAlchemyOrderStore
from storefront.orders._persist import OrderPersistence
from storefront.orders._recovery import RecoveryLog, MemoryRecoveryLog, JsonLinesRecoveryLog


__all__ = (
    "Order",
    "OrderStatus",
    "OrderStoreError",
    "OrderSaveFailed",
    "RecoveryRecord",
    "items_from_json",
    "RetryPolicy",
    "OrderStore",
    "MemoryOrderStore",
    "HttpOrderStore",
    "new_order_id",
    "order_to_wire",
    "order_from_wire",
    "SQLAlchemyOrderStore",
    "OrderPersistence",
    "RecoveryLog",
    "MemoryRecoveryLog",
    "JsonLinesRecoveryLog",
)
