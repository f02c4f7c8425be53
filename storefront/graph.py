"""
Node composition — sugar over nodnod.

    @G.node
    class Totals:
        @classmethod
        def __compose__(cls, ctx: ContextNode) -> "Totals": ...

    totals = await G.compose(Totals, context)

Dependencies are discovered from the target; inputs are injected by
their runtime type.
"""

from __future__ import annotations

from typing import Any, cast
from collections.abc import Callable, Coroutine

from nodnod import EventLoopAgent, Node, Scope, Value, scalar_node as node


async def compose[T](target: type[T], *inputs: object) -> T:
    agent = EventLoopAgent.build({cast(type[Node[Any, Any]], target)})
    scope = Scope(detail="compose")

    async with scope:
        for value in inputs:
            scope.push(Value(cast(type[Any], type(value)), value))

        run_method = cast(
            Callable[[Scope, dict[type[Any], Scope]], Coroutine[Any, Any, None]],
            getattr(agent, "run"),
        )
        await run_method(scope, {})

        result = scope.get(target)
        if result is None:
            raise KeyError(f"{target.__name__} not found in scope")
        return cast(T, result.value)


__all__ = ("node", "compose")
