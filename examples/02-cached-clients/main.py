"""
Cached Clients Example

Shows warm-invocation caching, dependent registrations, post-processors,
and failure normalization:

- The datastore client is built once and reused for 60 seconds
- The repository registration reads the client built before it
- A post-processor instruments the client before the handler runs
- A failing invocation is reported through the callback, not raised

Run: python examples/02-cached-clients/main.py
"""

import asyncio
import logging

from lambdakit import AdapterSettings, CollisionPolicy, EntryPointAdapter

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)

# =============================================================================
# Fake datastore
# =============================================================================


class FakeTableClient:
    """Stands in for an async datastore client."""

    instances = 0

    def __init__(self, table: str):
        FakeTableClient.instances += 1
        self.table = table
        self._items = {"order-1": {"id": "order-1", "total": 42}}

    async def get_item(self, key: str) -> dict:
        await asyncio.sleep(0.01)
        if key not in self._items:
            raise KeyError(key)
        return self._items[key]


# =============================================================================
# Factories and post-processors
# =============================================================================


async def create_table_client(ctx):
    await asyncio.sleep(0.05)  # connection setup
    return {"table": FakeTableClient(ctx.env.get("TABLE_NAME", "orders"))}


def create_repository(ctx):
    table = ctx["table"]

    async def find_order(order_id: str) -> dict:
        return await table.get_item(order_id)

    return {"find_order": find_order}


def log_client(deps):
    logging.getLogger("example").info(f"Table client ready: {deps['table'].table}")


# =============================================================================
# Handler
# =============================================================================


async def get_order(event, ctx):
    order = await ctx["find_order"](event["id"])
    return {"statusCode": 200, "body": order}


handler = (
    EntryPointAdapter(
        get_order,
        settings=AdapterSettings(collision_policy=CollisionPolicy.WARN),
        environment=lambda: {"TABLE_NAME": "orders"},
    )
    .register(create_table_client, {"cache": {"max_age": 60_000}})
    .post_processor(log_client)
    .register(create_repository, {"cache": {"enabled": False}})
)


def on_result(error, value):
    if error is not None:
        print(f"Failed: {error!r}")
    else:
        print(f"Succeeded: {value}")


async def main():
    await handler.handle({"id": "order-1"}, None, on_result)
    await handler.handle({"id": "order-1"}, None, on_result)
    await handler.handle({"id": "missing"}, None, on_result)

    print()
    print(f"Table clients built: {FakeTableClient.instances}")


if __name__ == "__main__":
    asyncio.run(main())
