"""
Simple Handler Example

This example demonstrates the basic registration pattern:
1. Write a business function that reads dependencies from ctx
2. Register factories that build those dependencies
3. Invoke the handler the way a host runtime would

Run: python examples/01-simple-handler/main.py
"""

import itertools
from types import SimpleNamespace

from lambdakit import entry_point

# =============================================================================
# Factories
# =============================================================================

_sequence = itertools.count(1)


def create_greeter(ctx):
    """Builds a greeting from configuration."""
    greeting = ctx.env.get("GREETING", "Hello")
    return {"greet": lambda name: f"{greeting}, {name}!"}


def create_id_generator(ctx):
    return {"next_id": lambda: f"req-{next(_sequence)}"}


# =============================================================================
# Handler
# =============================================================================


@entry_point
def handler(event, ctx):
    return {
        "statusCode": 200,
        "body": ctx["greet"](event.get("name", "world")),
        "requestId": ctx["next_id"](),
        "function": ctx["context"].function_name,
    }


handler.register([create_greeter, create_id_generator])


# =============================================================================
# Main
# =============================================================================


def main():
    meta = SimpleNamespace(function_name="greeter", aws_request_id="local-1")

    print(f"Handler: {handler}")
    print()

    # Same call shape as the AWS Lambda runtime: handler(event, context)
    print(handler({"name": "Ada"}, meta))
    print(handler({"name": "Grace"}, meta))

    handler.close()


if __name__ == "__main__":
    main()
