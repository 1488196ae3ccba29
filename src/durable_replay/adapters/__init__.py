"""Framework adapters for the replay driver.

- asgi.py: Starlette application exposing runs over HTTP
"""

from durable_replay.adapters.asgi import create_app

__all__ = ["create_app"]
