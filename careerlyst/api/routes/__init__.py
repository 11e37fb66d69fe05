# API Routes Module
from careerlyst.api.routes import (
    subscriptions,
    transfers,
    webhooks,
    wiza,
)

__all__ = [
    "subscriptions",
    "transfers",
    "webhooks",
    "wiza",
]
