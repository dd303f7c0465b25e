"""External service integrations."""
from integrations.push_gateway import PushGatewayClient, OwnerNotification

__all__ = [
    "PushGatewayClient",
    "OwnerNotification",
]
