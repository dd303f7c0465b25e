"""Client for the push-notification gateway that reaches load owners."""
from datetime import datetime
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, Field

from config import get_settings
from constants import API_TIMEOUT_DEFAULT
from exceptions import NotificationError
from logging_config import get_logger

logger = get_logger(__name__)
settings = get_settings()


class OwnerNotification(BaseModel):
    """Event payload delivered to the owner of a load."""
    event: str
    load_id: int
    occurred_at: datetime = Field(default_factory=datetime.utcnow)
    context: Dict[str, Any] = Field(default_factory=dict)


class PushGatewayClient:
    """Thin HTTP client for the push gateway.
    
    When no gateway URL is configured the notification is only logged.
    """
    
    def __init__(self, base_url: Optional[str] = None):
        self.base_url = base_url if base_url is not None else settings.push_gateway_url
        self.timeout = API_TIMEOUT_DEFAULT
        self.headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {settings.secret_key}",
        }
    
    def send(self, notification: OwnerNotification) -> bool:
        """
        Deliver one notification.
        
        Args:
            notification: Event to deliver
            
        Returns:
            True if the gateway accepted it, False if no gateway is configured
            
        Raises:
            NotificationError: If the gateway rejected the request
        """
        if not self.base_url:
            logger.info(
                "Push gateway not configured, notification logged only",
                notify_event=notification.event,
                load_id=notification.load_id,
            )
            return False
        
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    f"{self.base_url.rstrip('/')}/notifications/owner",
                    headers=self.headers,
                    json=notification.model_dump(mode="json"),
                )
                response.raise_for_status()
            
            logger.info(
                "Owner notification delivered",
                notify_event=notification.event,
                load_id=notification.load_id,
            )
            return True
            
        except httpx.HTTPError as e:
            logger.error(f"Push gateway error: {e}", notify_event=notification.event, load_id=notification.load_id)
            raise NotificationError(f"Push gateway request failed: {e}") from e
