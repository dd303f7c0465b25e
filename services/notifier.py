"""Fire-and-forget owner notifications."""
from typing import Any, Optional

from config import get_settings
from logging_config import get_logger

logger = get_logger(__name__)
settings = get_settings()


class OwnerNotifier:
    """Enqueue owner notifications without waiting on their delivery.
    
    ``send`` must be called only after the triggering write committed. It
    never raises: delivery is at-most-once and best-effort, and a failure to
    enqueue must not change the outcome of the transition that caused it.
    """
    
    def __init__(self, enabled: Optional[bool] = None):
        self.enabled = settings.notifications_enabled if enabled is None else enabled
    
    def send(self, event: str, load_id: int, **context: Any) -> None:
        """
        Enqueue a notification for the load's owner.
        
        Args:
            event: Event name (see constants.EVENT_*)
            load_id: Load the event is about
            **context: Extra JSON-serialisable fields for the message
        """
        if not self.enabled:
            logger.debug("Notifications disabled, skipping", notify_event=event, load_id=load_id)
            return
        
        try:
            from tasks.celery_tasks import notify_owner
            
            notify_owner.delay(event, load_id, context)
            logger.info("Owner notification queued", notify_event=event, load_id=load_id)
            
        except Exception as e:
            logger.error(
                "Failed to queue owner notification",
                notify_event=event,
                load_id=load_id,
                error=str(e),
                error_type=type(e).__name__,
            )
