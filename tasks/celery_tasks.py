"""Celery background tasks."""
from typing import Any, Dict, Optional

from tasks.celery_app import celery_app
from models.database import db_session
from integrations.push_gateway import OwnerNotification, PushGatewayClient
from services.damage_ledger import DamageLedger
from logging_config import get_logger

logger = get_logger(__name__)


@celery_app.task(name="tasks.celery_tasks.notify_owner")
def notify_owner(event: str, load_id: int, context: Optional[Dict[str, Any]] = None):
    """Deliver one owner notification; never retried."""
    try:
        notification = OwnerNotification(event=event, load_id=load_id, context=context or {})
        delivered = PushGatewayClient().send(notification)
        return {"event": event, "load_id": load_id, "delivered": delivered}

    except Exception as e:
        logger.error(f"Error delivering owner notification: {e}", notify_event=event, load_id=load_id)
        return {"event": event, "load_id": load_id, "delivered": False}


@celery_app.task(name="tasks.celery_tasks.finalize_damage_removal")
def finalize_damage_removal(removal_id: int):
    """Commit one soft-deleted damage item once its undo window elapsed."""
    with db_session() as db:
        try:
            committed = DamageLedger(db).finalize_removal(removal_id)
            return {"removal_id": removal_id, "committed": committed}

        except Exception as e:
            logger.error(f"Error finalizing damage removal {removal_id}: {e}")
            raise


@celery_app.task(name="tasks.celery_tasks.finalize_expired_damage_removals")
def finalize_expired_damage_removals():
    """Sweep pending damage removals whose undo window elapsed."""
    with db_session() as db:
        try:
            committed = DamageLedger(db).finalize_expired_removals()
            logger.info(f"Damage removal sweep complete: {committed} removals committed")
            return {"committed": committed}

        except Exception as e:
            logger.error(f"Error sweeping damage removals: {e}")
            raise
