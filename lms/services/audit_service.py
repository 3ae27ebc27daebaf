import logging

from fastapi import BackgroundTasks

from lms.db import database
from lms.db.models import AdminActionLog, User

logger = logging.getLogger("admin_audit")


async def log_admin_action(admin_id: int, action: str, entity: str, entity_id: str):
    try:
        async with database.AsyncSessionLocal() as session:
            session.add(AdminActionLog(admin_id=admin_id, action=action, entity=entity, entity_id=entity_id))
            await session.commit()
        logger.info(f"[ADMIN_ACTION] admin={admin_id} action={action} entity={entity} entityId={entity_id}")
    except Exception as err:
        logger.error(f"Failed to log admin action: {err}")


def record_admin_action(background_tasks: BackgroundTasks, admin: User, action: str, entity: str, entity_id):
    """Schedule the audit row; call only after the action succeeded."""
    background_tasks.add_task(log_admin_action, admin.id, action, entity, str(entity_id) if entity_id is not None else "unknown")
