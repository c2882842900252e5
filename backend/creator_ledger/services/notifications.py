"""Admin notifications raised by ledger activity."""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from creator_ledger.database import unit_of_work
from creator_ledger.exceptions import NotFoundError
from creator_ledger.models.notification import AdminNotification
from creator_ledger.models.states import NotificationType

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def notify(
        self,
        notification_type: NotificationType,
        title: str,
        message: str,
        related_id: Optional[str] = None,
    ) -> AdminNotification:
        """Stage a notification in the caller's transaction."""
        notification = AdminNotification(
            type=NotificationType(notification_type).value,
            title=title,
            message=message,
            related_id=related_id,
        )
        self.db.add(notification)
        await self.db.flush()
        return notification

    async def list_notifications(
        self,
        unread_only: bool = False,
        notification_type: Optional[NotificationType] = None,
    ) -> List[AdminNotification]:
        query = select(AdminNotification)
        if unread_only:
            query = query.where(AdminNotification.is_read.is_(False))
        if notification_type is not None:
            query = query.where(AdminNotification.type == NotificationType(notification_type).value)
        result = await self.db.execute(query.order_by(desc(AdminNotification.created_at)))
        return list(result.scalars().all())

    async def mark_read(self, notification_id: str, admin_id: str) -> AdminNotification:
        async with unit_of_work(self.db):
            notification = await self.db.get(AdminNotification, notification_id)
            if notification is None:
                raise NotFoundError("Notification not found")
            notification.is_read = True
            notification.read_by = admin_id
            notification.read_at = datetime.utcnow()
        return notification
