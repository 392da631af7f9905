"""
StudyMate - Study Reminder Scheduler
Schedules one-shot reminders for planned sessions and pushes them to WebSocket clients.
"""

import asyncio
from datetime import datetime
from typing import Callable, Dict, List, Optional, Set

from clock import now as clock_now
from logger import get_logger
from models import ScheduledReminder


log = get_logger("notifications")

# Connected WebSocket clients
connected_clients: Set = set()


# ============================================
# REMINDER SCHEDULER
# ============================================

class ReminderScheduler:
    """
    In-process reminder scheduling on the running event loop.

    The reminder handle is the identifier it was scheduled under, so
    scheduling again for the same identifier replaces the earlier reminder.
    """

    def __init__(self, now: Callable[[], datetime] = clock_now):
        self._now = now
        self._reminders: Dict[str, ScheduledReminder] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    def schedule_reminder(
        self,
        identifier: str,
        title: str,
        body: str,
        at: datetime
    ) -> Optional[str]:
        """Schedule a reminder. Returns the handle, or None when `at` is not in the future."""
        self.cancel_reminder(identifier)

        delay = (at - self._now()).total_seconds()
        if delay <= 0:
            log.debug("Not scheduling reminder %s for past time %s", identifier, at.isoformat())
            return None

        reminder = ScheduledReminder(handle=identifier, title=title, body=body, at=at)
        self._reminders[identifier] = reminder
        self._tasks[identifier] = asyncio.get_running_loop().create_task(self._fire_after(reminder, delay))
        log.info("Reminder %s scheduled for %s", identifier, at.isoformat())
        return identifier

    def cancel_reminder(self, handle: Optional[str]):
        """Cancel a scheduled reminder. Unknown handles are ignored."""
        if not handle:
            return
        task = self._tasks.pop(handle, None)
        self._reminders.pop(handle, None)
        if task is not None:
            task.cancel()
            log.info("Reminder %s cancelled", handle)

    def cancel_all(self):
        for handle in list(self._tasks):
            self.cancel_reminder(handle)

    def list_scheduled(self) -> List[ScheduledReminder]:
        return sorted(self._reminders.values(), key=lambda r: r.at)

    def is_scheduled(self, handle: str) -> bool:
        return handle in self._reminders

    async def _fire_after(self, reminder: ScheduledReminder, delay: float):
        await asyncio.sleep(delay)
        self._tasks.pop(reminder.handle, None)
        self._reminders.pop(reminder.handle, None)
        log.info("Reminder %s fired: %s", reminder.handle, reminder.body)
        await broadcast_notification(reminder)


# ============================================
# WEBSOCKET MANAGEMENT
# ============================================

async def register_client(websocket):
    """Register a new WebSocket client."""
    connected_clients.add(websocket)
    log.info("WebSocket client connected. Total: %d", len(connected_clients))


async def unregister_client(websocket):
    """Remove a WebSocket client."""
    connected_clients.discard(websocket)
    log.info("WebSocket client disconnected. Total: %d", len(connected_clients))


async def broadcast_notification(reminder: ScheduledReminder):
    """Broadcast a fired reminder to all connected WebSocket clients."""
    if not connected_clients:
        return

    message = {
        "type": "reminder",
        "data": serialize_reminder(reminder)
    }

    disconnected = set()
    for client in list(connected_clients):
        try:
            await client.send_json(message)
        except Exception as e:
            log.debug("Dropping WebSocket client after send failure: %s", e)
            disconnected.add(client)

    for client in disconnected:
        connected_clients.discard(client)


def serialize_reminder(reminder: ScheduledReminder) -> Dict:
    """Serialize reminder for JSON transmission."""
    return reminder.model_dump(mode="json", by_alias=True)
