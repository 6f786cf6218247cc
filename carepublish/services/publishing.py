"""
Publishing Tab

Drives the reviewer's pending-content list: loads it for a facility, runs
approve/reject actions through the gateway, task service and notifier, and
keeps the list and per-item state in step with the outcome.

Action sequence (strictly in order):
1. Reviewer must be signed in
2. Gateway transition
3. Complete the linked task, if any (failure aborts the action)
4. Notify the author (failures only logged)
5. Drop the item from the list
6. Success toast
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from ..logging_config import approval_logger
from ..models.content import storage_type
from ..models.user import User
from ..schemas.content_approval import ContentApproval
from .approval_errors import (
    ApprovalError,
    ContentNoLongerPending,
    ContentNotFound,
    Toast,
    handle_approval_action_error,
    handle_approval_error,
    show_error_toast,
    success_toast,
)
from .content_approval import PENDING_APPROVAL, ContentApprovalGateway
from .notifications import NotificationService
from .tasks import TaskService

HIGHLIGHT_SECONDS = 5

ItemKey = Tuple[str, str]


def item_key(content_type: str, content_id: str) -> ItemKey:
    """Identity of a list item; ids are only unique within one content table."""
    return storage_type(content_type), content_id


class ListState(str, Enum):
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


class ItemState(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    REMOVED = "removed"
    ERROR = "error"


@dataclass
class Highlight:
    """Scroll-to and highlight directive for a deep-linked item"""
    content_id: str
    duration_seconds: int = HIGHLIGHT_SECONDS


@dataclass
class ActionOutcome:
    """Result of one approve/reject action"""
    ok: bool
    content_id: str
    item_state: ItemState
    toast: Optional[Toast] = None
    error: Optional[ApprovalError] = None
    task_completed: bool = False
    notified: bool = False
    gateway_called: bool = False


class PublishingTab:
    """Pending-content list for one reviewer session."""

    def __init__(
        self,
        gateway: ContentApprovalGateway,
        tasks: TaskService,
        notifications: NotificationService,
        highlight_id: Optional[str] = None,
    ):
        self.gateway = gateway
        self.tasks = tasks
        self.notifications = notifications
        self.highlight_id = highlight_id
        self.state = ListState.LOADING
        self.items: List[ContentApproval] = []
        self.item_states: Dict[ItemKey, ItemState] = {}
        self.error: Optional[ApprovalError] = None

    # ------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------

    def load(self, facility_id: str, reviewer_id: Optional[int] = None) -> List[ContentApproval]:
        self.state = ListState.LOADING
        try:
            self.items = self.gateway.get_pending_content(facility_id, reviewer_id)
        except Exception as e:
            self.error = handle_approval_error(e, {"operation": "load", "facility_id": facility_id})
            self.state = ListState.ERROR
            self.items = []
            return self.items

        self.item_states = {item_key(item.type, item.id): ItemState.IDLE for item in self.items}
        self.error = None
        self.state = ListState.LOADED
        return self.items

    def highlight(self) -> Optional[Highlight]:
        """Highlight directive once the requested item is in the loaded list."""
        if self.highlight_id and self.state == ListState.LOADED and self.find(self.highlight_id):
            return Highlight(content_id=self.highlight_id)
        return None

    def find(self, content_id: str, content_type: Optional[str] = None) -> Optional[ContentApproval]:
        """First listed item with this id, of this type when one is given."""
        for item in self.items:
            if item.id != content_id:
                continue
            if content_type is None or storage_type(item.type) == storage_type(content_type):
                return item
        return None

    def item_state(self, content_id: str, content_type: Optional[str] = None) -> ItemState:
        item = self.find(content_id, content_type)
        if item is not None:
            return self.item_states.get(item_key(item.type, item.id), ItemState.IDLE)
        if content_type is not None:
            return self.item_states.get(item_key(content_type, content_id), ItemState.IDLE)
        return ItemState.IDLE

    # ------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------

    def approve(self, content_id: str, user: Optional[User], comment: Optional[str] = None,
                content_type: Optional[str] = None) -> ActionOutcome:
        return self._run_action("approve", content_id, user, comment, content_type)

    def reject(self, content_id: str, user: Optional[User], reason: Optional[str],
               content_type: Optional[str] = None) -> ActionOutcome:
        reason = (reason or "").strip()
        if not reason:
            # Reject stays disabled until a reason is entered
            return ActionOutcome(
                ok=False,
                content_id=content_id,
                item_state=self.item_state(content_id, content_type),
            )
        return self._run_action("reject", content_id, user, reason, content_type)

    def _missing_item(self, content_id: str, content_type: Optional[str]) -> Exception:
        """Explain why an item is not in the list: gone, or already processed."""
        if content_type is not None:
            try:
                current_status = self.gateway.get_content_status(content_id, content_type)
            except Exception as e:
                return e
            if current_status is not None and current_status != PENDING_APPROVAL:
                return ContentNoLongerPending(content_id, current_status)
        return ContentNotFound(content_id, content_type or "content")

    def _run_action(self, action: str, content_id: str, user: Optional[User], note: Optional[str],
                    content_type: Optional[str] = None) -> ActionOutcome:
        if user is None:
            return ActionOutcome(
                ok=False,
                content_id=content_id,
                item_state=self.item_state(content_id, content_type),
                toast=Toast(kind="error", message="You must be signed in to review content.", duration_ms=5000),
            )

        item = self.find(content_id, content_type)
        if item is None:
            error = handle_approval_action_error(self._missing_item(content_id, content_type), action)
            return ActionOutcome(
                ok=False,
                content_id=content_id,
                item_state=ItemState.ERROR,
                toast=show_error_toast(error),
                error=error,
            )

        key = item_key(item.type, item.id)
        self.item_states[key] = ItemState.PROCESSING
        outcome = ActionOutcome(ok=False, content_id=content_id, item_state=ItemState.PROCESSING)
        task_action = "approved" if action == "approve" else "rejected"

        try:
            outcome.gateway_called = True
            if action == "approve":
                self.gateway.approve_content(item.id, item.type, user.id)
            else:
                self.gateway.reject_content(item.id, item.type, user.id, note)

            if item.task_id is not None:
                self.tasks.complete_content_approval_task(item.task_id, task_action, note, user.id)
                outcome.task_completed = True
        except Exception as e:
            error = handle_approval_action_error(e, action, {"content_id": item.id, "content_type": item.type})
            self.item_states[key] = ItemState.ERROR
            outcome.item_state = ItemState.ERROR
            outcome.error = error
            outcome.toast = show_error_toast(error)
            return outcome

        outcome.notified = self._notify_author(item, task_action, user, note if action == "reject" else None)

        self.items = [i for i in self.items if item_key(i.type, i.id) != key]
        self.item_states[key] = ItemState.REMOVED
        outcome.ok = True
        outcome.item_state = ItemState.REMOVED
        verb = "approved and published" if action == "approve" else "rejected"
        outcome.toast = success_toast(f'"{item.title}" was {verb}.')
        return outcome

    def _notify_author(self, item: ContentApproval, action: str, user: User, reason: Optional[str]) -> bool:
        try:
            self.notifications.notify_content_decision(item, action, user, reason)
            return True
        except Exception as e:
            approval_logger.warning(
                "Failed to notify content author",
                error=e,
                content_id=item.id,
                author_id=item.author_id,
            )
            self.notifications.db.rollback()
            return False
