"""
Tests for the publishing tab and publishing endpoints.
"""
import logging
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from carepublish.models import Course, Notification, Policy, Task
from carepublish.schemas.content_approval import ContentApproval
from carepublish.services.approval_errors import ApprovalErrorCode, ContentNoLongerPending
from carepublish.services.publishing import ItemState, ListState, PublishingTab
from carepublish.services.tasks import TaskError


def pending_item(content_id="c-1", title="Fire Safety", task_id=7, minutes=0, content_type="course"):
    return ContentApproval(
        id=content_id,
        title=title,
        type=content_type,
        author_id=5,
        author_name="Casey Nguyen",
        submitted_at=datetime(2026, 10, 1, 9, minutes),
        facility_id="facility-001",
        task_id=task_id,
    )


@pytest.fixture
def parent():
    """Shared mock so calls across collaborators keep their order."""
    parent = MagicMock()
    parent.gateway.get_pending_content.return_value = [
        pending_item("c-2", "Hand Hygiene", task_id=None, minutes=5),
        pending_item("c-1", "Fire Safety", task_id=7),
    ]
    return parent


@pytest.fixture
def tab(parent):
    tab = PublishingTab(parent.gateway, parent.tasks, parent.notifications, highlight_id="c-1")
    tab.load("facility-001", reviewer_id=1)
    parent.reset_mock()
    return tab


@pytest.fixture
def reviewer():
    return SimpleNamespace(id=1, display_name="Alex Morgan")


class TestPublishingTabLoad:
    def test_load(self, tab):
        assert tab.state == ListState.LOADED
        assert [i.id for i in tab.items] == ["c-2", "c-1"]
        assert tab.item_states == {("course", "c-2"): ItemState.IDLE, ("course", "c-1"): ItemState.IDLE}

    def test_starts_loading(self, parent):
        tab = PublishingTab(parent.gateway, parent.tasks, parent.notifications)
        assert tab.state == ListState.LOADING
        assert tab.highlight() is None

    def test_load_failure(self, parent):
        parent.gateway.get_pending_content.side_effect = Exception("Failed to fetch")
        tab = PublishingTab(parent.gateway, parent.tasks, parent.notifications)

        assert tab.load("facility-001") == []
        assert tab.state == ListState.ERROR
        assert tab.error.code == ApprovalErrorCode.NETWORK_ERROR

    def test_highlight(self, tab):
        directive = tab.highlight()
        assert directive.content_id == "c-1"
        assert directive.duration_seconds == 5

    def test_highlight_for_item_not_in_list(self, parent):
        tab = PublishingTab(parent.gateway, parent.tasks, parent.notifications, highlight_id="gone")
        tab.load("facility-001")
        assert tab.highlight() is None


class TestPublishingTabActions:
    def test_approve_runs_steps_in_order(self, tab, parent, reviewer):
        outcome = tab.approve("c-1", reviewer, "Looks good")

        assert [c[0] for c in parent.mock_calls] == [
            "gateway.approve_content",
            "tasks.complete_content_approval_task",
            "notifications.notify_content_decision",
        ]
        parent.gateway.approve_content.assert_called_once_with("c-1", "course", 1)
        parent.tasks.complete_content_approval_task.assert_called_once_with(7, "approved", "Looks good", 1)
        assert outcome.ok is True
        assert outcome.task_completed is True
        assert outcome.notified is True
        assert outcome.item_state == ItemState.REMOVED
        assert outcome.toast.kind == "success"
        assert outcome.toast.message == '"Fire Safety" was approved and published.'
        assert [i.id for i in tab.items] == ["c-2"]

    def test_item_without_task_skips_completion(self, tab, parent, reviewer):
        outcome = tab.approve("c-2", reviewer)

        parent.tasks.complete_content_approval_task.assert_not_called()
        assert outcome.ok is True
        assert outcome.task_completed is False

    def test_reject(self, tab, parent, reviewer):
        outcome = tab.reject("c-1", reviewer, "  Needs citations  ")

        parent.gateway.reject_content.assert_called_once_with("c-1", "course", 1, "Needs citations")
        parent.tasks.complete_content_approval_task.assert_called_once_with(7, "rejected", "Needs citations", 1)
        item, action, user, reason = parent.notifications.notify_content_decision.call_args[0]
        assert (item.id, action, reason) == ("c-1", "rejected", "Needs citations")
        assert outcome.toast.message == '"Fire Safety" was rejected.'

    @pytest.mark.parametrize("reason", ["", "   ", None])
    def test_reject_requires_reason(self, tab, parent, reviewer, reason):
        outcome = tab.reject("c-1", reviewer, reason)

        assert parent.mock_calls == []
        assert outcome.ok is False
        assert outcome.gateway_called is False
        assert outcome.toast is None
        assert tab.find("c-1") is not None

    def test_signed_out_reviewer(self, tab, parent):
        outcome = tab.approve("c-1", None)

        assert parent.mock_calls == []
        assert outcome.ok is False
        assert outcome.toast.message == "You must be signed in to review content."
        assert tab.find("c-1") is not None

    def test_gateway_failure_keeps_item(self, tab, parent, reviewer):
        parent.gateway.approve_content.side_effect = ContentNoLongerPending("c-1", "approved")

        outcome = tab.approve("c-1", reviewer)

        parent.tasks.complete_content_approval_task.assert_not_called()
        parent.notifications.notify_content_decision.assert_not_called()
        assert outcome.ok is False
        assert outcome.item_state == ItemState.ERROR
        assert outcome.error.code == ApprovalErrorCode.CONCURRENT_MODIFICATION
        assert outcome.toast.message == "This content was already approved or rejected by another reviewer."
        assert tab.item_states[("course", "c-1")] == ItemState.ERROR
        assert tab.find("c-1") is not None

    def test_task_failure_aborts_action(self, tab, parent, reviewer):
        parent.tasks.complete_content_approval_task.side_effect = TaskError("Task 7 is already completed")

        outcome = tab.approve("c-1", reviewer)

        parent.gateway.approve_content.assert_called_once()
        parent.notifications.notify_content_decision.assert_not_called()
        assert outcome.ok is False
        assert outcome.gateway_called is True
        assert outcome.toast.kind == "error"
        assert tab.find("c-1") is not None

    def test_notification_failure_is_not_fatal(self, tab, parent, reviewer, caplog):
        parent.notifications.notify_content_decision.side_effect = Exception("mail server down")

        with caplog.at_level(logging.WARNING, logger="carepublish.approval"):
            outcome = tab.approve("c-1", reviewer)

        assert outcome.ok is True
        assert outcome.notified is False
        assert outcome.item_state == ItemState.REMOVED
        assert tab.find("c-1") is None
        parent.notifications.db.rollback.assert_called_once()
        assert any(r.getMessage() == "Failed to notify content author" for r in caplog.records)

    def test_item_already_processed(self, tab, parent, reviewer):
        parent.gateway.get_content_status.return_value = "rejected"

        outcome = tab.approve("c-9", reviewer, content_type="policy")

        parent.gateway.approve_content.assert_not_called()
        assert outcome.error.code == ApprovalErrorCode.CONCURRENT_MODIFICATION

    def test_item_missing(self, tab, parent, reviewer):
        parent.gateway.get_content_status.return_value = None

        outcome = tab.reject("c-9", reviewer, "No", content_type="policy")

        assert outcome.error.code == ApprovalErrorCode.CONTENT_NOT_FOUND
        assert outcome.toast.message == "The content you are trying to reject no longer exists."


class TestSharedContentIds:
    """Ids are only unique within one content table."""

    @pytest.fixture
    def shared_tab(self, parent):
        parent.gateway.get_pending_content.return_value = [
            pending_item("c1", "Visitor Policy", task_id=8, minutes=5, content_type="policy"),
            pending_item("c1", "Fire Safety", task_id=7),
        ]
        tab = PublishingTab(parent.gateway, parent.tasks, parent.notifications)
        tab.load("facility-001", reviewer_id=1)
        parent.reset_mock()
        return tab

    def test_states_are_tracked_per_type(self, shared_tab):
        assert shared_tab.item_states == {("policy", "c1"): ItemState.IDLE, ("course", "c1"): ItemState.IDLE}
        assert shared_tab.find("c1", "course").title == "Fire Safety"
        assert shared_tab.find("c1", "learning_pathway").title == "Fire Safety"
        assert shared_tab.find("c1", "procedure") is None

    def test_approve_touches_only_the_requested_type(self, shared_tab, parent, reviewer):
        outcome = shared_tab.approve("c1", reviewer, content_type="policy")

        assert outcome.ok is True
        parent.gateway.approve_content.assert_called_once_with("c1", "policy", 1)
        parent.tasks.complete_content_approval_task.assert_called_once_with(8, "approved", None, 1)
        assert [(i.type, i.id) for i in shared_tab.items] == [("course", "c1")]
        assert shared_tab.item_states == {("policy", "c1"): ItemState.REMOVED, ("course", "c1"): ItemState.IDLE}

    def test_failure_marks_only_the_requested_type(self, shared_tab, parent, reviewer):
        parent.gateway.reject_content.side_effect = ContentNoLongerPending("c1", "approved")

        shared_tab.reject("c1", reviewer, "Outdated", content_type="course")

        assert shared_tab.item_states[("course", "c1")] == ItemState.ERROR
        assert shared_tab.item_states[("policy", "c1")] == ItemState.IDLE
        assert len(shared_tab.items) == 2


class TestPublishingEndpoints:
    def test_pending_list(self, client, admin_headers, make_content):
        older = make_content("course", minutes=0)
        newer = make_content("policy", minutes=30)

        response = client.get("/api/publishing/pending", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "loaded"
        assert [i["id"] for i in data["items"]] == [newer.id, older.id]
        assert data["items"][0]["author_name"] == "Casey Nguyen"
        assert data["highlight"] is None

    def test_pending_list_highlight(self, client, admin_headers, make_content):
        row = make_content("procedure")

        response = client.get(f"/api/publishing/pending?highlight={row.id}", headers=admin_headers)

        assert response.json()["highlight"] == {"content_id": row.id, "duration_seconds": 5}

    def test_pending_requires_approver(self, client, author, headers_for):
        response = client.get("/api/publishing/pending", headers=headers_for(author))
        assert response.status_code == 403
        assert response.json()["error_code"] == "FORBIDDEN"

    def test_pending_unauthenticated(self, client):
        response = client.get("/api/publishing/pending")
        assert response.status_code == 401

    def test_approve(self, client, db, admin_user, admin_headers, author, make_content):
        row = make_content("course", title="Fire Safety")

        response = client.post(f"/api/publishing/course/{row.id}/approve", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["item_state"] == "removed"
        assert data["notified"] is True
        assert data["toast"]["message"] == '"Fire Safety" was approved and published.'

        db.expire_all()
        course = db.get(Course, row.id)
        assert course.approval_status == "approved"
        assert course.approved_by == admin_user.id
        assert course.published_at is not None

        notification = db.query(Notification).filter(Notification.user_id == author.id).one()
        assert notification.type == "content_approved"

    def test_approve_twice_conflicts(self, client, admin_headers, manager_user, make_content, headers_for):
        row = make_content("course")
        client.post(f"/api/publishing/course/{row.id}/approve", headers=admin_headers)

        response = client.post(f"/api/publishing/course/{row.id}/approve", headers=headers_for(manager_user))

        assert response.status_code == 409
        data = response.json()
        assert data["error_code"] == "CONCURRENT_MODIFICATION"
        assert data["error"] == "This content was already approved or rejected by another reviewer."
        assert data["details"]["retryable"] is True
        assert data["details"]["toast"]["kind"] == "error"

    def test_approve_missing_content(self, client, admin_headers):
        response = client.post("/api/publishing/policy/not-a-real-id/approve", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["error_code"] == "CONTENT_NOT_FOUND"

    def test_approve_requires_approver(self, client, author, make_content, headers_for):
        row = make_content("course")
        response = client.post(f"/api/publishing/course/{row.id}/approve", headers=headers_for(author))
        assert response.status_code == 403

    def test_reject(self, client, db, admin_headers, author, make_content):
        row = make_content("policy", title="Hand Hygiene")

        response = client.post(
            f"/api/publishing/policy/{row.id}/reject",
            headers=admin_headers,
            json={"reason": "Please cite the CDC guideline"},
        )

        assert response.status_code == 200
        assert response.json()["toast"]["message"] == '"Hand Hygiene" was rejected.'

        db.expire_all()
        policy = db.get(Policy, row.id)
        assert policy.approval_status == "rejected"
        assert policy.rejection_reason == "Please cite the CDC guideline"

        notification = db.query(Notification).filter(Notification.user_id == author.id).one()
        assert notification.type == "content_rejected"
        assert "Please cite the CDC guideline" in notification.message

    def test_reject_without_reason(self, client, db, admin_headers, make_content):
        row = make_content("policy")

        response = client.post(f"/api/publishing/policy/{row.id}/reject", headers=admin_headers, json={"reason": "  "})

        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"
        db.expire_all()
        assert db.get(Policy, row.id).approval_status == "pending_approval"

    def test_get_content(self, client, admin_headers, make_content):
        row = make_content("procedure", title="Sterile Field Setup")

        response = client.get(f"/api/publishing/procedure/{row.id}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["title"] == "Sterile Field Setup"

    def test_get_content_missing(self, client, admin_headers):
        response = client.get("/api/publishing/course/missing", headers=admin_headers)
        assert response.status_code == 404

    def test_approve_policy_sharing_an_id_with_a_course(self, client, db, admin_headers, make_content):
        make_content("policy", id="c1", title="Visitor Policy")
        make_content("course", id="c1", title="Fire Safety", minutes=5)

        response = client.post("/api/publishing/policy/c1/approve", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["toast"]["message"] == '"Visitor Policy" was approved and published.'
        db.expire_all()
        assert db.get(Policy, "c1").approval_status == "approved"
        assert db.get(Course, "c1").approval_status == "pending_approval"

        pending = client.get("/api/publishing/pending", headers=admin_headers).json()["items"]
        assert [(i["type"], i["id"]) for i in pending] == [("course", "c1")]


class TestSubmitAndReviewFlow:
    def test_submit_creates_review_tasks(self, client, db, author, admin_user, manager_user, make_content, headers_for):
        row = make_content("course", approval_status="draft", submitted_for_approval_at=None)

        response = client.post(f"/api/publishing/course/{row.id}/submit", headers=headers_for(author))

        assert response.status_code == 200
        assert response.json()["approval_status"] == "pending_approval"

        tasks = db.query(Task).order_by(Task.id).all()
        assert [t.user_id for t in tasks] == [admin_user.id, manager_user.id]
        assert all(t.extra_data["contentId"] == row.id for t in tasks)
        assert tasks[0].title == f"Review: {row.title}"

    def test_submit_requires_create_permission(self, client, test_user, make_content, headers_for):
        row = make_content("course", approval_status="draft")
        response = client.post(f"/api/publishing/course/{row.id}/submit", headers=headers_for(test_user))
        assert response.status_code == 403

    def test_submit_without_approvers_still_submits(self, client, db, author, make_content, headers_for):
        row = make_content("policy", approval_status="draft")

        response = client.post(f"/api/publishing/policy/{row.id}/submit", headers=headers_for(author))

        assert response.status_code == 200
        assert db.query(Task).count() == 0

    def test_approve_completes_task_and_cancels_siblings(self, client, db, author, admin_user, manager_user, make_content, headers_for):
        row = make_content("course", approval_status="draft")
        client.post(f"/api/publishing/course/{row.id}/submit", headers=headers_for(author))

        response = client.post(f"/api/publishing/course/{row.id}/approve", headers=headers_for(manager_user))

        assert response.status_code == 200
        assert response.json()["task_completed"] is True

        db.expire_all()
        statuses = {t.user_id: t.status for t in db.query(Task).all()}
        assert statuses == {admin_user.id: "cancelled", manager_user.id: "completed"}
        completed = db.query(Task).filter(Task.user_id == manager_user.id).one()
        assert completed.extra_data["action"] == "approved"
        assert completed.extra_data["completedBy"] == manager_user.id

    def test_submit_requires_authorship(self, client, db, make_user, make_content, headers_for):
        row = make_content("course", approval_status="draft")
        other_trainer = make_user("trainer", "Jordan", "Lee")

        response = client.post(f"/api/publishing/course/{row.id}/submit", headers=headers_for(other_trainer))

        assert response.status_code == 403
        db.expire_all()
        assert db.get(Course, row.id).approval_status == "draft"

    def test_content_audit_trail(self, client, author, admin_user, manager_user, make_content, headers_for):
        row = make_content("course", approval_status="draft")
        client.post(f"/api/publishing/course/{row.id}/submit", headers=headers_for(author))
        client.post(f"/api/publishing/course/{row.id}/approve", headers=headers_for(manager_user))

        response = client.get(f"/api/publishing/course/{row.id}/audit", headers=headers_for(admin_user))

        assert response.status_code == 200
        actions = [entry["action"] for entry in response.json()]
        assert sorted(actions) == ["content_approved", "task_completed", "task_created", "task_created"]

    def test_content_audit_trail_is_limited_to_auditors(self, client, author, make_content, headers_for):
        row = make_content("course")

        response = client.get(f"/api/publishing/course/{row.id}/audit", headers=headers_for(author))

        assert response.status_code == 403
        assert response.json()["error_code"] == "FORBIDDEN"
