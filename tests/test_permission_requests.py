"""Tests for professional permission requests and client responses."""

import pytest

from app.core.exceptions import (
    RelationshipNotActive,
    RelationshipNotFound,
    RequestAlreadyResolved,
    RequestNotFound,
    Unauthorized,
)
from app.modules.permission_requests.schemas import PermissionRequestsCreate
from app.modules.permission_requests.service import PermissionRequestService
from tests.conftest import CLIENT_ID, PRO_A, PRO_B


@pytest.fixture
def service(store, engine) -> PermissionRequestService:
    return PermissionRequestService(store, engine)


def _create(service, relationship_id, slugs, professional_id=PRO_A, message=None):
    return service.create_requests(
        professional_id,
        PermissionRequestsCreate(relationship_id=relationship_id, permission_slugs=slugs, message=message)
    )


class TestCreateRequests:
    def test_already_pending_slug_fails_others_succeed(self, store, service):
        rel = store.add_relationship(PRO_A, CLIENT_ID)
        store.create_permission_request(rel.id, CLIENT_ID, "view_weight")

        response = _create(service, rel.id, ["view_weight", "view_nutrition"])

        assert [(r.slug, r.success) for r in response.results] == [
            ("view_weight", False),
            ("view_nutrition", True),
        ]
        assert response.results[0].error == "Request already pending"
        assert response.success is True
        assert response.created_count == 1
        assert response.failed_count == 1

    def test_per_slug_failure_reasons(self, store, service):
        rel = store.add_relationship(PRO_A, CLIENT_ID, granted=["view_workouts"])

        response = _create(service, rel.id, ["view_workouts", "view_everything"])

        assert [r.error for r in response.results] == ["Permission already granted", "Invalid permission"]
        assert response.success is False
        assert response.created_count == 0

    def test_duplicate_slugs_in_one_call_are_collapsed(self, store, service):
        rel = store.add_relationship(PRO_A, CLIENT_ID)

        response = _create(service, rel.id, ["view_weight", "view_weight"])

        assert len(response.results) == 1
        assert len(store.list_permission_requests(relationship_id=rel.id)) == 1

    def test_message_is_trimmed(self, store, service):
        rel = store.add_relationship(PRO_A, CLIENT_ID)

        _create(service, rel.id, ["view_weight"], message="   ")
        _create(service, rel.id, ["view_nutrition"], message="  Need this for your plan ")

        messages = {r.permission_slug: r.message for r in store.list_permission_requests(relationship_id=rel.id)}
        assert messages == {"view_weight": None, "view_nutrition": "Need this for your plan"}

    def test_only_the_relationship_professional_may_request(self, store, service):
        rel = store.add_relationship(PRO_A, CLIENT_ID)

        with pytest.raises(Unauthorized):
            _create(service, rel.id, ["view_weight"], professional_id=PRO_B)

    def test_relationship_must_exist_and_be_active(self, store, service):
        ended = store.add_relationship(PRO_A, CLIENT_ID, status="ended")

        with pytest.raises(RelationshipNotFound):
            _create(service, "rel-missing", ["view_weight"])
        with pytest.raises(RelationshipNotActive):
            _create(service, ended.id, ["view_weight"])


class TestRespond:
    def test_approve_grants_and_resolves_in_one_commit(self, store, service):
        rel = store.add_relationship(PRO_A, CLIENT_ID)
        request = store.create_permission_request(rel.id, CLIENT_ID, "view_weight")

        response = service.respond(request.id, CLIENT_ID, "approve")

        assert response.action == "approved"
        assert store.granted(rel.id) == ["view_weight"]
        assert store.requests[request.id].status == "approved"
        assert store.commit_count == 1
        assert len(store.events_of_type("request_approve")) == 1

    def test_approve_exclusive_transfers_from_other_professional(self, store, service):
        rel_a = store.add_relationship(PRO_A, CLIENT_ID, granted=["assign_checkins"])
        rel_b = store.add_relationship(PRO_B, CLIENT_ID)
        request = store.create_permission_request(rel_b.id, CLIENT_ID, "assign_checkins")

        service.respond(request.id, CLIENT_ID, "approve")

        assert store.granted(rel_a.id) == []
        assert store.granted(rel_b.id) == ["assign_checkins"]

    def test_deny_leaves_grants_unchanged(self, store, service):
        rel = store.add_relationship(PRO_A, CLIENT_ID)
        request = store.create_permission_request(rel.id, CLIENT_ID, "view_weight")

        response = service.respond(request.id, CLIENT_ID, "deny")

        assert response.action == "denied"
        assert store.granted(rel.id) == []
        assert store.requests[request.id].status == "denied"
        assert store.events_of_type("request_deny")[0].target_professional_id == PRO_A

    def test_resolved_request_cannot_be_answered_again(self, store, service):
        rel = store.add_relationship(PRO_A, CLIENT_ID)
        request = store.create_permission_request(rel.id, CLIENT_ID, "view_weight")
        service.respond(request.id, CLIENT_ID, "deny")

        with pytest.raises(RequestAlreadyResolved):
            service.respond(request.id, CLIENT_ID, "approve")

    def test_other_clients_request_is_not_found(self, store, service):
        rel = store.add_relationship(PRO_A, "client-2")
        request = store.create_permission_request(rel.id, "client-2", "view_weight")

        with pytest.raises(RequestNotFound):
            service.respond(request.id, CLIENT_ID, "approve")

    def test_approval_racing_another_resolution_is_rejected(self, store, service):
        rel = store.add_relationship(PRO_A, CLIENT_ID)
        request = store.create_permission_request(rel.id, CLIENT_ID, "view_weight")

        def concurrent_deny(s):
            s.resolve_permission_request(request.id, "denied")

        store.before_commit = concurrent_deny

        with pytest.raises(RequestAlreadyResolved):
            service.respond(request.id, CLIENT_ID, "approve")

        assert store.granted(rel.id) == []


class TestListClientRequests:
    def test_lists_pending_with_details(self, store, service):
        rel = store.add_relationship(PRO_A, CLIENT_ID)
        pending = store.create_permission_request(rel.id, CLIENT_ID, "set_nutrition_targets")
        answered = store.create_permission_request(rel.id, CLIENT_ID, "view_weight")
        store.resolve_permission_request(answered.id, "denied")

        response = service.list_client_requests(CLIENT_ID)

        assert [r.id for r in response.requests] == [pending.id]
        details = response.requests[0]
        assert details.professional_name == "Alex Trainer"
        assert details.permission_name == "Set Nutrition Targets"
        assert details.is_exclusive is True
        assert details.category == "nutrition"

    def test_no_requests(self, service):
        assert service.list_client_requests(CLIENT_ID).requests == []
