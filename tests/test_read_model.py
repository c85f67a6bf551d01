"""Tests for the category projection, client/professional views and catalog administration."""

import pytest
from fastapi import HTTPException

from app.config import settings
from app.config.permissions_config import (
    CATEGORY_KEYS,
    PERMISSION_CATALOG,
    ROLE_DEFAULT_PERMISSIONS,
    get_role_default_permissions,
)
from app.core.exceptions import (
    PermissionConflict,
    RelationshipNotActive,
    RelationshipNotFound,
    StoreError,
    Unauthorized,
)
from app.modules.audit.schemas import Actor
from app.modules.permissions.read_model import group_by_category, quick_action_states, summarize_categories
from app.modules.permissions.service import PermissionCatalogService
from app.modules.relationships.service import RelationshipService
from tests.conftest import CLIENT_ID, PRO_A, PRO_B


class TestPermissionsConfig:
    def test_catalog_is_sorted_and_unique(self):
        slugs = [p["slug"] for p in PERMISSION_CATALOG]
        assert len(slugs) == len(set(slugs))
        orders = [p["sort_order"] for p in PERMISSION_CATALOG]
        assert orders == sorted(orders)

    def test_exclusive_permissions_are_writes(self):
        for perm in PERMISSION_CATALOG:
            assert perm["is_exclusive"] == (perm["permission_type"] == "write")
            assert perm["category"] in CATEGORY_KEYS

    def test_role_defaults_reference_catalog(self):
        slugs = {p["slug"] for p in PERMISSION_CATALOG}
        for role_type, defaults in ROLE_DEFAULT_PERMISSIONS.items():
            assert set(defaults) <= slugs, role_type

    def test_unknown_role_has_no_defaults(self):
        assert get_role_default_permissions("astrologer") == []


class TestCategoryProjection:
    def test_groups_follow_category_order(self, store):
        groups = group_by_category(store.list_permission_definitions())

        assert [g.category for g in groups] == CATEGORY_KEYS
        assert groups[0].label == "Nutrition"
        assert [p.slug for p in groups[0].permissions] == ["view_nutrition", "set_nutrition_targets"]

    def test_empty_categories_are_dropped(self, store):
        definitions = [d for d in store.list_permission_definitions() if d.category != "photos"]

        assert "photos" not in [g.category for g in group_by_category(definitions)]

    def test_counts_per_category(self, store):
        summary = summarize_categories(
            store.list_permission_definitions(), ["view_nutrition", "set_nutrition_targets", "view_weight"]
        )
        counts = {c.category: (c.granted, c.total) for c in summary}

        assert counts["nutrition"] == (2, 2)
        assert counts["weight"] == (1, 2)
        assert counts["profile"] == (0, 1)

    def test_quick_action_states(self):
        states = quick_action_states(["assign_programmes"], ["set_nutrition_targets"])

        assert [(s.slug, s.state) for s in states] == [
            ("assign_programmes", "granted"),
            ("set_nutrition_targets", "pending"),
            ("assign_checkins", "missing"),
        ]

    def test_quick_actions_skip_disabled_permissions(self):
        states = quick_action_states([], [], enabled_slugs=["assign_programmes"])

        assert [s.slug for s in states] == ["assign_programmes"]


class TestClientView:
    def test_lists_active_relationships_with_versions(self, store, engine):
        rel_a = store.add_relationship(PRO_A, CLIENT_ID, granted=["view_weight", "view_nutrition"], version=5)
        store.add_relationship(PRO_B, CLIENT_ID, status="ended")

        view = engine.get_client_permissions(CLIENT_ID)

        assert [r.relationship_id for r in view.relationships] == [rel_a.id]
        entry = view.relationships[0]
        assert entry.professional_name == "Alex Trainer"
        assert entry.granted_permissions == ["view_nutrition", "view_weight"]
        assert entry.version == 5
        assert len(view.permission_definitions) == len(PERMISSION_CATALOG)


class TestProfessionalView:
    @pytest.fixture
    def service(self, store, engine) -> RelationshipService:
        return RelationshipService(store, engine)

    def test_view_with_pending_requests(self, store, service):
        rel = store.add_relationship(PRO_A, CLIENT_ID, granted=["assign_programmes"])
        store.create_permission_request(rel.id, CLIENT_ID, "set_nutrition_targets", message="For your macros")

        view = service.get_professional_client_view(PRO_A, CLIENT_ID)

        assert view.relationship_id == rel.id
        assert view.pending_permissions == ["set_nutrition_targets"]
        assert view.pending_requests[0].message == "For your macros"
        states = {q.slug: q.state for q in view.quick_actions}
        assert states == {
            "assign_programmes": "granted",
            "set_nutrition_targets": "pending",
            "assign_checkins": "missing",
        }

    def test_no_relationship(self, service):
        with pytest.raises(RelationshipNotFound):
            service.get_professional_client_view(PRO_B, CLIENT_ID)


class TestEndRelationship:
    @pytest.fixture
    def service(self, store, engine) -> RelationshipService:
        return RelationshipService(store, engine)

    def test_either_party_can_end(self, store, service):
        rel = store.add_relationship(PRO_A, CLIENT_ID, granted=["assign_programmes"])
        request = store.create_permission_request(rel.id, CLIENT_ID, "view_weight")

        response = service.end_relationship(rel.id, {"id": PRO_A})

        assert response.revoked_permissions == ["assign_programmes"]
        assert store.relationships[rel.id].status == "ended"
        assert store.granted(rel.id) == []
        assert store.requests[request.id].status == "denied"
        assert store.events_of_type("revoke")[0].actor_type == "professional"

    def test_outsider_cannot_end(self, store, service):
        rel = store.add_relationship(PRO_A, CLIENT_ID)

        with pytest.raises(Unauthorized):
            service.end_relationship(rel.id, {"id": PRO_B})

    def test_already_ended(self, store, service):
        rel = store.add_relationship(PRO_A, CLIENT_ID, status="ended")

        with pytest.raises(RelationshipNotActive):
            service.end_relationship(rel.id, {"id": CLIENT_ID})

    def test_transfer_racing_the_end_conflicts(self, store, service):
        rel_a = store.add_relationship(PRO_A, CLIENT_ID, granted=["assign_programmes"])
        rel_b = store.add_relationship(PRO_B, CLIENT_ID)

        def transfer_lands_first(s):
            s.relationships[rel_a.id].granted_permissions = []
            s.relationships[rel_a.id].permissions_version += 1
            s.relationships[rel_b.id].granted_permissions = ["assign_programmes"]
            s.relationships[rel_b.id].permissions_version += 1

        store.before_commit = transfer_lands_first

        with pytest.raises(PermissionConflict):
            service.end_relationship(rel_a.id, {"id": CLIENT_ID})

        assert store.relationships[rel_a.id].status == "active"


class TestExclusivityAdministration:
    @pytest.fixture
    def service(self, store) -> PermissionCatalogService:
        return PermissionCatalogService(store)

    @pytest.fixture
    def admin(self) -> Actor:
        return Actor(actor_type="admin", actor_id="admin-1", reason="Product decision for Q3 rollout")

    def test_detects_duplicate_holders(self, store, service):
        rel_a = store.add_relationship(PRO_A, CLIENT_ID, granted=["view_weight"])
        rel_b = store.add_relationship(PRO_B, CLIENT_ID, granted=["view_weight"])
        store.add_relationship(PRO_A, "client-2", granted=["view_weight"])

        conflicts = service.check_exclusivity_conflicts("view_weight")

        assert len(conflicts) == 1
        assert conflicts[0].client_id == CLIENT_ID
        assert conflicts[0].relationship_ids == sorted([rel_a.id, rel_b.id])

    def test_refuses_exclusive_while_conflicts_exist(self, store, service, admin):
        store.add_relationship(PRO_A, CLIENT_ID, granted=["view_weight"])
        store.add_relationship(PRO_B, CLIENT_ID, granted=["view_weight"])

        with pytest.raises(HTTPException) as exc_info:
            service.set_exclusivity("view_weight", True, admin)

        assert exc_info.value.status_code == 409
        assert store.definitions["view_weight"].is_exclusive is False

    def test_sets_exclusive_and_audits(self, store, service, admin):
        response = service.set_exclusivity("view_weight", True, admin)

        assert response.previous_is_exclusive is False
        assert store.definitions["view_weight"].is_exclusive is True
        event = store.events_of_type("policy_change")[0]
        assert event.reason == admin.reason
        assert event.new_state == {"is_exclusive": True}

    def test_no_change_is_reported(self, store, service, admin):
        response = service.set_exclusivity("assign_programmes", True, admin)

        assert response.message == "No change needed"
        assert store.audit_log == []

    def test_reason_length_follows_settings(self, store, service, monkeypatch):
        monkeypatch.setattr(settings, "admin_reason_min_length", 4)

        service.set_exclusivity("view_weight", True, Actor(actor_type="admin", actor_id="admin-1", reason="GDPR"))

        assert store.definitions["view_weight"].is_exclusive is True
        assert store.events_of_type("policy_change")[0].reason == "GDPR"

    def test_failed_policy_commit_changes_nothing(self, store, service, admin):
        store.fail_next_commit = StoreError("Failed to apply policy change")

        with pytest.raises(StoreError):
            service.set_exclusivity("view_weight", True, admin)

        assert store.definitions["view_weight"].is_exclusive is False
        assert store.audit_log == []

    def test_requires_reason(self, service):
        with pytest.raises(HTTPException) as exc_info:
            service.set_exclusivity("view_weight", True, Actor(actor_type="admin", actor_id="admin-1", reason="short"))
        assert exc_info.value.status_code == 400

    def test_unknown_permission(self, service, admin):
        with pytest.raises(HTTPException) as exc_info:
            service.set_exclusivity("fly", True, admin)
        assert exc_info.value.status_code == 404
