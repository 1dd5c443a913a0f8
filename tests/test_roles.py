import os, sys
sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from app.agent.roles import RoleContext, RoleResolver
from app.models.memory import UserRecord
from app.store import InMemoryUserStore


class BrokenStore:
    def find_by_id(self, user_id):
        raise RuntimeError("db down")


def _resolver():
    return RoleResolver(
        InMemoryUserStore(
            [
                UserRecord(id="u1", name="Ann", role="user"),
                UserRecord(id="o1", name="Org", role="organizer"),
                UserRecord(id="a1", name="Root", role="admin"),
            ]
        )
    )


def test_unknown_user_is_guest():
    ctx = _resolver().resolve("nobody")
    assert ctx.role == "guest"
    assert not ctx.is_admin
    assert not ctx.can_create_events


def test_no_user_is_guest():
    assert _resolver().resolve(None).role == "guest"


def test_claimed_role_cannot_escalate():
    ctx = _resolver().resolve("u1", claimed_role="admin")
    assert ctx.role == "user"
    assert not ctx.is_admin


def test_store_failure_degrades_to_guest():
    ctx = RoleResolver(BrokenStore()).resolve("a1")
    assert ctx.role == "guest"


def test_capabilities_per_role():
    r = _resolver()
    org = r.resolve("o1")
    assert org.can_create_events and org.can_analyze and not org.can_moderate
    assert org.has_permission("create")
    assert not org.has_permission("moderate")
    admin = r.resolve("a1")
    assert admin.is_admin and admin.has_permission("anything")
    assert admin.user_name == "Root"


def test_event_scope():
    assert RoleContext.for_role("admin").event_scope() == {"statuses": None}
    org = _resolver().resolve("o1")
    assert org.event_scope()["include_organizer"] == "o1"
    assert RoleContext.for_role("user").event_scope()["statuses"] == ("approved",)


def test_unknown_role_maps_to_user():
    assert RoleContext.for_role("superhero").role == "user"
