"""
Test suite for ownership and role checks
"""

import pytest

from lending_ledger.access import Role, RoleRegistry, require_any_role, require_owner
from lending_ledger.exceptions import Unauthorized


@pytest.fixture
def registry():
    return RoleRegistry(owner="owner")


class TestRoleRegistry:
    """Test role membership management"""

    def test_owner(self, registry):
        assert registry.owner == "owner"
        assert registry.is_owner("owner")
        assert not registry.is_owner("alice")

    def test_grant_and_revoke(self, registry):
        registry.grant_role("owner", Role.RATE_MANAGER, "alice")
        assert registry.has_role(Role.RATE_MANAGER, "alice")
        assert registry.members(Role.RATE_MANAGER) == {"alice"}

        registry.revoke_role("owner", Role.RATE_MANAGER, "alice")
        assert not registry.has_role(Role.RATE_MANAGER, "alice")

    def test_admin_can_grant(self, registry):
        registry.grant_role("owner", Role.ADMIN, "admin")
        registry.grant_role("admin", Role.EXECUTOR, "bob")
        assert registry.has_role(Role.EXECUTOR, "bob")

    def test_grant_unauthorized(self, registry):
        with pytest.raises(Unauthorized):
            registry.grant_role("alice", Role.ADMIN, "alice")
        assert registry.members(Role.ADMIN) == set()

    def test_transfer_ownership(self, registry):
        registry.transfer_ownership("owner", "alice")
        assert registry.is_owner("alice")
        assert not registry.is_owner("owner")

        with pytest.raises(Unauthorized):
            registry.transfer_ownership("owner", "bob")

    def test_members_returns_copy(self, registry):
        registry.members(Role.ADMIN).add("mallory")
        assert not registry.has_role(Role.ADMIN, "mallory")


class TestRequireHelpers:
    """Test guard helpers"""

    def test_require_owner(self, registry):
        require_owner(registry, "owner")
        with pytest.raises(Unauthorized, match="not the owner"):
            require_owner(registry, "alice")

    def test_require_any_role(self, registry):
        registry.grant_role("owner", Role.REWARD_DISTRIBUTOR, "alice")

        require_any_role(registry, "alice", [Role.ADMIN, Role.REWARD_DISTRIBUTOR])
        require_any_role(registry, "owner", [Role.ADMIN])
        with pytest.raises(Unauthorized, match="rate_manager"):
            require_any_role(registry, "alice", [Role.RATE_MANAGER])

    def test_owner_exclusion(self, registry):
        with pytest.raises(Unauthorized):
            require_any_role(registry, "owner", [Role.PROPOSER], allow_owner=False)

    def test_unauthorized_is_permission_error(self, registry):
        with pytest.raises(PermissionError):
            require_owner(registry, "alice")
