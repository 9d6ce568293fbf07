"""Unit tests for users/service.py -- account rules enforced by UserService.

Covers:
- create_user() seeds ROLE_USER and rejects duplicate usernames/emails in any case
- list_users() / get_user() / filter_users() lookups and NotFound paths
- delete_user() refuses the protected account
- assign_authority() / remove_authority() including the last-holder rule
- ensure_admin() only seeds an empty store
"""

import pytest

from auth.tokens import verify_password
from users.dto import UserDto, UserInputDto
from users.exceptions import BadRequest, InvalidInput, NotFound


def _create(service, username: str, email: str | None = None, password: str = "pw123"):
    return service.create_user(UserInputDto(username=username, password=password, email=email or f"{username}@x.com"))


# ---------------------------------------------------------------------------
# create_user
# ---------------------------------------------------------------------------


class TestCreateUser:
    def test_returns_dto_with_default_authority(self, service):
        dto = service.create_user(UserInputDto(username="bob", password="pw123", email="bob@x.com"))
        assert dto == UserDto(username="bob", email="bob@x.com", authorities={"ROLE_USER"})

    def test_seeds_exactly_one_authority(self, service, store):
        _create(service, "bob")
        user = store.get_by_username("bob")
        assert user.authority_names() == {"ROLE_USER"}

    def test_password_is_stored_hashed(self, service, store):
        _create(service, "bob", password="pw123")
        user = store.get_by_username("bob")
        assert user.hashed_password != "pw123"
        assert verify_password("pw123", user.hashed_password)

    def test_username_is_lowercased(self, service, store):
        dto = _create(service, "Alice", email="alice@x.com")
        assert dto.username == "alice"
        assert store.get_by_username("alice") is not None

    def test_duplicate_username_any_case(self, service):
        _create(service, "bob")
        with pytest.raises(InvalidInput, match="Username: bob is already taken"):
            _create(service, "BOB", email="other@x.com")

    def test_duplicate_email_any_case(self, service):
        _create(service, "bob", email="bob@x.com")
        with pytest.raises(InvalidInput, match="Email: bob@x.com is already taken"):
            _create(service, "robert", email="BOB@X.COM")

    def test_duplicate_username_and_email(self, service):
        _create(service, "bob", email="bob@x.com")
        with pytest.raises(InvalidInput) as exc_info:
            _create(service, "Bob", email="Bob@x.com")
        message = exc_info.value.message
        assert "Username: bob" in message
        assert "email: bob@x.com" in message

    def test_password_over_bcrypt_byte_limit(self, service, store):
        with pytest.raises(InvalidInput, match="72 bytes"):
            _create(service, "bob", password="é" * 40)
        assert store.get_by_username("bob") is None

    def test_password_whitespace_preserved(self, service, store):
        _create(service, "bob", password="  pw123  ")
        user = store.get_by_username("bob")
        assert verify_password("  pw123  ", user.hashed_password)
        assert not verify_password("pw123", user.hashed_password)

    def test_rejected_create_leaves_store_unchanged(self, service, store):
        _create(service, "bob")
        with pytest.raises(InvalidInput):
            _create(service, "BOB")
        assert [u.username for u in store.list_users()] == ["bob"]


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class TestQueries:
    def test_list_users_empty_raises(self, service):
        with pytest.raises(NotFound, match="No users found"):
            service.list_users()

    def test_list_users_sorted(self, service):
        for name in ("zed", "amy", "mike"):
            _create(service, name)
        assert [d.username for d in service.list_users()] == ["amy", "mike", "zed"]

    def test_list_users_never_exposes_password(self, service):
        _create(service, "bob")
        dto = service.list_users()[0]
        assert not hasattr(dto, "password")
        assert not hasattr(dto, "hashed_password")

    def test_get_user(self, service):
        _create(service, "bob")
        assert service.get_user("bob").email == "bob@x.com"

    def test_get_user_missing(self, service):
        with pytest.raises(NotFound):
            service.get_user("nonexistent")

    def test_filter_by_username_contains(self, service):
        for name in ("malik", "alice", "bob", "bali"):
            _create(service, name)
        result = service.filter_users("ALI", None)
        assert [d.username for d in result] == ["alice", "bali", "malik"]

    def test_filter_by_email(self, service):
        _create(service, "bob", email="bob@Example.org")
        _create(service, "amy", email="amy@x.com")
        assert [d.username for d in service.filter_users(email="example")] == ["bob"]

    def test_filter_combined(self, service):
        _create(service, "alice", email="alice@corp.com")
        _create(service, "alina", email="alina@home.net")
        assert [d.username for d in service.filter_users("ali", "corp")] == ["alice"]

    def test_filter_without_criteria_returns_everyone(self, service):
        _create(service, "bob")
        _create(service, "amy")
        assert [d.username for d in service.filter_users()] == ["amy", "bob"]

    def test_filter_no_match(self, service):
        _create(service, "bob")
        with pytest.raises(NotFound, match="specified filters"):
            service.filter_users("zzz", None)

    def test_get_user_authorities(self, service):
        _create(service, "bob")
        assert service.get_user_authorities("bob") == {"ROLE_USER"}

    def test_get_user_authorities_missing(self, service):
        with pytest.raises(NotFound):
            service.get_user_authorities("ghost")


# ---------------------------------------------------------------------------
# delete_user
# ---------------------------------------------------------------------------


class TestDeleteUser:
    def test_delete_returns_confirmation(self, service, store):
        _create(service, "bob")
        assert service.delete_user("bob") == "User: bob is deleted"
        assert store.get_by_username("bob") is None

    def test_delete_removes_authorities(self, service, store):
        _create(service, "bob")
        _create(service, "amy")
        service.delete_user("bob")
        assert store.count_authority_holders("ROLE_USER") == 1

    def test_delete_missing(self, service):
        with pytest.raises(NotFound):
            service.delete_user("ghost")

    def test_protected_account_cannot_be_deleted(self, service, store):
        _create(service, "MMesander")
        with pytest.raises(BadRequest, match="Can't remove user: mmesander"):
            service.delete_user("mmesander")
        assert store.get_by_username("mmesander") is not None


# ---------------------------------------------------------------------------
# Authorities
# ---------------------------------------------------------------------------


class TestAssignAuthority:
    def test_assign_adds_upper_cased_authority(self, service):
        _create(service, "bob")
        dto = service.assign_authority("bob", "role_editor")
        assert dto.authorities == {"ROLE_USER", "ROLE_EDITOR"}
        assert service.get_user_authorities("bob") == {"ROLE_USER", "ROLE_EDITOR"}

    def test_assign_already_held(self, service):
        _create(service, "bob")
        with pytest.raises(InvalidInput, match="already has authority ROLE_USER"):
            service.assign_authority("bob", "Role_User")

    def test_assign_missing_user(self, service):
        with pytest.raises(NotFound):
            service.assign_authority("ghost", "ROLE_ADMIN")

    def test_assign_blank_name(self, service):
        _create(service, "bob")
        with pytest.raises(InvalidInput):
            service.assign_authority("bob", "   ")


class TestRemoveAuthority:
    def test_sole_holder_cannot_lose_authority(self, service):
        _create(service, "bob")
        service.assign_authority("bob", "ROLE_ADMIN")
        with pytest.raises(BadRequest, match="At least 1 user must have the authority: ROLE_ADMIN"):
            service.remove_authority("bob", "ROLE_ADMIN")
        assert "ROLE_ADMIN" in service.get_user_authorities("bob")

    def test_removal_allowed_with_two_holders(self, service, store):
        _create(service, "bob")
        _create(service, "amy")
        message = service.remove_authority("bob", "role_user")
        assert message == "Authority ROLE_USER is removed from user: bob"
        assert service.get_user_authorities("bob") == set()
        assert store.count_authority_holders("ROLE_USER") == 1

    def test_last_remaining_holder_is_then_protected(self, service):
        _create(service, "bob")
        _create(service, "amy")
        service.remove_authority("bob", "ROLE_USER")
        with pytest.raises(BadRequest):
            service.remove_authority("amy", "ROLE_USER")

    def test_user_without_authority(self, service):
        _create(service, "bob")
        with pytest.raises(InvalidInput, match="user: bob does not have authority ROLE_ADMIN"):
            service.remove_authority("bob", "role_admin")

    def test_missing_user(self, service):
        with pytest.raises(NotFound):
            service.remove_authority("ghost", "ROLE_USER")


# ---------------------------------------------------------------------------
# ensure_admin
# ---------------------------------------------------------------------------


class TestEnsureAdmin:
    def test_seeds_empty_store(self, service, store):
        assert service.ensure_admin("mmesander", "secret123", "admin@x.com") is True
        user = store.get_by_username("mmesander")
        assert user.authority_names() == {"ROLE_USER", "ROLE_ADMIN"}

    def test_noop_when_users_exist(self, service, store):
        _create(service, "bob")
        assert service.ensure_admin("mmesander", "secret123", "admin@x.com") is False
        assert store.get_by_username("mmesander") is None

    def test_custom_admin_authority(self, service, store):
        assert service.ensure_admin("mmesander", "secret123", "admin@x.com", authority="role_root") is True
        assert store.get_by_username("mmesander").authority_names() == {"ROLE_USER", "ROLE_ROOT"}

    def test_rejects_password_over_bcrypt_byte_limit(self, service, store):
        with pytest.raises(InvalidInput):
            service.ensure_admin("mmesander", "é" * 40, "admin@x.com")
        assert not store.has_users()
