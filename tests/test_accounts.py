"""Tests for registration, login and streaks."""

from datetime import datetime, timezone

import pytest

from studykeep.accounts import AccountService, hash_password, next_streak
from studykeep.errors import AccountExists, InvalidCredentials, InvalidInput, NotFound
from studykeep.records import Profile, load_model
from studykeep.sessions import SessionRegistry
from studykeep.types import owner_id_for


@pytest.fixture
def sessions(store, clock):
    return SessionRegistry(store, clock=clock)


@pytest.fixture
def accounts(store, sessions, clock):
    return AccountService(store, sessions, clock=clock)


def _utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class TestNextStreak:
    def test_first_login(self):
        assert next_streak(0, None, _utc(2026, 3, 1, 9)) == 1

    def test_same_day(self):
        assert next_streak(4, _utc(2026, 3, 1, 1), _utc(2026, 3, 1, 23)) == 4

    def test_next_day(self):
        assert next_streak(4, _utc(2026, 3, 1, 23), _utc(2026, 3, 2, 0, 30)) == 5

    def test_gap_resets(self):
        assert next_streak(4, _utc(2026, 3, 1, 12), _utc(2026, 3, 4, 12)) == 1


class TestRegister:
    def test_creates_profile(self, accounts, store):
        owner = accounts.register("Ada@Example.com ", "secret", "ada")

        assert owner == owner_id_for("ada@example.com")
        profile = load_model(store, owner, Profile)
        assert profile.email == "Ada@Example.com"
        assert profile.username == "ada"
        assert profile.password == hash_password("secret")
        assert profile.user_id == owner
        assert profile.preferences.answer_length == "medium"

    def test_duplicate(self, accounts):
        accounts.register("ada@example.com", "secret", "ada")
        with pytest.raises(AccountExists):
            accounts.register("ADA@example.com", "other", "ada2")

    @pytest.mark.parametrize("email,password,username", [
        ("", "secret", "ada"),
        ("ada@example.com", "", "ada"),
        ("ada@example.com", "secret", ""),
    ])
    def test_missing_fields(self, accounts, email, password, username):
        with pytest.raises(InvalidInput):
            accounts.register(email, password, username)


class TestLogin:
    def test_login_issues_session(self, accounts, sessions):
        owner = accounts.register("ada@example.com", "secret", "ada")

        result = accounts.login("ada@example.com", "secret")

        assert result.owner == owner
        assert result.username == "ada"
        assert result.preferences["studyStreak"] == 1
        assert result.analytics["questionsAsked"] == 0
        assert sessions.peek(result.token).owner == owner

    def test_email_is_case_insensitive(self, accounts):
        owner = accounts.register("ada@example.com", "secret", "ada")
        assert accounts.login("  ADA@example.com", "secret").owner == owner

    def test_unknown_user(self, accounts):
        with pytest.raises(NotFound):
            accounts.login("nobody@example.com", "secret")

    def test_wrong_password(self, accounts, sessions):
        accounts.register("ada@example.com", "secret", "ada")
        with pytest.raises(InvalidCredentials):
            accounts.login("ada@example.com", "guess")
        assert len(sessions) == 0

    def test_missing_fields(self, accounts):
        with pytest.raises(InvalidInput):
            accounts.login("ada@example.com", "")

    def test_streak_progression(self, accounts, clock, store):
        owner = accounts.register("ada@example.com", "secret", "ada")

        assert accounts.login("ada@example.com", "secret").preferences["studyStreak"] == 1
        clock.advance(hours=2)
        assert accounts.login("ada@example.com", "secret").preferences["studyStreak"] == 1
        clock.advance(days=1)
        assert accounts.login("ada@example.com", "secret").preferences["studyStreak"] == 2
        clock.advance(days=3)
        assert accounts.login("ada@example.com", "secret").preferences["studyStreak"] == 1
        assert load_model(store, owner, Profile).last_login == "2026-01-09T14:00:00"

    def test_logout(self, accounts, sessions):
        accounts.register("ada@example.com", "secret", "ada")
        token = accounts.login("ada@example.com", "secret").token
        assert accounts.logout(token) is True
        assert token not in sessions
