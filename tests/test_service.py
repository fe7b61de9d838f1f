"""Unit tests for auth/service.py -- AuthService setup, login, password change.

Coroutines are driven with asyncio.run(); concurrent scenarios use
asyncio.gather() so both calls are in flight across the bcrypt suspension.

Covers:
- setup happy path, display-name sanitization, password policy errors
- setup is at-most-once, including two overlapping setup calls
- login: success, and identical failures for "wrong password" and
  "not configured"
- change_password: revokes every session and returns one new token
- a login racing a password change never yields a usable token
- session secret: generated and stored, or supplied and never stored
- get_profile() never exposes the hash or the secret
"""

import asyncio
import json
import threading

import pytest

import auth.passwords
from auth.errors import AuthenticationError, ConflictError, NotConfiguredError, ValidationError
from auth.service import AuthService


def _setup(service: AuthService, password: str = "goodpass1", name: str = "Alice") -> str:
    return asyncio.run(service.setup_user(password, name))


class TestSetup:
    def test_setup_returns_valid_token(self, service):
        assert service.is_configured() is False
        token = _setup(service)
        assert service.is_configured() is True
        assert service.validate_token(token) is True

    def test_display_name_is_sanitized(self, service):
        _setup(service, "goodpass1", "  Alice\u200b  ")
        assert service.get_profile()["displayName"] == "Alice"

    def test_short_password_cites_minimum(self, service):
        with pytest.raises(ValidationError, match="at least 8 characters"):
            _setup(service, "short", "Alice")
        assert service.is_configured() is False

    def test_failed_setup_releases_guard(self, service):
        with pytest.raises(ValidationError):
            _setup(service, "short")
        assert service.validate_token(_setup(service)) is True

    def test_second_setup_conflicts(self, service):
        _setup(service)
        with pytest.raises(ConflictError, match="Already configured"):
            _setup(service, "otherpass1", "Mallory")
        assert service.get_profile()["displayName"] == "Alice"

    def test_concurrent_setups_exactly_one_wins(self, service, settings):
        async def race():
            return await asyncio.gather(
                service.setup_user("firstpass1", "First"),
                service.setup_user("secondpass2", "Second"),
                return_exceptions=True,
            )

        results = asyncio.run(race())
        tokens = [r for r in results if isinstance(r, str)]
        conflicts = [r for r in results if isinstance(r, ConflictError)]
        assert len(tokens) == 1
        assert len(conflicts) == 1
        assert service.validate_token(tokens[0]) is True
        # The durable record is complete and belongs to the winner.
        record = json.loads(settings.credential_path.read_text())
        assert record["displayName"] in ("First", "Second")
        assert record["passwordHash"].startswith("$2")
        assert len(service.sessions) == 1


class TestLogin:
    def test_login_success(self, service):
        _setup(service)
        token = asyncio.run(service.login("goodpass1"))
        assert service.validate_token(token) is True

    def test_wrong_password_and_unconfigured_look_identical(self, service):
        with pytest.raises(AuthenticationError) as before_setup:
            asyncio.run(service.login("goodpass1"))
        _setup(service)
        with pytest.raises(AuthenticationError) as wrong_password:
            asyncio.run(service.login("wrongpass1"))
        assert type(before_setup.value) is type(wrong_password.value)
        assert str(before_setup.value) == str(wrong_password.value) == "Invalid credentials"
        assert before_setup.value.code == wrong_password.value.code

    def test_unconfigured_login_hashes_off_the_event_loop(self, service, monkeypatch):
        real = auth.passwords.dummy_hash
        threads = []

        def recording_dummy_hash(rounds):
            threads.append(threading.get_ident())
            return real(rounds)

        monkeypatch.setattr(auth.passwords, "dummy_hash", recording_dummy_hash)
        with pytest.raises(AuthenticationError):
            asyncio.run(service.login("goodpass1"))
        assert threads
        assert threading.get_ident() not in threads

    @pytest.mark.parametrize("password", [None, "", 123])
    def test_non_string_password_is_generic_failure(self, service, password):
        _setup(service)
        with pytest.raises(AuthenticationError, match="Invalid credentials"):
            asyncio.run(service.login(password))

    def test_each_login_issues_a_distinct_token(self, service):
        first = _setup(service)
        second = asyncio.run(service.login("goodpass1"))
        assert first != second
        assert service.validate_token(first) and service.validate_token(second)


class TestChangePassword:
    def test_change_revokes_all_and_returns_one_token(self, service):
        old_tokens = [_setup(service)] + [asyncio.run(service.login("goodpass1")) for _ in range(3)]
        new_token = asyncio.run(service.change_password("goodpass1", "newpass99"))
        assert not any(service.validate_token(t) for t in old_tokens)
        assert service.validate_token(new_token) is True
        assert len(service.sessions) == 1

    def test_new_password_works_old_does_not(self, service):
        _setup(service)
        asyncio.run(service.change_password("goodpass1", "newpass99"))
        assert service.validate_token(asyncio.run(service.login("newpass99")))
        with pytest.raises(AuthenticationError):
            asyncio.run(service.login("goodpass1"))

    def test_wrong_old_password(self, service):
        token = _setup(service)
        with pytest.raises(AuthenticationError, match="Invalid current password"):
            asyncio.run(service.change_password("nope-nope", "newpass99"))
        assert service.validate_token(token) is True

    def test_new_password_policy(self, service):
        token = _setup(service)
        with pytest.raises(ValidationError, match="at least 8"):
            asyncio.run(service.change_password("goodpass1", "tiny"))
        assert service.validate_token(token) is True

    def test_requires_configuration(self, service):
        with pytest.raises(NotConfiguredError):
            asyncio.run(service.change_password("goodpass1", "newpass99"))

    def test_login_racing_change_never_yields_live_token(self, service):
        _setup(service)

        async def race():
            return await asyncio.gather(
                service.login("goodpass1"),
                service.change_password("goodpass1", "newpass99"),
                return_exceptions=True,
            )

        login_result, change_result = asyncio.run(race())
        assert isinstance(change_result, str)
        assert service.validate_token(change_result) is True
        if isinstance(login_result, str):
            assert service.validate_token(login_result) is False
        else:
            assert isinstance(login_result, AuthenticationError)


class TestSecretsAndProfile:
    def test_generated_secret_is_stored(self, service, settings):
        _setup(service)
        record = json.loads(settings.credential_path.read_text())
        assert len(record["sessionSecret"]) == 64
        assert service.session_secret() == record["sessionSecret"]

    def test_external_secret_is_used_and_not_stored(self, settings, clock):
        external = "e" * 40
        svc = AuthService(settings.model_copy(update={"session_secret": external}), clock=clock)
        _setup(svc)
        record = json.loads(settings.credential_path.read_text())
        assert record["sessionSecret"] is None
        assert svc.session_secret() == external

    def test_profile_hides_hash_and_secret(self, service):
        assert service.get_profile() is None
        _setup(service)
        profile = service.get_profile()
        assert set(profile) == {"displayName", "createdAt"}

    def test_sessions_survive_restart(self, service, settings, clock):
        token = _setup(service)
        restarted = AuthService(settings, clock=clock)
        assert restarted.is_configured() is True
        assert restarted.validate_token(token) is True
