"""Tests for token issuance and password hashing."""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from soilsense.config import SecurityConfig
from soilsense.errors import TokenExpiredError, TokenInvalidError, TokenPurposeError
from soilsense.models.user import User
from soilsense.services.jwt import ACCESS, REFRESH, RESET, JWTService, password_fingerprint
from soilsense.services.passwords import PasswordHasher

SECRET = "unit-test-secret"


@pytest.fixture(name="config")
def config_fixture() -> SecurityConfig:
    return SecurityConfig(jwt_secret_key=SECRET, jwt_algorithm="HS256", access_token_ttl=timedelta(minutes=15))


@pytest.fixture(name="user")
def user_fixture() -> User:
    return User(id=7, email="grower@example.com", name="Grower", password_hash="$2b$04$abcdefghijklmnopqrstuv")


class TestJWTService:
    def test_pair_carries_purposes(self, config: SecurityConfig, user: User):
        service = JWTService(config)
        pair = service.issue_pair(user)

        access = service.verify(pair.access_token, ACCESS)
        refresh = service.verify(pair.refresh_token, REFRESH)
        assert access["sub"] == refresh["sub"] == "7"
        assert access["email"] == "grower@example.com"

    def test_lifetimes(self, config: SecurityConfig, user: User):
        service = JWTService(config)
        pair = service.issue_pair(user)

        access = jwt.get_unverified_claims(pair.access_token)
        refresh = jwt.get_unverified_claims(pair.refresh_token)
        reset = jwt.get_unverified_claims(service.create_reset_token(user))
        assert access["exp"] - access["iat"] == 15 * 60
        assert refresh["exp"] - refresh["iat"] == 30 * 24 * 3600
        assert reset["exp"] - reset["iat"] == 3600

    def test_purpose_mismatch(self, config: SecurityConfig, user: User):
        service = JWTService(config)
        pair = service.issue_pair(user)

        with pytest.raises(TokenPurposeError):
            service.verify(pair.access_token, REFRESH)
        with pytest.raises(TokenPurposeError):
            service.verify(pair.refresh_token, ACCESS)
        with pytest.raises(TokenPurposeError):
            service.verify(service.create_reset_token(user), ACCESS)

    def test_expired(self, user: User):
        config = SecurityConfig(jwt_secret_key=SECRET, jwt_algorithm="HS256", access_token_ttl=timedelta(seconds=-5))
        service = JWTService(config)
        with pytest.raises(TokenExpiredError):
            service.verify(service.create_access_token(user), ACCESS)

    def test_wrong_secret(self, config: SecurityConfig, user: User):
        token = JWTService(config).create_access_token(user)
        other = JWTService(SecurityConfig(jwt_secret_key="other", jwt_algorithm="HS256", access_token_ttl=timedelta(1)))
        with pytest.raises(TokenInvalidError):
            other.verify(token, ACCESS)

    def test_missing_purpose_claim(self, config: SecurityConfig):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "7", "email": "grower@example.com", "exp": now + timedelta(minutes=5)}, SECRET, algorithm="HS256"
        )
        with pytest.raises(TokenPurposeError):
            JWTService(config).verify(token, ACCESS)

    def test_non_numeric_subject(self, config: SecurityConfig):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "abc", "email": "x@example.com", "purpose": ACCESS, "exp": now + timedelta(minutes=5)},
            SECRET,
            algorithm="HS256",
        )
        with pytest.raises(TokenInvalidError):
            JWTService(config).verify(token, ACCESS)

    def test_reset_token_bound_to_password(self, config: SecurityConfig, user: User):
        service = JWTService(config)
        claims = service.verify(service.create_reset_token(user), RESET)
        assert claims["pwd"] == password_fingerprint(user.password_hash)
        assert claims["pwd"] != password_fingerprint("$2b$04$somethingelse")


class TestPasswordHasher:
    def test_hash_and_verify(self):
        hasher = PasswordHasher(rounds=4)
        hashed = hasher.hash("secret1")
        assert hashed != "secret1"
        assert hasher.verify("secret1", hashed)
        assert not hasher.verify("secret2", hashed)

    def test_missing_hash_never_matches(self):
        hasher = PasswordHasher(rounds=4)
        assert not hasher.verify("anything", None)

    def test_malformed_hash(self):
        hasher = PasswordHasher(rounds=4)
        assert not hasher.verify("secret1", "not-a-bcrypt-hash")

    def test_unusable_hash(self):
        hasher = PasswordHasher(rounds=4)
        assert not hasher.verify("", hasher.unusable_hash())
