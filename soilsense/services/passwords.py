"""Password hashing with bcrypt."""

import secrets

import bcrypt

from soilsense.config import get_settings


class PasswordHasher:
    """bcrypt hashing with a configurable cost factor."""

    def __init__(self, rounds: int) -> None:
        self.rounds = rounds
        # Compared against when the account does not exist, so a miss costs the same as a hit.
        self._dummy_hash = self.hash(secrets.token_urlsafe(16))

    def hash(self, password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, password: str, password_hash: str | None) -> bool:
        """Check a password. A missing hash still burns one bcrypt comparison."""
        target = password_hash or self._dummy_hash
        try:
            matched = bcrypt.checkpw(password.encode("utf-8"), target.encode("utf-8"))
        except ValueError:
            # Malformed stored hash
            return False
        return matched and password_hash is not None

    def unusable_hash(self) -> str:
        """Hash of a random secret nobody knows, for accounts that sign in through a provider."""
        return self.hash(secrets.token_urlsafe(32))


_password_hasher: PasswordHasher | None = None


def get_password_hasher() -> PasswordHasher:
    """Get singleton password hasher instance."""
    global _password_hasher
    if _password_hasher is None:
        _password_hasher = PasswordHasher(get_settings().security().bcrypt_rounds)
    return _password_hasher
