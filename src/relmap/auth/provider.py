"""Authentication provider Protocol and mock implementation."""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import yaml

from relmap.auth.models import AuthCredentials, AuthResult, TokenValidation

_DEFAULT_FIXTURES_PATH = Path(__file__).resolve().parents[3] / "config" / "auth_fixtures.yml"


@runtime_checkable
class AuthProvider(Protocol):
    """Protocol for authentication providers."""

    def register(self, credentials: AuthCredentials, display_name: str = "") -> AuthResult: ...

    def authenticate(self, credentials: AuthCredentials) -> AuthResult: ...

    def validate_token(self, token: str) -> TokenValidation: ...

    def refresh_token(self, token: str) -> AuthResult: ...

    def revoke_token(self, token: str) -> bool: ...


class MockAuthProvider:
    """Mock auth provider with fixture users from YAML.

    Users sign in with username and password. Each user gets a stable
    opaque ``user_id`` that owns their persons and relations.
    """

    def __init__(
        self,
        fixtures_path: str | Path | None = None,
        token_expiry_minutes: int = 60,
    ) -> None:
        self._users: dict[str, dict[str, Any]] = {}
        self._tokens: dict[str, dict[str, Any]] = {}
        self._token_expiry = timedelta(minutes=token_expiry_minutes)
        self._load_fixtures(Path(fixtures_path) if fixtures_path else _DEFAULT_FIXTURES_PATH)

    def _load_fixtures(self, path: Path) -> None:
        if not path.exists():
            return
        with open(path) as fh:
            data = yaml.safe_load(fh) or {}
        for user in data.get("users", []):
            user.setdefault("user_id", str(uuid.uuid5(uuid.NAMESPACE_URL, user["username"])))
            self._users[user["username"]] = user

    @property
    def users(self) -> dict[str, dict[str, Any]]:
        return dict(self._users)

    def register(self, credentials: AuthCredentials, display_name: str = "") -> AuthResult:
        username = credentials.username.strip()
        if not username:
            return AuthResult(success=False, error="Email requis")
        if username in self._users:
            return AuthResult(success=False, error="Utilisateur déjà inscrit")
        if not credentials.password:
            return AuthResult(success=False, error="Mot de passe requis")

        self._users[username] = {
            "username": username,
            "password": credentials.password,
            "display_name": display_name or username,
            "user_id": str(uuid.uuid4()),
        }
        return self.authenticate(AuthCredentials(username=username, password=credentials.password))

    def authenticate(self, credentials: AuthCredentials) -> AuthResult:
        user = self._users.get(credentials.username)
        if user is None:
            return AuthResult(success=False, error="Utilisateur introuvable")

        if not credentials.password:
            return AuthResult(success=False, error="Mot de passe requis")

        if credentials.password != user.get("password", ""):
            return AuthResult(success=False, error="Identifiants invalides")

        return self._issue(user["user_id"], user.get("display_name") or user["username"])

    def validate_token(self, token: str) -> TokenValidation:
        info = self._tokens.get(token)
        if info is None:
            return TokenValidation(valid=False)

        if datetime.now(timezone.utc) > info["expires_at"]:
            del self._tokens[token]
            return TokenValidation(valid=False)

        return TokenValidation(
            valid=True,
            user_id=info["user_id"],
            expires_at=info["expires_at"],
        )

    def refresh_token(self, token: str) -> AuthResult:
        info = self._tokens.pop(token, None)
        if info is None or datetime.now(timezone.utc) > info["expires_at"]:
            return AuthResult(success=False, error="Session expirée")

        return self._issue(info["user_id"], info["display_name"])

    def revoke_token(self, token: str) -> bool:
        if token in self._tokens:
            del self._tokens[token]
            return True
        return False

    def _issue(self, user_id: str, display_name: str) -> AuthResult:
        token = secrets.token_urlsafe(32)
        self._tokens[token] = {
            "user_id": user_id,
            "display_name": display_name,
            "expires_at": datetime.now(timezone.utc) + self._token_expiry,
        }
        return AuthResult(success=True, token=token, user_id=user_id, display_name=display_name)
