from __future__ import annotations

import asyncio
import secrets
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHash, VerificationError

from grantflow.logging import get_logger
from grantflow.service.grants import is_expired
from grantflow.storage.errors import ConstraintViolation, CredentialsRejected, RecordNotFound
from grantflow.storage.models import AccessToken, Identifier, RefreshToken, User


@dataclass
class Credential:
    username: str
    password_hash: str
    user_id: Identifier
    scope: str


class MemoryHandlers:
    """In-memory implementation of :class:`OrchestratorHandlers`.

    Passwords are stored as argon2id hashes and token values are random
    URL-safe strings. All maps are guarded by one lock, and revoking an access
    token removes its refresh tokens in the same critical section, so a
    refresh token can be consumed at most once.
    """

    def __init__(self, *, token_bytes: int = 32, hasher: Optional[PasswordHasher] = None) -> None:
        self.logger = get_logger(__name__)
        self.token_bytes = token_bytes
        self._hasher = hasher or PasswordHasher(type=Type.ID)
        self._dummy_hash: Optional[str] = None
        self.credentials: Dict[str, Credential] = {}
        self.access_tokens: Dict[str, AccessToken] = {}
        self.refresh_tokens: Dict[str, RefreshToken] = {}
        self._data_lock = threading.Lock()

    # ------------------------------------------------------------------ users

    def add_user(
        self,
        username: str,
        password: str,
        scope: str,
        *,
        user_id: Optional[Identifier] = None,
    ) -> User:
        password_hash = self._hasher.hash(password)
        with self._data_lock:
            if username in self.credentials:
                raise ConstraintViolation("username already exists", {"field": "username"})
            credential = Credential(
                username=username,
                password_hash=password_hash,
                user_id=user_id if user_id is not None else str(uuid.uuid4()),
                scope=scope,
            )
            self.credentials[username] = credential
        return User(user_id=credential.user_id, scope=credential.scope)

    def remove_user(self, username: str) -> bool:
        with self._data_lock:
            return self.credentials.pop(username, None) is not None

    def _verify(self, password_hash: str, password: str) -> bool:
        try:
            return self._hasher.verify(password_hash, password)
        except (InvalidHash, VerificationError):
            return False

    async def authenticate_user(self, username: str, password: str) -> User:
        with self._data_lock:
            credential = self.credentials.get(username)
        if credential is None:
            # Spend the same hashing time for unknown users
            if self._dummy_hash is None:
                self._dummy_hash = self._hasher.hash(secrets.token_urlsafe(16))
            await asyncio.to_thread(self._verify, self._dummy_hash, password)
            self.logger.info("authentication_failed", reason="unknown_user")
            raise CredentialsRejected("credentials: Invalid credentials")
        valid = await asyncio.to_thread(self._verify, credential.password_hash, password)
        if not valid:
            self.logger.info("authentication_failed", reason="bad_password")
            raise CredentialsRejected("credentials: Invalid credentials")
        return User(user_id=credential.user_id, scope=credential.scope)

    # ----------------------------------------------------------------- tokens

    def _new_token_value(self, existing: Dict[str, object]) -> str:
        while True:
            value = secrets.token_urlsafe(self.token_bytes)
            if value not in existing:
                return value

    async def create_access_token(
        self, expires: datetime, scope: str, user_id: Identifier
    ) -> AccessToken:
        with self._data_lock:
            access_token = AccessToken(
                token=self._new_token_value(self.access_tokens),
                scope=scope,
                user_id=user_id,
                expires=expires,
            )
            self.access_tokens[access_token.token] = access_token
        return access_token

    async def create_refresh_token(
        self, access_token: str, expires: datetime, user_id: Identifier
    ) -> RefreshToken:
        with self._data_lock:
            if access_token not in self.access_tokens:
                raise ConstraintViolation(
                    "access token does not exist", {"field": "access_token"}
                )
            refresh_token = RefreshToken(
                token=self._new_token_value(self.refresh_tokens),
                access_token=access_token,
                user_id=user_id,
                expires=expires,
            )
            self.refresh_tokens[refresh_token.token] = refresh_token
        return refresh_token

    async def retrieve_access_token(self, token: str) -> AccessToken:
        with self._data_lock:
            access_token = self.access_tokens.get(token)
        if access_token is None:
            raise RecordNotFound("retrieve_access_token: Missing token")
        return access_token

    async def retrieve_refresh_token(self, token: str) -> RefreshToken:
        with self._data_lock:
            refresh_token = self.refresh_tokens.get(token)
        if refresh_token is None:
            raise RecordNotFound("retrieve_refresh_token: Missing token")
        return refresh_token

    async def revoke_access_token(self, token: str) -> None:
        with self._data_lock:
            if self.access_tokens.pop(token, None) is None:
                raise RecordNotFound("revoke_access_token: Missing token")
            stale = [
                value
                for value, refresh_token in self.refresh_tokens.items()
                if refresh_token.access_token == token
            ]
            for value in stale:
                self.refresh_tokens.pop(value, None)

    # ---------------------------------------------------------------- cleanup

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Drop expired tokens; return the number of records removed.

        An expired access token is kept while an unexpired refresh token still
        points at it, since refreshing needs its scope and user.
        """
        now = now or datetime.now(timezone.utc)
        with self._data_lock:
            dead_refresh: List[str] = [
                value for value, rt in self.refresh_tokens.items() if is_expired(rt.expires, now)
            ]
            for value in dead_refresh:
                self.refresh_tokens.pop(value, None)
            referenced = {rt.access_token for rt in self.refresh_tokens.values()}
            dead_access = [
                value
                for value, at in self.access_tokens.items()
                if is_expired(at.expires, now) and value not in referenced
            ]
            for value in dead_access:
                self.access_tokens.pop(value, None)
        removed = len(dead_refresh) + len(dead_access)
        if removed:
            self.logger.info(
                "expired_tokens_purged",
                access=len(dead_access),
                refresh=len(dead_refresh),
            )
        return removed


__all__ = ["Credential", "MemoryHandlers"]
