# csfle/keys.py

"""
Key lifecycle on the client.

The effective secret for a user is, in order of preference:
  1. the stable key custodied by the server (survives re-login)
  2. SHA256(account_id ":" email), deterministic from durable attributes
Resolving is a pure read. Writing a derived secret back to the server is a
separate, idempotent step.
"""

import hashlib
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from .cipher import generate_user_salt
from .errors import CSFLEError, MissingKeyError, TransportError
from .fields import ALGORITHM, VERSION

logger = logging.getLogger(__name__)

SOURCE_STABLE = "stable"
SOURCE_DERIVED = "derived"


@dataclass(frozen=True)
class EncryptionProfile:
    account_id: Optional[str] = None
    email: Optional[str] = None
    salt: str = ""
    stable_key: str = ""
    algorithm: str = ALGORITHM
    version: str = VERSION
    enabled: bool = True
    created: Optional[str] = None

    @classmethod
    def from_json(cls, data: dict) -> "EncryptionProfile":
        """
        Accepts either ``{"user": {...,"encryption": {...}}}`` (mutation
        responses) or a bare profile document.
        """
        user = data.get("user") if isinstance(data.get("user"), dict) else data
        enc = user.get("encryption") if isinstance(user.get("encryption"), dict) else user

        account_id = user.get("id", data.get("accountId"))
        return cls(
            account_id=str(account_id) if account_id is not None else None,
            email=user.get("email") or data.get("email"),
            salt=enc.get("salt") or "",
            stable_key=enc.get("encryptionKey") or "",
            algorithm=enc.get("algorithm") or ALGORITHM,
            version=enc.get("version") or VERSION,
            enabled=bool(enc.get("enabled", True)),
            created=enc.get("created"),
        )


@dataclass(frozen=True)
class KeyResolution:
    secret: str
    source: str


@dataclass(frozen=True)
class EncryptionSession:
    """
    Key material for one authenticated session. Built once after login
    and handed to SyncClient explicitly.
    """

    account_id: Optional[str]
    salt: str
    secret: str
    source: str
    enabled: bool = True

    @property
    def active(self) -> bool:
        return self.enabled and bool(self.salt) and bool(self.secret)


def derive_user_secret(account_id, email) -> str:
    if not account_id or not email:
        raise MissingKeyError("Account id and email required to derive a secret")
    return hashlib.sha256(f"{account_id}:{email}".encode("utf-8")).hexdigest()


class KeyDerivationService:

    def __init__(self, transport, executor: Optional[ThreadPoolExecutor] = None):
        self.transport = transport
        self._executor = executor
        self._owns_executor = executor is None

    def _background(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="csfle-keys"
            )
        return self._executor

    def close(self):
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    # ---------------------------------------------------------
    # Read
    # ---------------------------------------------------------

    @staticmethod
    def resolve_effective_secret(profile: EncryptionProfile) -> KeyResolution:
        if profile.stable_key:
            return KeyResolution(profile.stable_key, SOURCE_STABLE)

        if profile.account_id and profile.email:
            return KeyResolution(
                derive_user_secret(profile.account_id, profile.email),
                SOURCE_DERIVED,
            )

        raise MissingKeyError("Unable to derive encryption key - missing user data")

    # ---------------------------------------------------------
    # Write-back
    # ---------------------------------------------------------

    def persist_derived_secret(self, secret: str) -> EncryptionProfile:
        """
        Ask the server to keep ``secret`` as the stable key. The server only
        stores it when no stable key exists yet and otherwise returns the
        existing one, so retrying is safe.
        """
        data = self.transport.provision_stable_key(secret)
        profile = EncryptionProfile.from_json(data)
        if profile.stable_key and profile.stable_key != secret:
            logger.warning(
                "Server kept a different stable key than the derived one",
                extra={"event": "stable_key_conflict", "account_id": profile.account_id},
            )
        return profile

    def schedule_persist(self, secret: str) -> Future:
        """Fire-and-forget write-back; failures are logged, never raised."""

        def _run():
            try:
                return self.persist_derived_secret(secret)
            except (CSFLEError, TypeError, ValueError, AttributeError) as exc:
                logger.warning(
                    "Failed to save stable encryption key: %s",
                    exc,
                    extra={"event": "stable_key_persist_failed"},
                )
                return None

        return self._background().submit(_run)

    # ---------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------

    def initialize_profile(self, account_id) -> EncryptionProfile:
        profile = EncryptionProfile.from_json(self.transport.get_profile())

        if not profile.salt:
            metadata = {
                "salt": generate_user_salt(account_id),
                "algorithm": ALGORITHM,
                "version": VERSION,
                "enabled": True,
                "created": datetime.now(timezone.utc).isoformat(),
            }
            try:
                data = self.transport.initialize_profile(metadata)
            except TransportError as exc:
                if exc.status_code != 400:
                    raise
                # Another session initialized first; adopt its salt.
                logger.info(
                    "Encryption already initialized, reloading profile",
                    extra={"event": "profile_init_lost_race"},
                )
                data = self.transport.get_profile()
            profile = EncryptionProfile.from_json(data)
            logger.info("Encryption profile initialized", extra={"event": "profile_initialized"})

        if profile.salt and not profile.stable_key:
            # Notes may already be encrypted under the derived secret.
            proposed = None
            if profile.account_id and profile.email:
                proposed = derive_user_secret(profile.account_id, profile.email)
            try:
                if proposed:
                    data = self.transport.provision_stable_key(proposed)
                else:
                    data = self.transport.provision_stable_key()
                profile = EncryptionProfile.from_json(data)
            except TransportError as exc:
                # Derived fallback still works without a stable key.
                logger.warning(
                    "Failed to get stable encryption key: %s",
                    exc,
                    extra={"event": "stable_key_request_failed"},
                )

        return profile

    def open_session(self, profile: EncryptionProfile) -> EncryptionSession:
        resolution = self.resolve_effective_secret(profile)

        if resolution.source == SOURCE_DERIVED:
            self.schedule_persist(resolution.secret)

        return EncryptionSession(
            account_id=profile.account_id,
            salt=profile.salt,
            secret=resolution.secret,
            source=resolution.source,
            enabled=profile.enabled,
        )
