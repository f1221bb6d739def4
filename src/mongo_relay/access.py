"""
Access Scope - Capability derivation and serialized access tokens

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: src/mongo_relay/access.py
Created: 2026-10-19
Author: Mongo Relay Contributors
Type: Core Implementation

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  relay-dev   CREATE  Derived access (root credential plus
                                passphrase) and opaque serialized tokens,
                                both resolved to a single Capability.
2026-10-19  relay-dev   UPDATE  Restricted tokens (read/write/delete).
2026-10-19  relay-dev   UPDATE  Key derivation through cryptography's
                                PBKDF2HMAC; tokens sealed with Fernet under
                                the configured scope secret.
-------------------------------------------------------------------------------

License: MIT

A Capability grants access to exactly one bucket and path prefix. The upload
loop never inspects where it came from: derived and pre-serialized access
both resolve to the same frozen dataclass before reaching the writer.

Serialized tokens are Fernet-sealed under the operator's scope secret, so a
holder without that secret can neither read the embedded credentials nor
widen the restrictions. The restrictions are honored by mongo-relay's writer
only: an S3 gateway has no notion of them, and the embedded credentials keep
whatever rights the gateway grants them.
===============================================================================
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Union
import base64
import binascii
import json
import logging

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .config import DestinationConfig
from .exceptions import ConfigurationError, InvalidAccessTokenError

logger = logging.getLogger(__name__)

TOKEN_VERSION = 1
KEY_DERIVATION_ROUNDS = 100_000
ENCRYPTION_KEY_BYTES = 32
SEALING_SALT = b"mongo-relay:scope"


@dataclass(frozen=True)
class Restrictions:
    """Operations a capability refuses"""
    disallow_reads: bool = False
    disallow_writes: bool = False
    disallow_deletes: bool = False

    def merge(self, other: "Restrictions") -> "Restrictions":
        # Restrictions only accumulate; a narrowed token can never widen.
        return Restrictions(
            disallow_reads=self.disallow_reads or other.disallow_reads,
            disallow_writes=self.disallow_writes or other.disallow_writes,
            disallow_deletes=self.disallow_deletes or other.disallow_deletes,
        )

    @property
    def any(self) -> bool:
        return self.disallow_reads or self.disallow_writes or self.disallow_deletes


@dataclass(frozen=True)
class Capability:
    """Resolved access to one bucket/prefix on one endpoint"""
    endpoint: str
    access_key: str
    secret_key: str
    bucket: str
    prefix: str = ""
    encryption_key: Optional[bytes] = field(default=None, repr=False)
    restrictions: Restrictions = field(default_factory=Restrictions)

    @property
    def can_read(self) -> bool:
        return not self.restrictions.disallow_reads

    @property
    def can_write(self) -> bool:
        return not self.restrictions.disallow_writes

    @property
    def can_delete(self) -> bool:
        return not self.restrictions.disallow_deletes

    def restrict(self, restrictions: Restrictions) -> "Capability":
        """Return a copy narrowed by ``restrictions``"""
        return replace(self, restrictions=self.restrictions.merge(restrictions))


@dataclass(frozen=True)
class DerivedAccess:
    """Full access from a root credential (``access:secret``) and a passphrase"""
    root_credential: str
    passphrase: Optional[str]
    endpoint: str
    bucket: str
    prefix: str = ""
    restrictions: Restrictions = field(default_factory=Restrictions)


@dataclass(frozen=True)
class OpaqueToken:
    """A sealed, possibly restricted, access token and the secret that opens it"""
    serialized: str
    scope_secret: str = field(default="", repr=False)


AccessSource = Union[DerivedAccess, OpaqueToken]


def derive_encryption_key(passphrase: str, salt: str) -> bytes:
    """
    Derive a 256-bit encryption key from a human passphrase.

    Args:
        passphrase: Encryption passphrase from the configuration
        salt: Per-bucket salt so equal passphrases differ across buckets

    Returns:
        32 raw key bytes
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=ENCRYPTION_KEY_BYTES,
        salt=f"mongo-relay:{salt}".encode("utf-8"),
        iterations=KEY_DERIVATION_ROUNDS,
    )
    return kdf.derive(passphrase.encode("utf-8"))


def _sealer(scope_secret: str) -> Fernet:
    if not scope_secret:
        raise ConfigurationError("A scope secret ('scopeSecret') is required for access tokens")
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=SEALING_SALT,
        iterations=KEY_DERIVATION_ROUNDS,
    )
    return Fernet(base64.urlsafe_b64encode(kdf.derive(scope_secret.encode("utf-8"))))


def access_from_config(config: DestinationConfig) -> AccessSource:
    """Pick the access form the destination configuration describes"""
    if config.serialized_scope:
        return OpaqueToken(
            serialized=config.serialized_scope,
            scope_secret=config.scope_secret or "",
        )
    if not config.api_key:
        raise ConfigurationError("No root credential ('apikey') configured")
    return DerivedAccess(
        root_credential=config.api_key,
        passphrase=config.encryption_passphrase,
        endpoint=config.satellite,
        bucket=config.bucket,
        prefix=config.upload_path,
    )


def resolve_access(source: AccessSource) -> Capability:
    """
    Resolve either access form to a Capability.

    Raises:
        ConfigurationError: For a malformed root credential
        InvalidAccessTokenError: For an unparseable serialized token
    """
    if isinstance(source, OpaqueToken):
        capability = parse_capability(source.serialized, source.scope_secret)
        logger.info(f"Parsed serialized access for bucket {capability.bucket}")
        return capability

    access_key, sep, secret_key = source.root_credential.partition(":")
    if not sep or not access_key or not secret_key:
        raise ConfigurationError("Root credential must have the form 'access_key:secret_key'")

    encryption_key = None
    if source.passphrase:
        logger.debug("Deriving encryption key from passphrase")
        encryption_key = derive_encryption_key(source.passphrase, source.bucket)

    logger.info(f"Derived access for bucket {source.bucket}")
    return Capability(
        endpoint=source.endpoint,
        access_key=access_key,
        secret_key=secret_key,
        bucket=source.bucket,
        prefix=source.prefix,
        encryption_key=encryption_key,
        restrictions=source.restrictions,
    )


def serialize_capability(capability: Capability, scope_secret: str) -> str:
    """Serialize a capability into a URL-safe token sealed under ``scope_secret``"""
    payload = {
        "v": TOKEN_VERSION,
        "endpoint": capability.endpoint,
        "accessKey": capability.access_key,
        "secretKey": capability.secret_key,
        "bucket": capability.bucket,
        "prefix": capability.prefix,
        "key": (
            base64.b64encode(capability.encryption_key).decode("ascii")
            if capability.encryption_key else None
        ),
        "restrictions": {
            "disallowReads": capability.restrictions.disallow_reads,
            "disallowWrites": capability.restrictions.disallow_writes,
            "disallowDeletes": capability.restrictions.disallow_deletes,
        },
    }
    raw = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return _sealer(scope_secret).encrypt(raw).decode("ascii")


def parse_capability(serialized: str, scope_secret: str) -> Capability:
    """
    Open and parse a token produced by :func:`serialize_capability`.

    Raises:
        ConfigurationError: If no scope secret is given
        InvalidAccessTokenError: If the token is not valid, was sealed under
            another secret or was altered after sealing
    """
    sealer = _sealer(scope_secret)
    try:
        raw = sealer.decrypt(serialized.strip().encode("ascii"))
    except (InvalidToken, UnicodeError) as e:
        raise InvalidAccessTokenError(
            "Access token was not sealed with the configured scope secret"
        ) from e
    try:
        payload: Dict[str, Any] = json.loads(raw.decode("utf-8"))
    except (ValueError, UnicodeError) as e:
        raise InvalidAccessTokenError(f"Could not decode access token: {e}") from e

    if not isinstance(payload, dict) or payload.get("v") != TOKEN_VERSION:
        raise InvalidAccessTokenError("Unsupported access token version")

    for required in ("accessKey", "secretKey", "bucket"):
        if not payload.get(required):
            raise InvalidAccessTokenError(f"Access token is missing '{required}'")

    encryption_key = None
    if payload.get("key"):
        try:
            encryption_key = base64.b64decode(payload["key"], validate=True)
        except binascii.Error as e:
            raise InvalidAccessTokenError(f"Bad encryption key in access token: {e}") from e

    flags = payload.get("restrictions") or {}
    return Capability(
        endpoint=payload.get("endpoint", ""),
        access_key=payload["accessKey"],
        secret_key=payload["secretKey"],
        bucket=payload["bucket"],
        prefix=payload.get("prefix", ""),
        encryption_key=encryption_key,
        restrictions=Restrictions(
            disallow_reads=bool(flags.get("disallowReads", False)),
            disallow_writes=bool(flags.get("disallowWrites", False)),
            disallow_deletes=bool(flags.get("disallowDeletes", False)),
        ),
    )


def shareable_token(capability: Capability, config: DestinationConfig,
                    restrict: bool = False) -> str:
    """
    Serialize the capability for sharing after an export.

    The token is sealed under ``config.scope_secret``. Restrictions are
    honored by mongo-relay only; the S3 gateway does not enforce them.

    Args:
        capability: Capability used for the upload
        config: Destination config carrying the ``disallow_*`` flags
        restrict: Apply the configured restrictions before serializing
    """
    if restrict:
        capability = capability.restrict(Restrictions(
            disallow_reads=config.disallow_reads,
            disallow_writes=config.disallow_writes,
            disallow_deletes=config.disallow_deletes,
        ))
    return serialize_capability(capability, config.scope_secret or "")
