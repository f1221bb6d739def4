"""
Configuration - Source, destination and run options

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: src/mongo_relay/config.py
Created: 2026-10-19
Author: Mongo Relay Contributors
Type: Core Implementation

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  relay-dev   CREATE  Dataclass configuration for the MongoDB
                                source and the object store destination,
                                loaded from JSON property files.
2026-10-19  relay-dev   UPDATE  Run options threaded through component
                                construction instead of global debug flags.
2026-10-19  relay-dev   UPDATE  scopeSecret for sealed access tokens;
                                parse errors keep their cause.
-------------------------------------------------------------------------------

License: MIT
===============================================================================
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
import json
import logging

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_DB_CONFIG_FILE = "./config/db_property.json"
DEFAULT_STORAGE_CONFIG_FILE = "./config/storj_config.json"

MIB = 1024 * 1024


@dataclass
class SourceConfig:
    """Connection properties of the MongoDB instance to export"""
    hostname: str
    database: str
    port: int = 27017
    username: Optional[str] = None
    password: Optional[str] = None
    auth_source: str = "admin"
    timeout: float = 10.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SourceConfig":
        hostname = data.get("hostname") or data.get("host")
        database = data.get("database")
        if not hostname:
            raise ConfigurationError("MongoDB configuration is missing 'hostname'")
        if not database:
            raise ConfigurationError("MongoDB configuration is missing 'database'")

        return cls(
            hostname=hostname,
            database=database,
            port=_as_int(data.get("port", 27017), "port"),
            username=data.get("username") or None,
            password=data.get("password") or None,
            auth_source=data.get("authSource", "admin"),
            timeout=_as_float(data.get("timeout", 10.0), "timeout"),
        )


@dataclass
class DestinationConfig:
    """
    Object store destination.

    Either ``api_key`` plus ``encryption_passphrase`` (derived access) or
    ``serialized_scope`` (a pre-serialized access token) must be present.
    The ``disallow_*`` flags restrict the shareable token printed after an
    export; they never narrow the capability used for the upload itself.
    ``scope_secret`` seals printed tokens and opens ``serialized_scope``.
    """
    bucket: str
    satellite: str = ""
    api_key: Optional[str] = None
    upload_path: str = ""
    encryption_passphrase: Optional[str] = None
    serialized_scope: Optional[str] = None
    scope_secret: Optional[str] = None
    disallow_reads: bool = False
    disallow_writes: bool = False
    disallow_deletes: bool = False
    provider: str = "storj"
    region: str = "us-east-1"
    buffer_size_mb: int = 32
    verify: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DestinationConfig":
        serialized_scope = data.get("serializedScope") or None
        bucket = data.get("bucket")
        if not bucket and not serialized_scope:
            raise ConfigurationError("Storage configuration is missing 'bucket'")
        if not serialized_scope and not data.get("apikey"):
            raise ConfigurationError(
                "Storage configuration needs either 'apikey' or 'serializedScope'"
            )
        if serialized_scope and not data.get("scopeSecret"):
            raise ConfigurationError("'serializedScope' requires 'scopeSecret'")

        buffer_size_mb = _as_int(data.get("bufferSizeMb", 32), "bufferSizeMb")
        if buffer_size_mb <= 0:
            raise ConfigurationError("'bufferSizeMb' must be positive")

        return cls(
            bucket=bucket or "",
            satellite=data.get("satellite", ""),
            api_key=data.get("apikey") or None,
            upload_path=data.get("uploadPath", ""),
            encryption_passphrase=data.get("encryptionpassphrase") or None,
            serialized_scope=serialized_scope,
            scope_secret=data.get("scopeSecret") or None,
            disallow_reads=bool(data.get("disallowReads", False)),
            disallow_writes=bool(data.get("disallowWrites", False)),
            disallow_deletes=bool(data.get("disallowDeletes", False)),
            provider=data.get("provider", "storj"),
            region=data.get("region", "us-east-1"),
            buffer_size_mb=buffer_size_mb,
            verify=bool(data.get("verify", False)),
        )

    @property
    def buffer_size(self) -> int:
        return self.buffer_size_mb * MIB


@dataclass
class ExportOptions:
    """Per-run switches handed to the reader, relay and writer"""
    debug: bool = False
    verify: bool = False
    read_retries: int = 3
    buffer_size: int = 32 * MIB
    extension: str = "bson"


def _as_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"'{name}' must be an integer, got {value!r}") from e


def _as_float(value: Any, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"'{name}' must be a number, got {value!r}") from e


def _read_json(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Configuration file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Malformed JSON in {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Could not read {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a JSON object")
    return data


def load_source_config(path: str = DEFAULT_DB_CONFIG_FILE) -> SourceConfig:
    """
    Read MongoDB connection properties from a JSON file.

    Args:
        path: Full path of the property file

    Returns:
        Parsed SourceConfig

    Raises:
        ConfigurationError: If the file is missing, malformed or incomplete
    """
    config = SourceConfig.from_dict(_read_json(path))
    logger.info(f"Read MongoDB configuration from {path}")
    logger.debug(
        f"MongoDB host={config.hostname}:{config.port} database={config.database} "
        f"user={config.username or '-'}"
    )
    return config


def load_destination_config(path: str = DEFAULT_STORAGE_CONFIG_FILE) -> DestinationConfig:
    """
    Read object store configuration from a JSON file.

    Args:
        path: Full path of the configuration file

    Returns:
        Parsed DestinationConfig

    Raises:
        ConfigurationError: If the file is missing, malformed or incomplete
    """
    config = DestinationConfig.from_dict(_read_json(path))
    logger.info(f"Read storage configuration from {path}")
    logger.debug(
        f"Storage endpoint={config.satellite or '-'} bucket={config.bucket or '-'} "
        f"uploadPath={config.upload_path or '-'} provider={config.provider}"
    )
    return config
