"""
pytest configuration and fixtures for relay tests

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: tests/conftest.py
Created: 2026-10-19
Author: Mongo Relay Contributors
Type: Test Configuration

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  relay-dev   CREATE  Fixtures for sources, writers, capabilities
                                and configuration files.
2026-10-19  relay-dev   UPDATE  Scope secret in the storage configuration.
-------------------------------------------------------------------------------

License: MIT
===============================================================================
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional
import json

import pytest

from generators.relay_fakes import FakeObjectWriter, FakeSource, make_chunks
from mongo_relay.access import Capability

SCOPE_SECRET = "operator-scope-secret"


# =============================================================================
# BDD Context
# =============================================================================

@dataclass
class BDDContext:
    """Shared context for BDD step definitions"""
    source: Optional[FakeSource] = None
    writer: Optional[FakeObjectWriter] = None
    capacity: int = 250
    verify: bool = False

    # Results
    pulls: List[Any] = field(default_factory=list)
    last_result: Optional[Any] = None
    last_error: Optional[Exception] = None


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def two_collection_source() -> FakeSource:
    """3 and 1 documents of 100 bytes each"""
    return FakeSource({
        "alpha": make_chunks("alpha", 3),
        "beta": make_chunks("beta", 1),
    })


@pytest.fixture
def varied_source() -> FakeSource:
    """Collections with uneven chunk sizes, including an empty collection"""
    return FakeSource({
        "accounts": [f"acct-{i}".encode() * (i % 7 + 1) for i in range(23)],
        "empty": [],
        "events": [f"evt-{i}".encode().ljust(40 + (i * 13) % 90, b"#") for i in range(31)],
        "zones": make_chunks("zone", 2, size=64),
    })


@pytest.fixture
def bdd_context() -> BDDContext:
    """Fresh BDD context for each scenario"""
    return BDDContext()


@pytest.fixture
def fake_writer() -> FakeObjectWriter:
    return FakeObjectWriter(capacity=250)


@pytest.fixture
def capability() -> Capability:
    return Capability(
        endpoint="https://gateway.example.test",
        access_key="AKIAEXAMPLE",
        secret_key="s3cr3t",
        bucket="backups",
        prefix="nightly/",
        encryption_key=b"k" * 32,
    )


@pytest.fixture
def scope_secret() -> str:
    return SCOPE_SECRET


@pytest.fixture
def db_config_file(tmp_path):
    path = tmp_path / "db_property.json"
    path.write_text(json.dumps({
        "hostname": "mongo.internal",
        "port": "27017",
        "username": "backup",
        "password": "p@ss",
        "database": "inventory",
    }))
    return str(path)


@pytest.fixture
def storage_config_file(tmp_path):
    path = tmp_path / "storj_config.json"
    path.write_text(json.dumps({
        "apikey": "AKIAEXAMPLE:s3cr3t",
        "satellite": "https://gateway.example.test",
        "bucket": "backups",
        "uploadPath": "nightly/",
        "encryptionpassphrase": "correct horse battery staple",
        "disallowDeletes": True,
        "scopeSecret": SCOPE_SECRET,
    }))
    return str(path)
