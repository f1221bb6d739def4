"""
Relay Exceptions - Error taxonomy for the export pipeline

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: src/mongo_relay/exceptions.py
Created: 2026-10-19
Author: Mongo Relay Contributors
Type: Core Implementation

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  relay-dev   CREATE  Exception hierarchy for configuration,
                                source, destination and integrity failures.
-------------------------------------------------------------------------------

License: MIT
===============================================================================
"""


class RelayError(RuntimeError):
    """Base class for every error raised by the export pipeline."""


class ConfigurationError(RelayError, ValueError):
    """Missing or malformed configuration file or field."""


class InvalidAccessTokenError(ConfigurationError):
    """A serialized access token could not be parsed."""


class SourceConnectionError(RelayError):
    """The source database could not be reached or authenticated."""


class EnumerationError(RelayError):
    """Listing the source collections failed."""


class TransientReadError(RelayError):
    """A document cursor failed mid-collection. Resumption state is intact."""


class ChunkTooLargeError(RelayError):
    """A single serialized document does not fit in the transfer buffer."""


class ExportCancelled(RelayError):
    """The export was cancelled by the caller."""


class DestinationConnectionError(RelayError):
    """The object store could not be reached."""


class WriteError(RelayError):
    """An object write failed."""


class BucketNotFoundError(WriteError):
    """The destination bucket does not exist."""


class AuthorizationError(WriteError):
    """The capability does not permit the requested operation."""


class IntegrityError(RelayError):
    """A downloaded segment does not match the bytes that were uploaded."""
