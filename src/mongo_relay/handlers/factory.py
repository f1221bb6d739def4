"""
Writer Factory - Creates object writers based on provider name

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: src/mongo_relay/handlers/factory.py
Created: 2026-10-19
Author: Mongo Relay Contributors
Type: Core Implementation

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  relay-dev   CREATE  Factory mapping provider names to object
                                writer implementations.
-------------------------------------------------------------------------------

License: MIT
===============================================================================
"""

from typing import Dict, Type

from ..access import Capability
from ..config import DestinationConfig
from .base import ObjectWriter
from .cloud_storage import S3ObjectWriter


class WriterFactory:
    """
    Factory for creating object writers.

    Maps provider names to writer implementations and creates
    configured writer instances.
    """

    WRITER_TYPES: Dict[str, Type[ObjectWriter]] = {
        "storj": S3ObjectWriter,
        "aws_s3": S3ObjectWriter,
        "s3": S3ObjectWriter,
        "minio": S3ObjectWriter,
        "wasabi": S3ObjectWriter,
        "digitalocean": S3ObjectWriter,
        "backblaze": S3ObjectWriter,
        "s3_compatible": S3ObjectWriter,
    }

    @classmethod
    def create(cls, capability: Capability, config: DestinationConfig) -> ObjectWriter:
        """
        Create a writer for the configured provider.

        Args:
            capability: Resolved access the writer acts with
            config: Destination configuration

        Returns:
            Configured writer instance

        Raises:
            ValueError: If the provider is unknown
        """
        provider = config.provider.lower()
        if provider not in cls.WRITER_TYPES:
            raise ValueError(f"Unknown storage provider: {config.provider}")

        writer_class = cls.WRITER_TYPES[provider]
        return writer_class(
            capability,
            provider=provider,
            region=config.region,
            buffer_size=config.buffer_size,
        )

    @classmethod
    def get_supported_types(cls) -> list:
        """Get list of supported providers"""
        return list(cls.WRITER_TYPES.keys())

    @classmethod
    def register_writer(cls, provider: str, writer_class: Type[ObjectWriter]):
        """
        Register a new writer type.

        Args:
            provider: Provider identifier
            writer_class: Writer implementation class
        """
        cls.WRITER_TYPES[provider] = writer_class
