"""
Cloud Storage Writer - S3-compatible object store (Storj gateway, MinIO, AWS)

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: src/mongo_relay/handlers/cloud_storage.py
Created: 2026-10-19
Author: Mongo Relay Contributors
Type: Core Implementation

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  relay-dev   CREATE  S3-compatible object writer supporting:
                                - Storj S3 gateway
                                - AWS S3 (native)
                                - MinIO / Wasabi / other S3-compatible
                                Uses the official SDK: boto3
2026-10-19  relay-dev   UPDATE  Streaming uploads from a segment stream,
                                SSE-C with the capability's derived key,
                                ClientError mapping to the relay taxonomy.
2026-10-19  relay-dev   UPDATE  Connection failures in object lookups are
                                mapped like every other call.
-------------------------------------------------------------------------------

License: MIT
===============================================================================
"""

from typing import Any, BinaryIO, Dict, Optional
import logging

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ..access import Capability
from ..exceptions import (
    AuthorizationError,
    BucketNotFoundError,
    DestinationConnectionError,
    WriteError,
)
from .base import ObjectWriter

logger = logging.getLogger(__name__)

DEFAULT_TRANSFER_BUFFER = 32 * 1024 * 1024

NOT_FOUND_CODES = {"NoSuchBucket"}
DENIED_CODES = {
    "AccessDenied",
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "Forbidden",
    "403",
}


def map_client_error(error: Exception, action: str) -> WriteError:
    """Translate a botocore failure into the relay's write error taxonomy"""
    if isinstance(error, ClientError):
        code = str(error.response.get("Error", {}).get("Code", ""))
        if code in NOT_FOUND_CODES:
            return BucketNotFoundError(f"{action}: bucket does not exist ({code})")
        if code in DENIED_CODES:
            return AuthorizationError(f"{action}: access denied ({code})")
        return WriteError(f"{action}: {code or 'error'}: {error}")
    return WriteError(f"{action}: {error}")


class S3ObjectWriter(ObjectWriter):
    """
    Object writer for S3 and S3-compatible storage.

    Supports:
    - Storj (S3 gateway)
    - AWS S3 (native)
    - MinIO
    - Wasabi
    - DigitalOcean Spaces
    - Backblaze B2
    """

    # Known S3-compatible endpoints
    PROVIDER_ENDPOINTS = {
        "storj": "https://gateway.storjshare.io",
        "minio": None,  # User-provided
        "wasabi": "https://s3.{region}.wasabisys.com",
        "digitalocean": "https://{region}.digitaloceanspaces.com",
        "backblaze": "https://s3.{region}.backblazeb2.com",
    }

    def __init__(self, capability: Capability, provider: str = "storj",
                 region: str = "us-east-1",
                 buffer_size: int = DEFAULT_TRANSFER_BUFFER,
                 client=None):
        """
        Args:
            capability: Resolved access to one bucket/prefix
            provider: Provider name used to pick a default endpoint
            region: Region name handed to botocore
            buffer_size: Transfer buffer, also the upper bound of a segment
            client: Pre-built S3 client (tests)
        """
        super().__init__(capability)
        self.provider = provider
        self.region = region
        self.buffer_size = buffer_size
        self._s3_client = client

    def connect(self) -> None:
        """Create the S3 client"""
        if self._s3_client is not None:
            return

        try:
            boto_config = BotoConfig(
                signature_version="s3v4",
                s3={"addressing_style": "path"},
                retries={"max_attempts": 1, "mode": "standard"},
            )

            client_kwargs = {
                "config": boto_config,
                "region_name": self.region,
                "aws_access_key_id": self.capability.access_key,
                "aws_secret_access_key": self.capability.secret_key,
            }

            endpoint_url = self._get_endpoint_url()
            if endpoint_url:
                client_kwargs["endpoint_url"] = endpoint_url

            self._s3_client = boto3.client("s3", **client_kwargs)
        except (BotoCoreError, ValueError) as e:
            raise DestinationConnectionError(f"Failed to create S3 client: {e}") from e

        logger.info(f"Connected to object store: {self.bucket} (provider: {self.provider})")

    def _get_endpoint_url(self) -> Optional[str]:
        """Get endpoint URL for provider"""
        if self.capability.endpoint:
            return self.capability.endpoint

        template = self.PROVIDER_ENDPOINTS.get(self.provider.lower())
        if template:
            return template.format(region=self.region)

        return None  # Use default AWS endpoint

    def disconnect(self) -> None:
        """Close S3 connection"""
        self._s3_client = None

    @property
    def client(self):
        if self._s3_client is None:
            self.connect()
        return self._s3_client

    def _encryption_args(self) -> Dict[str, Any]:
        """SSE-C arguments for the capability's derived key"""
        if not self.capability.encryption_key:
            return {}
        return {
            "SSECustomerAlgorithm": "AES256",
            "SSECustomerKey": self.capability.encryption_key,
        }

    def _check_write(self, remote_key: str) -> None:
        if not self.capability.can_write:
            raise AuthorizationError(f"Capability does not allow writing {remote_key}")

    def upload_stream(self, remote_key: str, stream: BinaryIO) -> None:
        """Upload everything the stream yields, reading one buffer at a time"""
        self._check_write(remote_key)

        transfer_config = TransferConfig(
            multipart_threshold=self.buffer_size,
            multipart_chunksize=self.buffer_size,
            max_concurrency=1,
        )
        logger.debug(f"Uploading stream to {self.bucket}/{remote_key}")
        try:
            self.client.upload_fileobj(
                stream, self.bucket, remote_key,
                ExtraArgs=self._encryption_args(),
                Config=transfer_config,
            )
        except (ClientError, BotoCoreError) as e:
            raise map_client_error(e, f"Upload of {remote_key}") from e

        logger.info(f"Uploaded to object store: {remote_key}")

    def upload_bytes(self, data: bytes, remote_key: str) -> None:
        """Upload bytes to S3"""
        self._check_write(remote_key)
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=remote_key,
                Body=data,
                **self._encryption_args()
            )
        except (ClientError, BotoCoreError) as e:
            raise map_client_error(e, f"Upload of {remote_key}") from e

        logger.info(f"Uploaded bytes to object store: {remote_key}")

    def download_bytes(self, remote_key: str) -> bytes:
        """Download bytes from S3"""
        if not self.capability.can_read:
            raise AuthorizationError(f"Capability does not allow reading {remote_key}")
        try:
            response = self.client.get_object(
                Bucket=self.bucket,
                Key=remote_key,
                **self._encryption_args()
            )
            return response["Body"].read()
        except (ClientError, BotoCoreError) as e:
            raise map_client_error(e, f"Download of {remote_key}") from e

    def create_bucket(self) -> None:
        """Create the capability's bucket"""
        self._check_write(self.bucket)
        logger.info(f"Creating bucket {self.bucket}")
        kwargs: Dict[str, Any] = {"Bucket": self.bucket}
        if self.region and self.region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        try:
            self.client.create_bucket(**kwargs)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code == "BucketAlreadyOwnedByYou":
                return
            raise map_client_error(e, f"Creating bucket {self.bucket}") from e
        except BotoCoreError as e:
            raise map_client_error(e, f"Creating bucket {self.bucket}") from e

    def object_exists(self, remote_key: str) -> bool:
        """Check if object exists in S3"""
        try:
            self.client.head_object(
                Bucket=self.bucket, Key=remote_key, **self._encryption_args()
            )
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] in ("404", "NoSuchKey", "NotFound"):
                return False
            raise map_client_error(e, f"Lookup of {remote_key}") from e
        except BotoCoreError as e:
            raise map_client_error(e, f"Lookup of {remote_key}") from e
