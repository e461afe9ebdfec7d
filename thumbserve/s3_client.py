"""
S3Client - S3/MinIO operations for reading originals and storing thumbnails.
"""

import logging
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from .s3_config import S3Config


NOT_FOUND_CODES = ('404', 'NoSuchKey', 'NotFound')


def is_not_found(error: ClientError) -> bool:
    """True if a botocore ClientError means the object does not exist."""
    return error.response.get('Error', {}).get('Code') in NOT_FOUND_CODES


class S3Client:
    """
    Wrapper for the S3 calls the sources and stores need.
    """

    def __init__(self, config: S3Config, logger: Optional[logging.Logger] = None):
        """
        Initialize S3 client.

        Args:
            config: S3 configuration
            logger: Optional logger instance
        """
        self.config = config
        self.logger = logger or logging.getLogger(__name__)

        self._client = boto3.client(
            's3',
            endpoint_url=config.endpoint,
            aws_access_key_id=config.access_key,
            aws_secret_access_key=config.secret_key,
            region_name=config.region,
            config=Config(
                signature_version='s3v4',
                s3={'addressing_style': 'path'}
            ),
            verify=config.verify_ssl
        )

    @property
    def client(self):
        """Return the underlying boto3 client."""
        return self._client

    def get_object_metadata(self, key: str) -> Optional[dict]:
        """Get metadata for an S3 object, or None if it does not exist."""
        try:
            response = self._client.head_object(Bucket=self.config.bucket, Key=key)
            return {
                'size': response['ContentLength'],
                'last_modified': response['LastModified'],
                'content_type': response.get('ContentType', 'application/octet-stream'),
            }
        except ClientError as e:
            if is_not_found(e):
                return None
            raise

    def download_object(self, key: str) -> bytes:
        """Download an object from S3."""
        response = self._client.get_object(Bucket=self.config.bucket, Key=key)
        return response['Body'].read()

    def upload_object(
        self,
        key: str,
        data: bytes,
        content_type: str = 'application/octet-stream'
    ) -> None:
        """Upload an object to S3."""
        self._client.put_object(
            Bucket=self.config.bucket,
            Key=key,
            Body=data,
            ContentType=content_type
        )

    def list_keys(self, prefix: str):
        """Yield every object key under a prefix."""
        paginator = self._client.get_paginator('list_objects_v2')
        for page in paginator.paginate(Bucket=self.config.bucket, Prefix=prefix):
            for obj in page.get('Contents', []):
                yield obj['Key']
