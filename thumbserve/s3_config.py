"""
S3Config - Connection settings for S3/MinIO backed sources and stores.
"""

import os
from dataclasses import dataclass
from typing import List, Optional


@dataclass
class S3Config:
    """
    S3 connection settings.

    Attributes:
        endpoint: S3 endpoint URL (None for AWS default)
        bucket: Bucket holding originals and/or thumbnails
        prefix: Key prefix within the bucket
        access_key: Access key id
        secret_key: Secret access key
        region: Region name
        verify_ssl: Verify the endpoint's TLS certificate
    """
    endpoint: Optional[str] = None
    bucket: Optional[str] = None
    prefix: str = ''
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    region: Optional[str] = None
    verify_ssl: bool = True

    @classmethod
    def from_env(cls) -> 'S3Config':
        """Build a config from S3_* environment variables."""
        return cls(
            endpoint=os.getenv('S3_ENDPOINT'),
            bucket=os.getenv('S3_BUCKET'),
            prefix=os.getenv('S3_PREFIX', ''),
            access_key=os.getenv('S3_ACCESS_KEY'),
            secret_key=os.getenv('S3_SECRET_KEY'),
            region=os.getenv('S3_REGION'),
            verify_ssl=os.getenv('S3_VERIFY_SSL', 'true').lower() not in ('0', 'false', 'no'),
        )

    def validate(self) -> List[str]:
        """Return a list of configuration errors (empty when valid)."""
        errors = []
        if not self.bucket:
            errors.append("S3 bucket is not set (S3_BUCKET)")
        if bool(self.access_key) != bool(self.secret_key):
            errors.append("S3_ACCESS_KEY and S3_SECRET_KEY must be set together")
        return errors

    def key(self, rel: str) -> str:
        """Full object key for a path relative to the prefix."""
        prefix = self.prefix.strip('/')
        rel = rel.lstrip('/')
        return f"{prefix}/{rel}" if prefix else rel
