"""Tests for S3Client and S3Config classes."""

from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from thumbserve.s3_client import S3Client, is_not_found
from thumbserve.s3_config import S3Config


class TestS3Client:
    """Tests for S3Client class."""

    def test_client_created(self, s3_config):
        """Test the boto3 client is configured from S3Config."""
        with patch('thumbserve.s3_client.boto3.client') as mock_client:
            client = S3Client(s3_config)

        assert client.client is mock_client.return_value
        kwargs = mock_client.call_args.kwargs
        assert mock_client.call_args.args == ('s3',)
        assert kwargs['endpoint_url'] == 'https://test-endpoint.example.com:9000'
        assert kwargs['region_name'] == 'us-east-1'
        assert kwargs['verify'] is True

    def test_get_object_metadata(self, mock_s3_client):
        """Test metadata is returned for an existing object."""
        modified = datetime(2026, 1, 1)
        mock_s3_client._mock_boto.head_object.return_value = {
            'ContentLength': 1234,
            'LastModified': modified,
            'ContentType': 'image/png',
        }

        metadata = mock_s3_client.get_object_metadata('some/key.png')

        assert metadata == {'size': 1234, 'last_modified': modified, 'content_type': 'image/png'}
        mock_s3_client._mock_boto.head_object.assert_called_once_with(
            Bucket='test-bucket', Key='some/key.png'
        )

    def test_get_object_metadata_missing(self, mock_s3_client):
        """Test a missing object has no metadata."""
        mock_s3_client._mock_boto.head_object.side_effect = ClientError(
            {'Error': {'Code': '404'}},
            'HeadObject'
        )

        assert mock_s3_client.get_object_metadata('nonexistent/key.jpg') is None

    def test_get_object_metadata_error(self, mock_s3_client):
        """Test other client errors propagate."""
        mock_s3_client._mock_boto.head_object.side_effect = ClientError(
            {'Error': {'Code': '403'}},
            'HeadObject'
        )

        with pytest.raises(ClientError):
            mock_s3_client.get_object_metadata('secret/key.jpg')

    def test_download_object(self, mock_s3_client):
        """Test downloading an object."""
        mock_body = MagicMock()
        mock_body.read.return_value = b'image data'
        mock_s3_client._mock_boto.get_object.return_value = {'Body': mock_body}

        result = mock_s3_client.download_object('some/key.jpg')

        assert result == b'image data'

    def test_upload_object(self, mock_s3_client):
        """Test uploading an object."""
        mock_s3_client.upload_object('some/key.png', b'data', 'image/png')

        mock_s3_client._mock_boto.put_object.assert_called_once_with(
            Bucket='test-bucket',
            Key='some/key.png',
            Body=b'data',
            ContentType='image/png',
        )

    def test_list_keys(self, mock_s3_client):
        """Test listing keys across pages."""
        mock_paginator = MagicMock()
        mock_paginator.paginate.return_value = [
            {'Contents': [{'Key': 'attachments/originals/a.jpg'}]},
            {'Contents': [{'Key': 'attachments/originals/b.jpg'}]},
            {},
        ]
        mock_s3_client._mock_boto.get_paginator.return_value = mock_paginator

        keys = list(mock_s3_client.list_keys('attachments/originals/'))

        assert keys == ['attachments/originals/a.jpg', 'attachments/originals/b.jpg']
        mock_paginator.paginate.assert_called_once_with(
            Bucket='test-bucket', Prefix='attachments/originals/'
        )

    @pytest.mark.parametrize('code,expected', [
        ('404', True),
        ('NoSuchKey', True),
        ('NotFound', True),
        ('AccessDenied', False),
    ])
    def test_is_not_found(self, code, expected):
        """Test not-found error codes are recognized."""
        error = ClientError({'Error': {'Code': code}}, 'GetObject')

        assert is_not_found(error) is expected


class TestS3Config:
    """Tests for S3Config class."""

    def test_from_env(self, monkeypatch):
        """Test configuration is read from S3_* variables."""
        monkeypatch.setenv('S3_ENDPOINT', 'http://minio:9000')
        monkeypatch.setenv('S3_BUCKET', 'images')
        monkeypatch.setenv('S3_PREFIX', 'site')
        monkeypatch.setenv('S3_VERIFY_SSL', 'false')

        config = S3Config.from_env()

        assert config.endpoint == 'http://minio:9000'
        assert config.bucket == 'images'
        assert config.prefix == 'site'
        assert config.verify_ssl is False

    def test_validate(self, s3_config):
        """Test a complete config has no errors."""
        assert s3_config.validate() == []

    def test_validate_missing_bucket(self):
        """Test the bucket is required."""
        errors = S3Config().validate()

        assert len(errors) == 1
        assert 'S3_BUCKET' in errors[0]

    def test_validate_partial_credentials(self):
        """Test access and secret keys must be set together."""
        errors = S3Config(bucket='b', access_key='key').validate()

        assert len(errors) == 1

    def test_key(self):
        """Test object keys are joined below the prefix."""
        assert S3Config(prefix='/site/').key('thumbnails/a.png') == 'site/thumbnails/a.png'
        assert S3Config().key('/thumbnails/a.png') == 'thumbnails/a.png'
