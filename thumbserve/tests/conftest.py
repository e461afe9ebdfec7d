"""
Pytest fixtures for thumbserve tests.
"""

import io
from dataclasses import dataclass
from typing import Dict, Optional
from wsgiref.util import setup_testing_defaults

import pytest
from PIL import Image


def make_image_bytes(size=(100, 100), fmt='JPEG', mode='RGB', color='red') -> bytes:
    """Encode a solid image of the given size and format."""
    img = Image.new(mode, size, color=color)
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


def image_size(data: bytes):
    with Image.open(io.BytesIO(data)) as img:
        return img.size


def image_format(data: bytes) -> str:
    with Image.open(io.BytesIO(data)) as img:
        return img.format


@dataclass
class WSGIResult:
    status: int
    headers: Dict[str, str]
    body: bytes


def wsgi_request(app, path: str, method: str = 'GET', headers: Optional[Dict[str, str]] = None) -> WSGIResult:
    """Call a WSGI app directly and collect the response."""
    environ = {}
    setup_testing_defaults(environ)
    environ['PATH_INFO'] = path
    environ['REQUEST_METHOD'] = method
    for name, value in (headers or {}).items():
        environ['HTTP_' + name.upper().replace('-', '_')] = value

    captured = {}

    def start_response(status, response_headers, exc_info=None):
        captured['status'] = status
        captured['headers'] = response_headers

    body_iter = app(environ, start_response)
    try:
        body = b''.join(body_iter)
    finally:
        if hasattr(body_iter, 'close'):
            body_iter.close()

    return WSGIResult(
        status=int(captured['status'].split()[0]),
        headers={k.lower(): v for k, v in captured['headers']},
        body=body,
    )


@pytest.fixture
def sample_image_bytes():
    """Fixture providing sample JPEG image bytes."""
    return make_image_bytes((100, 100), 'JPEG')


@pytest.fixture
def sample_png_bytes():
    """Fixture providing sample PNG image bytes with transparency."""
    return make_image_bytes((100, 100), 'PNG', mode='RGBA', color=(255, 0, 0, 128))


@pytest.fixture
def descriptor():
    """Fixture providing the 300x250 png descriptor."""
    from thumbserve.descriptor import ThumbnailDescriptor
    return ThumbnailDescriptor(300, 250, 'png')


@pytest.fixture
def source_root(tmp_path):
    """
    Fixture providing a directory of original images.

    cat.jpg is 800x600, banner.png is 1000x100, tall.gif is 100x400,
    nested/dog.png is 640x480 and bad.jpg is not an image.
    """
    root = tmp_path / 'images'
    (root / 'nested').mkdir(parents=True)
    (root / 'cat.jpg').write_bytes(make_image_bytes((800, 600), 'JPEG', color='blue'))
    (root / 'banner.png').write_bytes(make_image_bytes((1000, 100), 'PNG', color='green'))
    (root / 'tall.gif').write_bytes(make_image_bytes((100, 400), 'GIF', mode='P'))
    (root / 'nested' / 'dog.png').write_bytes(
        make_image_bytes((640, 480), 'PNG', mode='RGBA', color=(0, 0, 255, 200))
    )
    (root / 'bad.jpg').write_bytes(b'not an image')
    (root / 'notes.txt').write_text('ignored')
    return root


@pytest.fixture
def thumb_root(tmp_path):
    """Fixture providing an empty thumbnail directory."""
    return tmp_path / 'thumbs'


@pytest.fixture
def file_pipeline(descriptor, source_root, thumb_root):
    """Fixture providing a filesystem-cached pipeline."""
    from thumbserve.pipeline import ThumbnailPipeline
    return ThumbnailPipeline.with_file_cache(descriptor, str(source_root), str(thumb_root))


@pytest.fixture
def s3_config():
    """Fixture providing S3 configuration."""
    from thumbserve.s3_config import S3Config

    return S3Config(
        endpoint='https://test-endpoint.example.com:9000',
        bucket='test-bucket',
        prefix='attachments',
        access_key='test-access-key',
        secret_key='test-secret-key',
        region='us-east-1',
    )


@pytest.fixture
def mock_s3_client(s3_config):
    """Fixture providing an S3Client with mocked boto3."""
    from unittest.mock import MagicMock, patch
    from thumbserve.s3_client import S3Client

    mock_boto = MagicMock()
    with patch('thumbserve.s3_client.boto3.client', return_value=mock_boto):
        client = S3Client(s3_config)
        # Store reference to the mock for test setup
        client._mock_boto = mock_boto
        yield client


@pytest.fixture
def logger():
    """Fixture providing a logger."""
    import logging
    return logging.getLogger('test')
