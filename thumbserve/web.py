"""
Bottle handlers that serve thumbnails and answer peer cache fetches.
"""

import logging
import time
from functools import wraps
from typing import Dict, List, Optional

from bottle import Bottle, HTTPResponse, http_date, parse_date, request

from .backends import Thumbnail
from .errors import ComputeError, NotFoundError, ThumbnailError
from .group_cache import CacheGroup
from .peers import BASE_PATH, PeerPool
from .pipeline import ThumbnailPipeline


def text_response(status: int, body: str) -> HTTPResponse:
    """Plain-text response used for every error."""
    return HTTPResponse(body, status=status, headers={'Content-Type': 'text/plain; charset=utf-8'})


def add_header(name: str, value: str):
    """Decorate a view function to add a fixed header to its responses."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            result = func(*args, **kwargs)
            if isinstance(result, HTTPResponse):
                result.add_header(name, value)
            return result
        return wrapper
    return decorator


class ThumbnailHandler:
    """
    Serves the thumbnails of one pipeline.

    Failures never leak their message to the client: 404 for missing
    images, 500 with a generic body for everything else, with the detail
    logged server-side.
    """

    def __init__(self, pipeline: ThumbnailPipeline, logger: Optional[logging.Logger] = None):
        self.pipeline = pipeline
        self.logger = logger or logging.getLogger(__name__)

    def __call__(self, path: str = '') -> HTTPResponse:
        request_path = '/' + path
        try:
            thumb = self.pipeline.resolve(request_path)
        except NotFoundError as e:
            self.logger.info(f"404 - could not find image: {request_path} - {e}")
            return text_response(404, f"not found: {request_path}")
        except ComputeError as e:
            if e.not_found:
                self.logger.info(f"404 - could not find image: {request_path} - {e}")
                return text_response(404, f"not found: {request_path}")
            self.logger.error(f"500 - error generating thumbnail: {request_path} - {e}")
            return text_response(500, "internal server error")
        except ThumbnailError as e:
            self.logger.error(f"500 - error loading thumbnail: {request_path} - {e}")
            return text_response(500, f"cannot read file: {request_path}")
        except Exception as e:
            self.logger.exception(f"500 - unexpected error: {request_path} - {e}")
            return text_response(500, "internal server error")
        return self.serve(thumb)

    def serve(self, thumb: Thumbnail) -> HTTPResponse:
        """Build the 200 (or 304) response for a resolved thumbnail."""
        headers = {
            'Content-Type': thumb.content_type,
            'Last-Modified': http_date(thumb.last_modified),
        }

        ims = request.environ.get('HTTP_IF_MODIFIED_SINCE')
        ims = parse_date(ims.split(";")[0].strip()) if ims else None
        if ims is not None and ims >= int(thumb.last_modified):
            thumb.close()
            headers['Date'] = http_date(time.time())
            return HTTPResponse(status=304, headers=headers)

        headers['Content-Length'] = str(thumb.content_length)
        return HTTPResponse(thumb.body, status=200, headers=headers)


class PeerHandler:
    """
    Answers '/_groupcache/<group>/<key>' fetches from other peers with the
    raw cached bytes of a group this process owns.
    """

    def __init__(self, peers: PeerPool, logger: Optional[logging.Logger] = None):
        self.peers = peers
        self.logger = logger or logging.getLogger(__name__)

    def __call__(self, group: str, key: str) -> HTTPResponse:
        cache = self.peers.group(group)
        if cache is None:
            return text_response(404, f"no such group: {group}")
        try:
            data = cache.get_local('/' + key)
        except ComputeError as e:
            if e.not_found:
                return text_response(404, f"not found: {key}")
            self.logger.error(f"500 - peer fetch failed: {group}/{key} - {e}")
            return text_response(500, "internal server error")
        return HTTPResponse(data, status=200, headers={
            'Content-Type': 'application/octet-stream',
            'Content-Length': str(len(data)),
        })


def mount_peers(app: Bottle, peers: PeerPool, logger: Optional[logging.Logger] = None) -> PeerHandler:
    """Add the peer fetch route to app."""
    handler = PeerHandler(peers, logger)
    app.route(f"{BASE_PATH}/<group>/<key:path>", method='GET', callback=handler)
    return handler


def mount_thumbnails(
    app: Bottle,
    pipeline: ThumbnailPipeline,
    prefix: str = '',
    headers: Optional[Dict[str, str]] = None,
    logger: Optional[logging.Logger] = None
) -> ThumbnailHandler:
    """
    Add GET routes serving pipeline's thumbnails below prefix.

    HEAD is answered by the same routes; other methods get 405.
    """
    handler = ThumbnailHandler(pipeline, logger)
    callback = handler
    for name, value in (headers or {}).items():
        callback = add_header(name, value)(callback)

    prefix = prefix.rstrip('/')
    app.route(f"{prefix}/", method='GET', callback=callback)
    app.route(f"{prefix}/<path:path>", method='GET', callback=callback)
    return handler


def mount_stats(app: Bottle, groups: List[CacheGroup]) -> None:
    """Add a '/_stats' route reporting the counters of each cache group."""
    def stats() -> Dict[str, dict]:
        return {group.name: group.stats.to_dict() for group in groups}

    app.route('/_stats', method='GET', callback=stats)
