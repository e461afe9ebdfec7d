"""
Generator - Pre-generates persisted thumbnails for every source image.
"""

import logging
import time
from typing import Iterator, Optional

from .backends import PersistentBackend
from .errors import NotFoundError, ThumbnailError
from .generation_stats import GenerationStats


class Generator:
    """
    Walks a persistent backend's source and fills its store.

    Thumbnails that are already stored in the configured format are skipped.
    """

    def __init__(
        self,
        backend: PersistentBackend,
        cadence: float = 0.0,
        dry_run: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize generator.

        Args:
            backend: Persistent backend whose store is filled
            cadence: Seconds between processing each image
            dry_run: If True, don't actually generate thumbnails
            logger: Optional logger instance
        """
        self.backend = backend
        self.cadence = cadence
        self.dry_run = dry_run
        self.logger = logger or logging.getLogger(__name__)
        self.stats = GenerationStats()
        self._stop_requested = False

    def stop(self) -> None:
        """Request the generator to stop after current image."""
        self._stop_requested = True

    def generate_all(self, limit: Optional[int] = None) -> GenerationStats:
        """
        Generate missing thumbnails for all source images.

        Args:
            limit: Optional limit on number of images to look at

        Returns:
            GenerationStats with results
        """
        if self._stop_requested:
            self.logger.info("Stop was requested before generation started")
            self.stats = GenerationStats(total_to_process=0)
            return self.stats

        keys = list(self._get_keys(limit))
        self.stats = GenerationStats(total_to_process=len(keys))

        mode_str = " [DRY RUN]" if self.dry_run else ""
        limit_str = f" (limited to {limit})" if limit else ""
        self.logger.info(f"Starting generation: {len(keys)} images to check{mode_str}{limit_str}")

        for key in keys:
            if self._stop_requested:
                self.logger.info("Stop requested, halting generation")
                break

            generated = self._process_key(key)

            if generated and self.cadence > 0 and not self.dry_run:
                time.sleep(self.cadence)

        self.logger.info(
            f"Generation complete: {self.stats.processed} generated, "
            f"{self.stats.skipped} skipped, {self.stats.errors} errors "
            f"({self.stats.elapsed_seconds:.1f}s)"
        )
        return self.stats

    def _get_keys(self, limit: Optional[int]) -> Iterator[str]:
        for count, key in enumerate(self.backend.source.iter_keys(), start=1):
            yield key
            if limit and count >= limit:
                return

    def _is_cached(self, key: str) -> bool:
        try:
            body, _ = self.backend.store.get(key)
        except NotFoundError:
            return False
        body.close()
        return True

    def _process_key(self, key: str) -> bool:
        """Process a single source image. Returns True if it was generated."""
        try:
            if self._is_cached(key):
                self.stats.skipped += 1
                return False

            if self.dry_run:
                self.logger.info(f"[DRY RUN] Would generate: {key}")
                self.stats.processed += 1
                return False

            thumb_data = self.backend.render(key)
            self.stats.processed += 1
            self.stats.bytes_generated += len(thumb_data)
            self.logger.debug(f"[{self.stats.completed_count}/{self.stats.total_to_process}] {key}")
            return True

        except ThumbnailError as e:
            error_msg = f"Error processing {key}: {e}"
            self.logger.error(error_msg)
            self.stats.errors += 1
            self.stats.error_details.append(error_msg)
            return False