"""
Image optimization with an mtime-based on-disk cache.

Local images referenced from posts are resized to a maximum width and
re-encoded as WebP under `<output>/images/`. Repeated builds over unchanged
sources only read the cached file's header.
"""

import os
import logging
import tempfile
import threading
from dataclasses import dataclass

from PIL import Image

from .errors import ImageOptimizationFailed

OUTPUT_FORMAT = 'WEBP'
OUTPUT_EXTENSION = '.webp'
IMAGES_SUBDIR = 'images'


def is_external_url(url):
    return url.startswith('http://') or url.startswith('https://')


@dataclass(frozen=True)
class OptimizedImage:
    """
    Where an image ended up and how big it is.

    A width or height of 0 means unknown; no dimension attribute is emitted.
    """
    output_relative_path: str
    width: int = 0
    height: int = 0

    @property
    def is_external(self):
        return is_external_url(self.output_relative_path)

    @classmethod
    def unprocessed(cls, original_path):
        """The image is used as written in the post."""
        return cls(original_path, 0, 0)


class ImageOptimizer:
    def __init__(self, content_dir, output_dir, max_width=1200):
        self.content_dir = content_dir
        self.output_dir = output_dir
        self.images_dir = os.path.join(output_dir, IMAGES_SUBDIR)
        self.max_width = max_width
        self.logger = logging.getLogger('ImageOptimizer')

        self.encode_count = 0
        self._count_lock = threading.Lock()
        # One lock per destination so concurrent posts sharing an image encode it once.
        self._dest_locks = {}
        self._dest_locks_guard = threading.Lock()

    def optimize(self, source):
        """
        Optimize the image at `source` (relative to the content directory).

        External URLs and missing files come back unchanged with zero
        dimensions. Raises ImageOptimizationFailed when the image cannot be
        decoded or the WebP cannot be written.
        """
        if is_external_url(source):
            return OptimizedImage.unprocessed(source)

        src_path = os.path.join(self.content_dir, source)
        abs_content_dir = os.path.abspath(self.content_dir)
        if not os.path.abspath(src_path).startswith(abs_content_dir + os.sep):
            self.logger.warning(f"Skipping image path outside content directory: {source}")
            return OptimizedImage.unprocessed(source)

        if not os.path.isfile(src_path):
            self.logger.debug(f"Image not found, leaving reference as is: {src_path}")
            return OptimizedImage.unprocessed(source)

        stem = os.path.splitext(os.path.basename(src_path))[0]
        dest_name = stem + OUTPUT_EXTENSION
        dest_path = os.path.join(self.images_dir, dest_name)
        rel_path = f"{IMAGES_SUBDIR}/{dest_name}"

        with self._lock_for(dest_path):
            if self.is_cached(src_path, dest_path):
                return self._read_cached(dest_path, rel_path)
            return self._encode(src_path, dest_path, rel_path)

    def is_cached(self, src_path, dest_path):
        """A cache hit is a destination at least as new as its source."""
        try:
            return os.path.getmtime(dest_path) >= os.path.getmtime(src_path)
        except OSError:
            return False

    def _lock_for(self, dest_path):
        with self._dest_locks_guard:
            return self._dest_locks.setdefault(dest_path, threading.Lock())

    def _read_cached(self, dest_path, rel_path):
        # Image.open only parses the header until pixel data is requested.
        try:
            with Image.open(dest_path) as img:
                width, height = img.size
        except (OSError, ValueError) as e:
            self.logger.debug(f"Could not read cached image size {dest_path}: {e}")
            return OptimizedImage(rel_path)
        return OptimizedImage(rel_path, width, height)

    def _encode(self, src_path, dest_path, rel_path):
        self.logger.debug(f"Optimizing: {src_path}")
        tmp_path = None
        try:
            os.makedirs(self.images_dir, exist_ok=True)
            with Image.open(src_path) as img:
                if img.width > self.max_width:
                    new_height = max(1, round(img.height * self.max_width / img.width))
                    out = img.resize((self.max_width, new_height), Image.Resampling.LANCZOS)
                else:
                    out = img.copy()

            if out.mode not in ('RGB', 'RGBA'):
                has_alpha = 'A' in out.mode or 'transparency' in out.info
                out = out.convert('RGBA' if has_alpha else 'RGB')

            # Write beside the destination and rename, so readers never see a partial file.
            fd, tmp_path = tempfile.mkstemp(dir=self.images_dir, prefix='.', suffix='.tmp')
            os.close(fd)
            out.save(tmp_path, OUTPUT_FORMAT)
            os.replace(tmp_path, dest_path)
            tmp_path = None
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            self.logger.error(f"Failed to convert {src_path}: {e}")
            raise ImageOptimizationFailed(src_path, e) from e
        finally:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)

        with self._count_lock:
            self.encode_count += 1

        return OptimizedImage(rel_path, out.width, out.height)
