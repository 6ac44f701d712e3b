"""
Build errors and result aggregation.

Every failure is a BuildError subclass. Recoverable errors skip one item
(a post, a tag or an image) and the build continues; the others abort it.
"""

import logging


class BuildError(Exception):
    """Base class for all build failures."""
    recoverable = False
    internal = False
    # True when the failure drops a whole post from the site.
    skips_post = False


class ParseFailed(BuildError):
    """A single markdown file could not be read or parsed."""
    recoverable = True
    skips_post = True

    def __init__(self, path, message):
        self.path = path
        self.message = message
        super().__init__(f"Parse failed for {path}: {message}")


class InvalidTag(BuildError):
    """A tag on a `Tags:` line failed validation."""
    recoverable = True

    def __init__(self, tag, reason):
        self.tag = tag
        self.reason = reason
        super().__init__(f"Invalid tag '{tag}': {reason.value}")


class ImageOptimizationFailed(BuildError):
    """An image could not be decoded or encoded; the original is used instead."""
    recoverable = True

    def __init__(self, path, cause=None):
        self.path = path
        self.cause = cause
        super().__init__(f"Image optimization failed for {path}: {cause}")


class RenderFailed(BuildError):
    """A parsed post could not be turned into HTML."""
    recoverable = True
    skips_post = True

    def __init__(self, path, message):
        self.path = path
        self.message = message
        super().__init__(f"Render failed for {path}: {message}")


class ContentUnreadable(BuildError):
    """The content directory cannot be listed."""

    def __init__(self, path, cause=None):
        self.path = path
        self.cause = cause
        super().__init__(f"Content directory not readable: {path} ({cause})")


class OutputNotWritable(BuildError):
    """Something under the output directory cannot be written."""

    def __init__(self, path, cause=None):
        self.path = path
        self.cause = cause
        super().__init__(f"Output directory not writable: {path} ({cause})")


class NoValidPosts(BuildError):
    """Every post failed."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"No valid posts found in {path}")


class InternalError(BuildError):
    """A logic defect in the generator itself."""
    internal = True

    def __init__(self, message):
        super().__init__(f"Internal error: {message}")


class BuildSummary:
    """Outcome of a build that succeeded, possibly with skipped items."""

    def __init__(self, posts_built, posts_skipped, warnings):
        self.posts_built = posts_built
        self.posts_skipped = posts_skipped
        self.warnings = warnings

    def log_report(self, logger=None):
        logger = logger or logging.getLogger('Quackdown')
        logger.info(f"Total posts generated: {self.posts_built}")
        if self.posts_skipped:
            logger.warning(f"Total posts skipped: {self.posts_skipped}")
        for warning in self.warnings:
            logger.warning(f"  - {warning}")

    def __repr__(self):
        return (f"BuildSummary(posts_built={self.posts_built}, "
                f"posts_skipped={self.posts_skipped}, warnings={len(self.warnings)})")


class BuildResult:
    """Accumulates per-item outcomes during a build."""

    def __init__(self, content_dir='content'):
        self.content_dir = content_dir
        self.successes = 0
        self.failures = []

    def record_success(self):
        self.successes += 1

    def record_failure(self, error):
        self.failures.append(error)

    def finalize(self):
        """
        Return a BuildSummary, or raise the build's fatal error.

        The first non-recoverable failure wins. Otherwise, a build where
        nothing succeeded but something failed raises NoValidPosts.
        """
        for error in self.failures:
            if not error.recoverable:
                raise error

        if self.successes == 0 and self.failures:
            raise NoValidPosts(self.content_dir)

        return BuildSummary(
            posts_built=self.successes,
            posts_skipped=sum(1 for e in self.failures if e.skips_post),
            warnings=list(self.failures),
        )
