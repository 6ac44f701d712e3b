"""Tests for build error classification and aggregation."""

import logging

import pytest

from quackdown_pkg.errors import (
    BuildResult, BuildSummary, ContentUnreadable, ImageOptimizationFailed, InternalError, InvalidTag,
    NoValidPosts, OutputNotWritable, ParseFailed, RenderFailed,
)
from quackdown_pkg.safety import TagRejection


class TestClassification:
    """Test cases for the recoverable/fatal split."""

    @pytest.mark.parametrize('error', [
        ParseFailed('a.md', 'bad'),
        InvalidTag('<x>', TagRejection.FORBIDDEN_CHARS),
        ImageOptimizationFailed('a.png', OSError('bad')),
        RenderFailed('a.md', 'bad'),
    ])
    def test_recoverable(self, error):
        assert error.recoverable
        assert not error.internal

    @pytest.mark.parametrize('error', [
        ContentUnreadable('content', OSError('gone')),
        OutputNotWritable('public', OSError('denied')),
        NoValidPosts('content'),
        InternalError('bug'),
    ])
    def test_fatal(self, error):
        assert not error.recoverable

    def test_only_internal_error_is_internal(self):
        assert InternalError('bug').internal
        assert not NoValidPosts('content').internal

    def test_messages(self):
        assert str(ParseFailed('a.md', 'bad bytes')) == "Parse failed for a.md: bad bytes"
        assert str(InvalidTag('', TagRejection.EMPTY)) == "Invalid tag '': tag is empty"
        assert str(NoValidPosts('content')) == "No valid posts found in content"


class TestBuildResult:
    """Test cases for BuildResult.finalize()."""

    def test_clean_build(self):
        result = BuildResult()
        result.record_success()
        result.record_success()
        summary = result.finalize()
        assert (summary.posts_built, summary.posts_skipped, summary.warnings) == (2, 0, [])

    def test_nothing_to_build(self):
        summary = BuildResult().finalize()
        assert summary.posts_built == 0

    def test_partial_failure(self):
        result = BuildResult()
        result.record_success()
        result.record_failure(ParseFailed('b.md', 'bad'))
        result.record_failure(InvalidTag('<x>', TagRejection.FORBIDDEN_CHARS))
        result.record_failure(ImageOptimizationFailed('c.png'))
        summary = result.finalize()
        assert summary.posts_built == 1
        assert summary.posts_skipped == 1
        assert len(summary.warnings) == 3

    def test_all_posts_failed(self):
        result = BuildResult('my-content')
        result.record_failure(ParseFailed('a.md', 'bad'))
        result.record_failure(RenderFailed('b.md', 'bad'))
        with pytest.raises(NoValidPosts, match='my-content'):
            result.finalize()

    def test_fatal_error_wins(self):
        result = BuildResult()
        result.record_success()
        result.record_failure(ParseFailed('a.md', 'bad'))
        fatal = OutputNotWritable('public/index.html', OSError('denied'))
        result.record_failure(fatal)
        result.record_failure(InternalError('later'))
        with pytest.raises(OutputNotWritable) as excinfo:
            result.finalize()
        assert excinfo.value is fatal


class TestBuildSummary:
    """Test cases for BuildSummary.log_report()."""

    def test_report(self, caplog):
        summary = BuildSummary(3, 1, [ParseFailed('x.md', 'bad')])
        with caplog.at_level(logging.INFO, logger='Quackdown'):
            summary.log_report()
        assert "Total posts generated: 3" in caplog.text
        assert "Total posts skipped: 1" in caplog.text
        assert "Parse failed for x.md: bad" in caplog.text

    def test_report_without_failures(self, caplog):
        with caplog.at_level(logging.INFO, logger='Quackdown'):
            BuildSummary(2, 0, []).log_report()
        assert "Total posts generated: 2" in caplog.text
        assert "skipped" not in caplog.text
