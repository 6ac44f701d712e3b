"""Test configuration and fixtures for Quackdown tests."""

import logging
import os
import shutil
import sys
import tempfile
from pathlib import Path

import pytest
from PIL import Image

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from quackdown_pkg.images import ImageOptimizer


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def content_dir(temp_dir):
    """An empty content directory."""
    content_dir = Path(temp_dir) / 'content'
    content_dir.mkdir()
    return str(content_dir)


@pytest.fixture
def output_dir(temp_dir):
    """Output directory path; not created, the build does that."""
    return str(Path(temp_dir) / 'public')


@pytest.fixture
def create_test_image():
    """Write a solid-colour image to disk and return its path."""
    def _create(path, size=(100, 100), mode='RGB', format='PNG', color='red'):
        if mode == 'RGBA' and isinstance(color, str):
            color = (255, 0, 0, 128)
        img = Image.new(mode, size, color=color)
        img.save(path, format)
        return str(path)
    return _create


@pytest.fixture
def optimizer(content_dir, output_dir):
    """An ImageOptimizer with a small maximum width."""
    return ImageOptimizer(content_dir, output_dir, max_width=800)


@pytest.fixture
def blog_content(content_dir, create_test_image):
    """
    Two posts: one titled and tagged with a local image, one untitled
    with an invalid tag.
    """
    content = Path(content_dir)
    create_test_image(content / 'duck.png', size=(1600, 1200))
    (content / '2024-01-01-hello.md').write_text(
        "# Hello\n"
        "Tags: a, b\n"
        "\n"
        "Some words about ducks.\n"
        "\n"
        "![A duck](duck.png)\n",
        encoding='utf-8',
    )
    (content / '2024-01-02-untitled.md').write_text(
        "Tags: <bad>\n"
        "\n"
        "No title here.\n",
        encoding='utf-8',
    )
    return content_dir


@pytest.fixture
def reset_logging():
    """Detach handlers that setup_logging attached during a test."""
    yield
    for name in ('Quackdown', 'ImageOptimizer', 'PageTemplater'):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
