"""
Quackdown - a small markdown blog generator.

Quackdown turns a directory of markdown posts into a static HTML site with an
index, per-tag listings and WebP-optimized images, escaping every piece of
user text on the way.
"""

__version__ = "1.0.0"

from .core import Quackdown
from .errors import BuildError, BuildSummary
from .safety import EscapedText, ValidatedTag, escape

__all__ = ['Quackdown', 'BuildError', 'BuildSummary', 'EscapedText', 'ValidatedTag', 'escape']
