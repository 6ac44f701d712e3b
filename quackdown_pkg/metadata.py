"""Title, tag and first-image extraction from raw markdown."""

import logging
from dataclasses import dataclass, field
from typing import List

from .errors import InvalidTag
from .safety import EscapedText, ValidatedTag

logger = logging.getLogger('Quackdown')

TITLE_MARKER = '# '
TAGS_MARKER = 'Tags:'


@dataclass
class PostMetadata:
    title: EscapedText
    raw_title: str
    tags: List[ValidatedTag] = field(default_factory=list)
    rejected_tags: List[InvalidTag] = field(default_factory=list)


def extract_metadata(markdown_text, fallback_title):
    """
    Extract the title and tags of a post.

    The title is the first line starting with `# `; without one the
    fallback (usually the file stem) is used. Tags come from the first line
    that starts with `Tags:` once trimmed. Invalid tags are dropped and kept
    in `rejected_tags`; this function never fails.
    """
    lines = markdown_text.splitlines()

    raw_title = fallback_title
    for line in lines:
        if line.startswith(TITLE_MARKER):
            raw_title = line[len(TITLE_MARKER):].strip()
            break

    tags = []
    rejected = []
    for line in lines:
        stripped = line.strip()
        if not stripped.startswith(TAGS_MARKER):
            continue
        for segment in stripped[len(TAGS_MARKER):].split(','):
            try:
                tags.append(ValidatedTag(segment))
            except InvalidTag as e:
                logger.warning(f"Skipping invalid tag: {e}")
                rejected.append(e)
        break

    return PostMetadata(
        title=EscapedText.escape(raw_title),
        raw_title=raw_title,
        tags=tags,
        rejected_tags=rejected,
    )


def find_first_image(markdown_text):
    """Return the destination of the first `![...](...)` in the text, if any."""
    start = markdown_text.find('![')
    if start == -1:
        return None
    alt_end = markdown_text.find('](', start)
    if alt_end == -1:
        return None
    url_start = alt_end + 2
    url_end = markdown_text.find(')', url_start)
    if url_end == -1:
        return None
    # Drop an optional "title" after the destination.
    parts = markdown_text[url_start:url_end].split()
    return parts[0] if parts else None
