"""
Page shell rendering with Jinja2.

Templates are rendered with autoescaping on, so plain strings are always
escaped. EscapedText and ValidatedTag values implement `__html__` and are
emitted as they are.
"""

import os
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from jinja2 import Environment, FileSystemLoader, TemplateNotFound, TemplateSyntaxError

from .errors import InternalError
from .safety import EscapedText, ValidatedTag

TEMPLATES_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'templates')


@dataclass(frozen=True)
class PostListItem:
    """One row of the index or a tag page."""
    title: EscapedText
    filename: str
    date: str
    tags: List[ValidatedTag] = field(default_factory=list)


@dataclass
class RenderContext:
    """Per-page options for the site shell."""
    brand_name: str
    inline_css: Optional[EscapedText] = None
    lcp_image_url: Optional[str] = None

    def with_css(self, css):
        return RenderContext(self.brand_name, css, self.lcp_image_url)

    def with_lcp_image(self, url):
        return RenderContext(self.brand_name, self.inline_css, url)


class PageTemplater:
    def __init__(self, templates_dir=None):
        self.templates_dir = templates_dir or TEMPLATES_DIR
        self.env = Environment(loader=FileSystemLoader(self.templates_dir), autoescape=True)
        self.logger = logging.getLogger('PageTemplater')

    def _fragments(self):
        try:
            return self.env.get_template('fragments.html').module
        except (TemplateNotFound, TemplateSyntaxError) as e:
            self.logger.error(f"Template error: {e}")
            raise InternalError(f"Broken fragments template: {e}") from e

    def render_post_meta(self, date, tags):
        """Upload date and tag badges shown above a post."""
        return EscapedText.trusted(str(self._fragments().post_meta(date, tags)))

    def render_post_list(self, posts, relative_root):
        """The list of post links on the index and tag pages."""
        return EscapedText.trusted(str(self._fragments().post_list(posts, relative_root)))

    def render_page(self, title, content, all_tags, relative_root, context):
        """
        Wrap a content fragment in the site shell.

        `title` and `content` must be EscapedText. The navigation lists
        every tag in `all_tags` sorted by name.
        """
        if not isinstance(title, EscapedText) or not isinstance(content, EscapedText):
            raise TypeError("Page title and content must be EscapedText")
        try:
            template = self.env.get_template('base.html')
        except (TemplateNotFound, TemplateSyntaxError) as e:
            self.logger.error(f"Template error: {e}")
            raise InternalError(f"Broken page template: {e}") from e

        return template.render(
            brand=context.brand_name,
            title=title,
            content=content,
            tags=sorted(all_tags),
            relative_root=relative_root,
            inline_css=context.inline_css,
            lcp_image_url=context.lcp_image_url,
        )
