"""
Markdown to article HTML.

mistune parses the post into a token tree. Before its HTML renderer runs,
the tree is walked as a flat stream of enter/leaf/exit events and every
image node is replaced by a `<figure>` built from the optimized image.
"""

import re
import html
import logging
from dataclasses import dataclass, field
from typing import List
from urllib.parse import unquote

import mistune

from .errors import ImageOptimizationFailed, RenderFailed
from .images import OptimizedImage
from .safety import EscapedText

logger = logging.getLogger('Quackdown')

MARKDOWN_PLUGINS = ['table', 'task_lists', 'strikethrough']

ENTER = 'enter'
LEAF = 'leaf'
EXIT = 'exit'

FIGURE_TOKEN = 'optimized_figure'

FIGURE_HTML = (
    '<figure class="image-container">'
    '<img src="{src}" alt="{alt}"{dimensions}{title} {loading} />'
    '<figcaption>'
    '<a href="{src}" target="_blank" class="download-link">[ Download Full Size ]</a>'
    '</figcaption>'
    '</figure>\n'
)
EAGER_LOADING = EscapedText.trusted('loading="eager" fetchpriority="high" decoding="sync"')
LAZY_LOADING = EscapedText.trusted('loading="lazy" decoding="async"')

_SIZE_RE = re.compile(r'([0-9]+)x([0-9]+)', re.ASCII)
_WIDTH_RE = re.compile(r'[0-9]+', re.ASCII)


def parse_dimension_spec(title):
    """
    Parse an image title used as an explicit size.

    "800x600" gives (800, 600), "800" gives (800, None). Anything else,
    including half-formed specs such as "800x", gives None.
    """
    clean = (title or '').strip()
    match = _SIZE_RE.fullmatch(clean)
    if match:
        return int(match.group(1)), int(match.group(2))
    if _WIDTH_RE.fullmatch(clean):
        return int(clean), None
    return None


def iter_events(tokens):
    """Flatten a token tree into (kind, token) events, depth first."""
    for token in tokens:
        if 'children' in token:
            yield ENTER, token
            yield from iter_events(token['children'])
            yield EXIT, token
        else:
            yield LEAF, token


class Outside:
    """Not inside an image node: events pass through."""

    def __repr__(self):
        return 'Outside()'


@dataclass
class InsideImage:
    """Inside an image node: text is collected as alt text, everything else is dropped."""
    token: dict
    url: str
    title: str
    alt_parts: List[str] = field(default_factory=list)

    @property
    def alt(self):
        return ''.join(self.alt_parts)


OUTSIDE = Outside()


class ImageRewriter:
    """Replaces the image nodes of one post with figure tokens."""

    def __init__(self, optimizer, relative_root, warnings=None):
        self.optimizer = optimizer
        self.relative_root = relative_root
        self.warnings = warnings if warnings is not None else []
        self.images_seen = 0

    def rewrite(self, tokens):
        root = []
        stack = [root]
        state = OUTSIDE

        for kind, token in iter_events(tokens):
            if isinstance(state, InsideImage):
                if kind == EXIT and token is state.token:
                    stack[-1].append({'type': FIGURE_TOKEN, 'raw': str(self.figure(state))})
                    state = OUTSIDE
                elif kind == LEAF and token['type'] in ('text', 'codespan'):
                    state.alt_parts.append(token.get('raw', ''))
                continue

            if kind == ENTER and token['type'] == 'image':
                attrs = token.get('attrs') or {}
                # mistune hands over entity-escaped attribute values.
                state = InsideImage(
                    token=token,
                    url=html.unescape(attrs.get('url', '')),
                    title=html.unescape(attrs.get('title') or ''),
                )
            elif kind == ENTER:
                clone = dict(token, children=[])
                stack[-1].append(clone)
                stack.append(clone['children'])
            elif kind == EXIT:
                stack.pop()
            else:
                stack[-1].append(token)

        return root

    def optimize(self, url):
        source = unquote(url)
        try:
            image = self.optimizer.optimize(source)
        except ImageOptimizationFailed as e:
            logger.warning(f"Using original image: {e}")
            self.warnings.append(e)
            return OptimizedImage.unprocessed(url)
        if image.output_relative_path == source:
            return OptimizedImage(url, image.width, image.height)
        return image

    def figure(self, state):
        image = self.optimize(state.url)

        if image.is_external:
            src = image.output_relative_path
        else:
            src = self.relative_root + image.output_relative_path

        spec = parse_dimension_spec(state.title)
        if spec is not None:
            width, height = spec
        elif image.width > 0 and image.height > 0:
            width, height = image.width, image.height
        else:
            width, height = None, None

        dimensions = EscapedText.empty()
        if width is not None:
            dimensions += EscapedText.interpolate(' width="{w}"', w=width)
        if height is not None:
            dimensions += EscapedText.interpolate(' height="{h}"', h=height)

        title = EscapedText.empty()
        if spec is None and state.title:
            title = EscapedText.interpolate(' title="{t}"', t=EscapedText.escape(state.title))

        loading = EAGER_LOADING if self.images_seen == 0 else LAZY_LOADING
        self.images_seen += 1

        return EscapedText.interpolate(
            FIGURE_HTML,
            src=EscapedText.escape(src),
            alt=EscapedText.escape(state.alt),
            dimensions=dimensions,
            title=title,
            loading=loading,
        )


class PostRenderer(mistune.HTMLRenderer):
    """mistune HTML renderer that runs the image rewrite before serializing."""

    def __init__(self, rewriter):
        super().__init__(escape=True)
        self.rewriter = rewriter

    def __call__(self, tokens, state):
        return self.render_tokens(self.rewriter.rewrite(list(tokens)), state)

    def optimized_figure(self, markup):
        return markup

    def block_code(self, code, info=None):
        escaped_code = mistune.escape(code)
        return '<pre style="white-space: pre-wrap;"><code>{}</code></pre>\n'.format(escaped_code)


class ContentRenderer:
    """Renders post bodies, sending every image through an ImageOptimizer."""

    def __init__(self, optimizer, plugins=None):
        self.optimizer = optimizer
        self.plugins = MARKDOWN_PLUGINS if plugins is None else plugins

    def create_markdown_parser(self, rewriter):
        """Create a mistune parser bound to one post's image rewriter."""
        return mistune.create_markdown(renderer=PostRenderer(rewriter), plugins=self.plugins)

    def render(self, markdown_text, relative_root='../', warnings=None, source=None):
        """
        Convert markdown to HTML.

        `relative_root` prefixes local image paths so they resolve from the
        page being written. Image failures never fail the post; they are
        appended to `warnings`. Raises RenderFailed for anything else.
        """
        rewriter = ImageRewriter(self.optimizer, relative_root, warnings)
        parser = self.create_markdown_parser(rewriter)
        try:
            return parser(markdown_text)
        except Exception as e:
            raise RenderFailed(source or '<markdown>', str(e)) from e
