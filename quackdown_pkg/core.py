import os
import shutil
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import unquote
from concurrent.futures import ThreadPoolExecutor, as_completed

import rcssmin

from .content import ContentRenderer
from .errors import (
    BuildError, BuildResult, ContentUnreadable, InternalError, OutputNotWritable, ParseFailed,
)
from .images import ImageOptimizer, OUTPUT_EXTENSION, IMAGES_SUBDIR, is_external_url
from .metadata import PostMetadata, extract_metadata, find_first_image
from .safety import EscapedText
from .templating import PageTemplater, PostListItem, RenderContext

MARKDOWN_EXTENSION = '.md'
STYLESHEET = 'style.css'
FAVICON = 'favicon.ico'
DATE_FORMAT = '%Y.%m.%d %H:%M'


@dataclass
class ParsedPost:
    """A post between the parse and render phases."""
    source_path: str
    file_stem: str
    metadata: PostMetadata
    display_date: str
    raw_content: str
    first_image_url: Optional[str] = None

    @property
    def tags(self):
        return frozenset(self.metadata.tags)

    def list_item(self):
        return PostListItem(
            title=self.metadata.title,
            filename=f"posts/{self.file_stem}.html",
            date=self.display_date,
            tags=list(self.metadata.tags),
        )


class InfoFilter(logging.Filter):
    """Filter to allow only selected INFO messages (and every warning) on the console."""
    def filter(self, record):
        if record.levelno >= logging.WARNING:
            return True
        allowed_messages = [
            "Site build completed in",
            "Total posts generated:",
            "Found",
            "Building index page",
            "Building tag pages",
        ]
        return any(msg in record.getMessage() for msg in allowed_messages)


def setup_logging(log_dir=None):
    """Console logging for progress, plus a DEBUG log file when `log_dir` is set."""
    logger = logging.getLogger('Quackdown')
    logger.setLevel(logging.DEBUG)

    if not logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_handler.addFilter(InfoFilter())
        console_handler.setFormatter(logging.Formatter('%(message)s'))
        logger.addHandler(console_handler)

        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
            log_filename = datetime.now().strftime('quackdown_%Y-%m-%d_%H-%M-%S.log')
            file_handler = logging.FileHandler(os.path.join(log_dir, log_filename))
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
            logger.addHandler(file_handler)
            # The optimizer and templater log under their own names.
            for name in ('ImageOptimizer', 'PageTemplater'):
                logging.getLogger(name).addHandler(file_handler)

    return logger


class Quackdown:
    def __init__(self, content_dir='content', output_dir='public', max_image_width=1200,
                 timezone_offset=8, brand_name='CODE A DUCK', inline_css=True,
                 minify_css=False, workers=None, templates_dir=None):
        self.content_dir = content_dir
        self.output_dir = output_dir
        self.max_image_width = max_image_width
        self.brand_name = brand_name
        self.inline_css = inline_css
        self.minify_css = minify_css
        self.workers = workers or os.cpu_count()
        self.logger = logging.getLogger('Quackdown')

        if not -24 < timezone_offset < 24:
            raise ValueError(f"Timezone offset must be between -23 and 23 hours, got {timezone_offset}")
        self.timezone = timezone(timedelta(hours=timezone_offset))

        self.optimizer = ImageOptimizer(content_dir, output_dir, max_image_width)
        self.renderer = ContentRenderer(self.optimizer)
        self.templater = PageTemplater(templates_dir)

    @property
    def posts_dir(self):
        return os.path.join(self.output_dir, 'posts')

    @property
    def tags_dir(self):
        return os.path.join(self.output_dir, 'tags')

    @property
    def images_dir(self):
        return os.path.join(self.output_dir, IMAGES_SUBDIR)

    def build(self):
        """
        Build the whole site.

        Returns a BuildSummary when every failure was recoverable and raises
        the fatal BuildError otherwise.
        """
        result = BuildResult(self.content_dir)

        paths = self.discover()
        self.logger.info(f"Found {len(paths)} markdown files.")

        self.create_output_dirs()
        css = self.load_inline_css() if self.inline_css else None
        self.copy_static_files(include_stylesheet=css is None)

        parsed = self.parse_posts(paths)
        posts, all_tags = self.merge(parsed, result)
        self.logger.debug(f"Parsed {len(posts)} valid posts. Generating HTML...")

        items = self.render_posts(posts, all_tags, css, result)

        if any(not e.recoverable for e in result.failures):
            return result.finalize()

        if items or not result.failures:
            self.build_listings(items, all_tags, css)

        return result.finalize()

    def discover(self):
        """List the markdown files of the content directory, sorted by name."""
        try:
            names = os.listdir(self.content_dir)
        except OSError as e:
            raise ContentUnreadable(self.content_dir, e) from e
        return [os.path.join(self.content_dir, name)
                for name in sorted(names) if name.endswith(MARKDOWN_EXTENSION)]

    def create_output_dirs(self):
        for directory in (self.posts_dir, self.tags_dir, self.images_dir):
            try:
                os.makedirs(directory, exist_ok=True)
            except OSError as e:
                raise OutputNotWritable(directory, e) from e

    def load_inline_css(self):
        """Read the stylesheet to inline, or None to fall back to a <link>."""
        css_path = os.path.join(self.content_dir, STYLESHEET)
        try:
            with open(css_path, 'r', encoding='utf-8') as f:
                css = f.read()
        except (OSError, UnicodeDecodeError):
            self.logger.warning("CSS file not found for inlining, using external link")
            return None
        if self.minify_css:
            css = rcssmin.cssmin(css)
        self.logger.debug(f"CSS will be inlined ({len(css)} bytes)")
        # Site author's own stylesheet; escaping would break selectors.
        return EscapedText.trusted(css)

    def copy_static_files(self, include_stylesheet):
        names = [FAVICON, STYLESHEET] if include_stylesheet else [FAVICON]
        for name in names:
            src = os.path.join(self.content_dir, name)
            if not os.path.exists(src):
                continue
            try:
                shutil.copy2(src, os.path.join(self.output_dir, name))
            except OSError as e:
                self.logger.warning(f"Failed to copy {name}: {e}")

    def run_parallel(self, func, items):
        """Run `func` over `items` on the worker pool; outcomes come back in input order."""
        outcomes = [None] * len(items)
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures = {executor.submit(func, item): index for index, item in enumerate(items)}
            for future in as_completed(futures):
                index = futures[future]
                try:
                    outcomes[index] = future.result()
                except BuildError as e:
                    outcomes[index] = e
                except Exception as e:
                    self.logger.error(f"Unexpected error processing {items[index]}: {e}")
                    outcomes[index] = InternalError(f"{type(e).__name__} while processing {items[index]}: {e}")
        return outcomes

    def format_date(self, timestamp):
        return datetime.fromtimestamp(timestamp, tz=self.timezone).strftime(DATE_FORMAT)

    def parse_post(self, path):
        """Read one markdown file into a ParsedPost. Raises ParseFailed."""
        file_stem = os.path.splitext(os.path.basename(path))[0]
        try:
            modified = os.path.getmtime(path)
            with open(path, 'r', encoding='utf-8') as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise ParseFailed(path, str(e)) from e

        display_date = self.format_date(modified)
        metadata = extract_metadata(content, file_stem)
        self.logger.debug(f"Parsed {metadata.raw_title} [{display_date}] Tags: {[t.name for t in metadata.tags]}")

        return ParsedPost(
            source_path=path,
            file_stem=file_stem,
            metadata=metadata,
            display_date=display_date,
            raw_content=content,
            first_image_url=find_first_image(content),
        )

    def parse_posts(self, paths):
        return self.run_parallel(self.parse_post, paths)

    def merge(self, outcomes, result):
        """Fold parse outcomes into the post list and the frozen corpus-wide tag set."""
        posts = []
        all_tags = set()
        for outcome in outcomes:
            if isinstance(outcome, BuildError):
                self.logger.warning(f"Skipping post: {outcome}")
                result.record_failure(outcome)
                continue
            all_tags |= outcome.tags
            for rejected in outcome.metadata.rejected_tags:
                result.record_failure(rejected)
            posts.append(outcome)
        return posts, frozenset(all_tags)

    def lcp_image_url(self, image_url):
        """
        Preload target for a post's first image, relative to posts/.

        Only meaningful once the post body has been rendered: a local image
        is preloaded only if its optimized copy exists.
        """
        if not image_url:
            return None
        if is_external_url(image_url):
            return image_url
        stem = os.path.splitext(os.path.basename(unquote(image_url)))[0]
        if not os.path.isfile(os.path.join(self.images_dir, stem + OUTPUT_EXTENSION)):
            return None
        return f"../{IMAGES_SUBDIR}/{stem}{OUTPUT_EXTENSION}"

    def render_post(self, post, all_tags, css):
        """Render and write one post page. Returns the image warnings it produced."""
        warnings = []
        body = self.renderer.render(post.raw_content, '../', warnings, source=post.source_path)
        meta = self.templater.render_post_meta(post.display_date, post.metadata.tags)

        context = RenderContext(self.brand_name, css)
        lcp_url = self.lcp_image_url(post.first_image_url)
        if lcp_url:
            context = context.with_lcp_image(lcp_url)

        page = self.templater.render_page(
            post.metadata.title, meta + EscapedText.trusted(body), all_tags, '../', context,
        )
        self.write_file(os.path.join(self.posts_dir, f"{post.file_stem}.html"), page)
        return warnings

    def render_posts(self, posts, all_tags, css, result):
        outcomes = self.run_parallel(lambda post: self.render_post(post, all_tags, css), posts)

        items = []
        for post, outcome in zip(posts, outcomes):
            if isinstance(outcome, BuildError):
                self.logger.warning(f"Skipping post: {outcome}")
                result.record_failure(outcome)
                continue
            for warning in outcome:
                result.record_failure(warning)
            result.record_success()
            items.append(post.list_item())
        return items

    def write_file(self, path, text):
        try:
            with open(path, 'w', encoding='utf-8') as f:
                f.write(text)
        except OSError as e:
            self.logger.error(f"Failed to write {path}: {e}")
            raise OutputNotWritable(path, e) from e
        self.logger.debug(f"Generated HTML: {path}")

    def generate_list_page(self, items, all_tags, title, path, relative_root, context):
        safe_title = EscapedText.escape(title)
        content = (EscapedText.interpolate('<h1>{title}</h1>', title=safe_title)
                   + self.templater.render_post_list(items, relative_root))
        page = self.templater.render_page(safe_title, content, all_tags, relative_root, context)
        self.write_file(path, page)

    def build_listings(self, items, all_tags, css):
        """Write index.html and one page per tag, newest filename first."""
        items = sorted(items, key=lambda item: item.filename, reverse=True)
        context = RenderContext(self.brand_name, css)

        self.logger.info("Building index page")
        self.generate_list_page(items, all_tags, 'Index',
                                os.path.join(self.output_dir, 'index.html'), '', context)

        self.logger.info(f"Building tag pages ({len(all_tags)})")
        for tag in sorted(all_tags):
            tagged = [item for item in items if tag in item.tags]
            self.generate_list_page(tagged, all_tags, f"Tag: {tag}",
                                    os.path.join(self.tags_dir, f"tag_{tag.slug}.html"), '../', context)
