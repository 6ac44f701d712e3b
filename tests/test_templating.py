"""Tests for page shell rendering."""

import pytest

from quackdown_pkg.errors import InternalError
from quackdown_pkg.safety import EscapedText, ValidatedTag, escape
from quackdown_pkg.templating import PageTemplater, PostListItem, RenderContext


@pytest.fixture
def templater():
    return PageTemplater()


@pytest.fixture
def tags():
    return frozenset({ValidatedTag("python"), ValidatedTag("Rust"), ValidatedTag("GameDev")})


class TestRenderPage:
    """Test cases for PageTemplater.render_page()."""

    def test_shell(self, templater, tags):
        page = templater.render_page(escape("Hello"), EscapedText.trusted("<p>body</p>"), tags, '../',
                                     RenderContext("CODE A DUCK"))
        assert '<title>CODE A DUCK | Hello</title>' in page
        assert '[ CODE A DUCK ]' in page
        assert '<p>body</p>' in page
        assert 'href="../index.html"' in page
        assert 'href="../favicon.ico"' in page

    def test_nav_lists_tags_sorted_with_slug_links(self, templater, tags):
        page = templater.render_page(escape("T"), EscapedText.empty(), tags, '', RenderContext("B"))
        assert page.index('>GameDev<') < page.index('>Rust<') < page.index('>python<')
        assert 'href="tags/tag_gamedev.html"' in page
        assert 'href="tags/tag_rust.html"' in page

    def test_no_filter_section_without_tags(self, templater):
        page = templater.render_page(escape("T"), EscapedText.empty(), frozenset(), '', RenderContext("B"))
        assert 'Filter' not in page

    def test_brand_is_escaped(self, templater):
        page = templater.render_page(escape("T"), EscapedText.empty(), frozenset(), '',
                                     RenderContext("<Duck & Co>"))
        assert '&lt;Duck &amp; Co&gt;' in page
        assert '<Duck' not in page

    def test_title_is_not_escaped_twice(self, templater):
        page = templater.render_page(escape("Tom & Jerry"), EscapedText.empty(), frozenset(), '',
                                     RenderContext("B"))
        assert 'B | Tom &amp; Jerry</title>' in page

    def test_inline_css(self, templater):
        context = RenderContext("B").with_css(EscapedText.trusted("a > b { color: red; }"))
        page = templater.render_page(escape("T"), EscapedText.empty(), frozenset(), '../', context)
        assert '<style>a > b { color: red; }</style>' in page
        assert 'style.css' not in page

    def test_linked_css(self, templater):
        page = templater.render_page(escape("T"), EscapedText.empty(), frozenset(), '../', RenderContext("B"))
        assert '<link rel="stylesheet" href="../style.css">' in page
        assert '<style>' not in page

    def test_lcp_preload(self, templater):
        context = RenderContext("B").with_lcp_image("../images/duck.webp")
        page = templater.render_page(escape("T"), EscapedText.empty(), frozenset(), '../', context)
        assert '<link rel="preload" as="image" href="../images/duck.webp" fetchpriority="high">' in page

    def test_no_preload_by_default(self, templater):
        page = templater.render_page(escape("T"), EscapedText.empty(), frozenset(), '', RenderContext("B"))
        assert 'rel="preload"' not in page

    def test_requires_escaped_text(self, templater):
        with pytest.raises(TypeError):
            templater.render_page("T", EscapedText.empty(), frozenset(), '', RenderContext("B"))
        with pytest.raises(TypeError):
            templater.render_page(escape("T"), "<p>raw</p>", frozenset(), '', RenderContext("B"))

    def test_missing_template_is_internal_error(self, temp_dir):
        templater = PageTemplater(temp_dir)
        with pytest.raises(InternalError):
            templater.render_page(escape("T"), EscapedText.empty(), frozenset(), '', RenderContext("B"))


class TestFragments:
    """Test cases for the post meta and post list fragments."""

    def test_post_meta(self, templater):
        meta = templater.render_post_meta("2024.01.01 08:00", [ValidatedTag("a"), ValidatedTag("b")])
        assert isinstance(meta, EscapedText)
        assert 'UPLOAD: 2024.01.01 08:00' in str(meta)
        assert '<span class="tag">#a</span><span class="tag">#b</span>' in str(meta)

    def test_post_meta_escapes_date(self, templater):
        meta = templater.render_post_meta("<now>", [])
        assert 'UPLOAD: &lt;now&gt;' in str(meta)

    def test_post_list(self, templater):
        items = [
            PostListItem(escape("Fish & Chips"), "posts/b.html", "2024.01.02 10:00", [ValidatedTag("food")]),
            PostListItem(escape("Second"), "posts/a.html", "2024.01.01 10:00"),
        ]
        html = str(templater.render_post_list(items, '../'))
        assert 'href="../posts/b.html"' in html
        assert 'Fish &amp; Chips' in html
        assert '&amp;amp;' not in html
        assert '#food' in html
        assert html.index('posts/b.html') < html.index('posts/a.html')

    def test_empty_post_list(self, templater):
        assert str(templater.render_post_list([], '')) == '<div class="post-list"></div>'
