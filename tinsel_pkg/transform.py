"""
Transformers applied to the evaluated output of a file.

A transformer is a callable ``(config, context, output) -> output``, possibly
async. It checks ``context.input_path`` / ``context.output_path`` to decide
whether it applies and returns the output unchanged otherwise.
"""

import html
import logging

import csscompressor
import mistune
import rjsmin
from lxml import html as lxml_html
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import TextLexer, get_lexer_by_name
from pygments.util import ClassNotFound

TOC_MARKER = '%%toc%%'

logger = logging.getLogger('Tinsel.Transform')


class HighlightRenderer(mistune.HTMLRenderer):
    """Mistune renderer that highlights fenced code blocks with Pygments."""

    def __init__(self, formatter=None):
        super().__init__(escape=False)
        self.formatter = formatter or HtmlFormatter(nowrap=True)

    def block_code(self, code, info=None):
        language = info.strip().split(None, 1)[0] if info and info.strip() else 'plaintext'
        try:
            lexer = get_lexer_by_name(language)
        except ClassNotFound:
            language = 'plaintext'
            lexer = TextLexer()
        highlighted = highlight(code, lexer, self.formatter)
        return f'<pre><code class="hljs language-{language}">{highlighted}</code></pre>\n'


def create_markdown_parser():
    """Create a Mistune markdown parser with indented code blocks disabled."""
    markdown = mistune.create_markdown(
        renderer=HighlightRenderer(),
        plugins=['table', 'task_lists', 'strikethrough']
    )
    # Indentation in templates is layout, not code
    if 'indent_code' in markdown.block.rules:
        markdown.block.rules.remove('indent_code')
    return markdown


def _is_html_output(context) -> bool:
    return context.output_path.lower().endswith('.html')


def _parse_document(output):
    return lxml_html.document_fromstring(output)


def _serialize_document(document) -> str:
    return lxml_html.tostring(document.getroottree(), encoding='unicode', method='html')


class MarkdownTransformer:
    """Convert ``.md`` files to HTML and rename their output to ``.html``."""

    def __init__(self, markdown=None):
        self.markdown = markdown or create_markdown_parser()

    def __call__(self, config, context, output):
        if not context.input_path.endswith('.md'):
            return output
        output = self.markdown(output)
        if context.output_path.endswith('.md'):
            context.output_path = context.output_path[:-len('.md')] + '.html'
        return output


class TableOfContentsTransformer:
    """
    Replace the first ``%%toc%%`` in HTML output with a list of links to the h3-h5
    headings. Each heading gets an id of the form ``toc_<index>``.
    """

    def __call__(self, config, context, output):
        if context.get('is_include') or not _is_html_output(context) or TOC_MARKER not in output:
            return output

        document = _parse_document(output)
        entries = []
        for index, heading in enumerate(document.xpath('//h3 | //h4 | //h5')):
            anchor = f'toc_{index}'
            heading.set('id', anchor)
            entries.append(
                f'<li class="{heading.tag}"><a href="#{anchor}">{html.escape(heading.text_content())}</a></li>')
        toc = '<ul>' + ''.join(entries) + '</ul>'
        return _serialize_document(document).replace(TOC_MARKER, toc, 1)


class TargetBlankTransformer:
    """Open every non-fragment link of HTML output in a new tab."""

    def __call__(self, config, context, output):
        if context.get('is_include') or not _is_html_output(context) or not output.strip():
            return output

        document = _parse_document(output)
        for link in document.iter('a'):
            href = link.get('href')
            if href and not href.startswith('#'):
                link.set('target', '_blank')
        return _serialize_document(document)


class MinifyTransformer:
    """Minify CSS and JS output when minification is enabled."""

    def __call__(self, config, context, output):
        if not config.minify:
            return output
        target = context.output_path.lower()
        if target.endswith('.css') and not target.endswith('.min.css'):
            logger.debug(f"Minified CSS: {context.output_path}")
            return csscompressor.compress(output)
        if target.endswith('.js') and not target.endswith('.min.js'):
            logger.debug(f"Minified JS: {context.output_path}")
            return rjsmin.jsmin(output)
        return output


def default_transformers(markdown=None):
    """Build the default transformer chain around a markdown parser."""
    return (
        MarkdownTransformer(markdown),
        TableOfContentsTransformer(),
        TargetBlankTransformer(),
        MinifyTransformer(),
    )
