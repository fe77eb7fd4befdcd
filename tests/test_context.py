"""Tests for the Context, the default extender and the render primitive."""

import asyncio
import json
import os
import sys
from pathlib import Path

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from tinsel_pkg.context import Context, collect_metadata
from tinsel_pkg.errors import EvaluationError
from tinsel_pkg.pipeline import transform


def render_file(config, path, **values):
    """Run one input file through the pipeline without writing it."""
    with open(path, 'r', encoding='utf-8') as f:
        content = f.read()
    output_path = os.path.join(config.output_path, os.path.relpath(path, config.input_path))
    context = Context(path, output_path, content, is_include=False, include_depth=0, **values)
    return asyncio.run(transform(config, context)), context


def write(path, text):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding='utf-8')
    return str(path)


class TestContext:
    """Test cases for the Context mapping."""

    def test_required_keys(self):
        context = Context('/in/a.txt', '/out/a.txt', 'text', extra=1)
        assert context.input_path == '/in/a.txt'
        assert context.output_path == '/out/a.txt'
        assert context.content == 'text'
        assert context['extra'] == 1
        assert set(context) == {'input_path', 'output_path', 'content', 'extra'}

    def test_output_path_is_mutable(self):
        context = Context('/in/a.md', '/out/a.md', '')
        context.output_path = '/out/a.html'
        assert context['output_path'] == '/out/a.html'

    def test_derive_does_not_touch_caller(self):
        caller = Context('/in/a.txt', '/out/a.txt', 'caller', title='T', include_depth=0)
        derived = caller.derive('/in/b.txt', '/out/b.txt', 'included', {'title': 'Override', 'x': 1})

        assert derived.input_path == '/in/b.txt'
        assert derived.content == 'included'
        assert derived['title'] == 'Override'
        assert derived['is_include'] is True
        assert derived['include_depth'] == 1

        assert caller['title'] == 'T'
        assert 'x' not in caller
        assert caller.input_path == '/in/a.txt'


class TestDefaultExtender:
    """Test cases for the helpers added by the default context extender."""

    def test_file_helpers_resolve_against_current_directory(self, make_config, input_dir):
        page = write(os.path.join(input_dir, 'pages', 'a.txt'),
                     '<%= read_file("data.txt") %>|<%= file_exists("data.txt") %>|'
                     '<%= file_exists("nope") %>|<%= [e["file"] for e in read_dir(".")] %>|'
                     '<%= [e["is_directory"] for e in read_dir()] %>')
        write(os.path.join(input_dir, 'pages', 'data.txt'), 'DATA')
        os.makedirs(os.path.join(input_dir, 'pages', 'sub'))

        output, _ = render_file(make_config(), page)
        assert output == "DATA|True|False|['a.txt', 'data.txt', 'sub']|[False, False, True]"

    def test_meta_merges_into_context(self, make_config, input_dir):
        write(os.path.join(input_dir, 'meta.json'), json.dumps({'title': 'T', 'tags': ['x']}))
        page = write(os.path.join(input_dir, 'index.txt'), '<% meta() %><%= title %>')

        output, context = render_file(make_config(), page)
        assert output == 'T'
        assert context['tags'] == ['x']

    def test_meta_with_explicit_file(self, make_config, input_dir):
        write(os.path.join(input_dir, 'data', 'other.json'), json.dumps({'name': 'Other'}))
        page = write(os.path.join(input_dir, 'index.txt'), '<% meta("data/other.json") %><%= name %>')

        output, _ = render_file(make_config(), page)
        assert output == 'Other'

    def test_meta_file_setting(self, make_config, input_dir):
        write(os.path.join(input_dir, 'info.json'), json.dumps({'name': 'Info'}))
        page = write(os.path.join(input_dir, 'index.txt'), '<% meta() %><%= name %>')

        output, _ = render_file(make_config(meta_file='info.json'), page)
        assert output == 'Info'

    def test_missing_meta_raises(self, make_config, input_dir):
        page = write(os.path.join(input_dir, 'index.txt'), '<% meta() %>')

        with pytest.raises(EvaluationError, match='Metadata file not found'):
            render_file(make_config(), page)

    def test_metas_collects_recursively(self, make_config, input_dir):
        blog = os.path.join(input_dir, 'blog')
        write(os.path.join(blog, 'meta.json'), json.dumps({'title': 'Blog'}))
        write(os.path.join(blog, 'a', 'meta.json'), json.dumps({'title': 'A'}))
        write(os.path.join(blog, 'a', 'nested', 'meta.json'), json.dumps({'title': 'Nested'}))
        os.makedirs(os.path.join(blog, 'b', 'empty'))
        write(os.path.join(blog, 'c', 'x', 'meta.json'), json.dumps({'title': 'X'}))
        page = write(os.path.join(blog, 'index.txt'),
                     '<%= [(m["directory"], m["data"]["title"]) for m in metas()] %>')

        output, _ = render_file(make_config(), page)
        assert output == "[('a', 'A'), ('a/nested', 'Nested'), ('c/x', 'X')]"

    def test_collect_metadata_custom_filename(self, temp_dir):
        write(os.path.join(temp_dir, 'one', 'info.json'), json.dumps({'n': 1}))
        write(os.path.join(temp_dir, 'one', 'two', 'info.json'), json.dumps({'n': 2}))
        write(os.path.join(temp_dir, 'one', 'meta.json'), json.dumps({'n': 0}))

        metas = collect_metadata(temp_dir, 'info.json')
        assert metas == [
            {'directory': 'one', 'data': {'n': 1}},
            {'directory': 'one/two', 'data': {'n': 2}},
        ]

    def test_import_module(self, make_config, input_dir):
        page = write(os.path.join(input_dir, 'index.txt'), '<%= import_module("json").dumps([1]) %>')

        output, _ = render_file(make_config(), page)
        assert output == '[1]'

    def test_rss_writes_feed_next_to_output(self, make_config, input_dir, output_dir):
        page = write(os.path.join(input_dir, 'blog', 'index.txt'),
                     '<% rss("feed.xml", {"title": "Blog", "description": "Posts & news", '
                     '"url": "https://example.com"}, [{"title": "A <b>", "description": "d", '
                     '"url": "https://example.com/a", "pubdate": "2024-01-02"}]) %>ok')

        output, _ = render_file(make_config(), page)
        assert output == 'ok'

        feed = Path(output_dir) / 'blog' / 'feed.xml'
        xml = feed.read_text(encoding='utf-8')
        assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        assert '<description>Posts &amp; news</description>' in xml
        assert '<title>A &lt;b&gt;</title>' in xml
        assert '<pubDate>Tue, 02 Jan 2024 00:00:00 GMT</pubDate>' in xml


class TestRender:
    """Test cases for rendering one file into another."""

    def test_render_derives_context(self, make_config, input_dir):
        write(os.path.join(input_dir, '_partials', 'head.txt'),
              '<%= title %>-<%= sub %>-<%= is_include %>-<%= os_name(input_path) %><% title = "changed" %>')
        page = write(os.path.join(input_dir, 'index.txt'),
                     '<% title = "Root" %><%= render("_partials/head.txt", {"sub": "S"}) %>|<%= title %>')

        output, context = render_file(make_config(), page, os_name=os.path.basename)
        assert output == 'Root-S-True-head.txt|Root'
        assert 'sub' not in context
        assert context['is_include'] is False

    def test_include_alias(self, make_config, input_dir):
        write(os.path.join(input_dir, 'part.txt'), 'part')
        page = write(os.path.join(input_dir, 'index.txt'), '[<%= include("part.txt") %>]')

        output, _ = render_file(make_config(), page)
        assert output == '[part]'

    def test_nested_render_resolves_relative_to_included_file(self, make_config, input_dir):
        write(os.path.join(input_dir, 'a', 'outer.txt'), 'outer(<%= render("b/inner.txt") %>)')
        write(os.path.join(input_dir, 'a', 'b', 'inner.txt'), 'inner')
        page = write(os.path.join(input_dir, 'index.txt'), '<%= render("a/outer.txt") %>')

        output, _ = render_file(make_config(), page)
        assert output == 'outer(inner)'

    def test_render_applies_transformers(self, make_config, input_dir, output_dir):
        write(os.path.join(input_dir, '_part.md'), '# Hi')
        page = write(os.path.join(input_dir, 'index.txt'), '<%= render("_part.md") %>')

        output, context = render_file(make_config(), page)
        assert '<h1>Hi</h1>' in output
        assert context.output_path.endswith('index.txt')
        assert not os.path.exists(output_dir)

    def test_missing_include_raises(self, make_config, input_dir):
        page = write(os.path.join(input_dir, 'index.txt'), '<%= render("missing.txt") %>')

        with pytest.raises(EvaluationError, match='Cannot include'):
            render_file(make_config(), page)

    def test_include_depth_limit(self, make_config, input_dir):
        page = write(os.path.join(input_dir, 'loop.txt'), '<%= render("loop.txt") %>')

        with pytest.raises(EvaluationError, match='Include depth limit of 5 exceeded'):
            render_file(make_config(max_include_depth=5), page)
