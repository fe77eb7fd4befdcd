"""Test configuration and fixtures for Tinsel tests."""

import json
import os
import shutil
import sys
import tempfile
from pathlib import Path

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from tinsel_pkg.core import create_config


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def input_dir(temp_dir):
    """Create an empty input directory."""
    input_dir = Path(temp_dir) / 'site'
    input_dir.mkdir()
    return str(input_dir)


@pytest.fixture
def output_dir(temp_dir):
    """Path of the output directory. It is created by the first sync pass."""
    return str(Path(temp_dir) / 'public')


@pytest.fixture
def make_config(input_dir, output_dir):
    """Factory building a Config for the temporary input and output directories."""
    def factory(**overrides):
        settings = {'input': input_dir, 'output': output_dir}
        settings.update(overrides)
        return create_config(settings)
    return factory


@pytest.fixture
def mock_site(input_dir):
    """Create a small site with templates, metadata, partials and assets."""
    site = Path(input_dir)

    (site / 'meta.json').write_text(json.dumps({'title': 'Home'}))
    (site / 'index.txt').write_text(
        '<% meta() %>'
        '# <%= title %>\n'
        '<%= render("_partials/footer.txt", {"year": 2024}) %>')

    partials = site / '_partials'
    partials.mkdir()
    (partials / 'footer.txt').write_text('-- <%= title %> <%= year %> --')

    posts = site / 'posts'
    (posts / 'first').mkdir(parents=True)
    (posts / 'first' / 'meta.json').write_text(json.dumps({'title': 'First post'}))
    (posts / 'first' / 'index.md').write_text('<% meta() %># <%= title %>\n\nHello.\n')

    (site / 'style.css').write_text('body {\n    color: red;\n}\n')
    (site / 'logo.png').write_bytes(b'\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR')
    (site / '_drafts').mkdir()
    (site / '_drafts' / 'wip.txt').write_text('not published')

    return str(site)


@pytest.fixture
def read_tree():
    """Return a function mapping every file below a root to its bytes."""
    def reader(root):
        tree = {}
        for directory, _, files in os.walk(root):
            for name in files:
                path = os.path.join(directory, name)
                with open(path, 'rb') as f:
                    tree[os.path.relpath(path, root).replace(os.sep, '/')] = f.read()
        return tree
    return reader
