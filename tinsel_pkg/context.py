"""
Evaluation Context and the default Context extender.

A Context is the namespace seen by the code embedded in one file. Context
extenders run before the file is interpreted and add helpers to it.
"""

import importlib
import json
import logging
import os
from collections.abc import MutableMapping
from typing import Any, Dict, List, Optional

from . import pipeline
from .errors import EvaluationError, SyncIOError
from .feed import to_rss_xml

logger = logging.getLogger('Tinsel.Context')


class Context(MutableMapping):
    """Per-file namespace exposed to embedded code."""

    def __init__(self, input_path: str, output_path: str, content: str, **extra):
        self.namespace: Dict[str, Any] = dict(extra)
        self.namespace['input_path'] = input_path
        self.namespace['output_path'] = output_path
        self.namespace['content'] = content

    def __getitem__(self, key):
        return self.namespace[key]

    def __setitem__(self, key, value):
        self.namespace[key] = value

    def __delitem__(self, key):
        del self.namespace[key]

    def __iter__(self):
        return iter(self.namespace)

    def __len__(self):
        return len(self.namespace)

    def __repr__(self):
        return f"Context({self.input_path!r} > {self.output_path!r})"

    @property
    def input_path(self) -> str:
        return self.namespace['input_path']

    @property
    def output_path(self) -> str:
        return self.namespace['output_path']

    @output_path.setter
    def output_path(self, value: str):
        self.namespace['output_path'] = value

    @property
    def content(self) -> str:
        return self.namespace['content']

    def derive(self, input_path: str, output_path: str, content: str,
               extra: Optional[Dict[str, Any]] = None) -> 'Context':
        """
        Build the Context of an included file.

        The caller's keys are copied, the file-specific keys replaced, and
        ``extra`` laid on top. The caller's Context is left untouched.
        """
        derived = Context(input_path, output_path, content)
        derived.namespace = dict(self.namespace)
        derived.namespace.update(
            input_path=input_path,
            output_path=output_path,
            content=content,
            is_include=True,
            include_depth=self.namespace.get('include_depth', 0) + 1,
        )
        derived.namespace.update(extra or {})
        return derived


def _read_json(path: str, source: str) -> Any:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except FileNotFoundError as e:
        raise EvaluationError(source, f"Metadata file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise EvaluationError(source, f"Invalid JSON in metadata file {path}: {e}") from e


def collect_metadata(root: str, meta_filename: str = 'meta.json') -> List[Dict[str, Any]]:
    """
    Walk the subdirectories of root depth-first and load every metadata file.

    Returns:
        List of ``{'directory': <path relative to root>, 'data': <parsed JSON>}``
    """
    metas = []

    def walk(directory):
        for name in sorted(os.listdir(directory)):
            full_path = os.path.join(directory, name)
            if not os.path.isdir(full_path):
                continue
            meta_path = os.path.join(full_path, meta_filename)
            if os.path.isfile(meta_path):
                metas.append({
                    'directory': os.path.relpath(full_path, root).replace(os.sep, '/'),
                    'data': _read_json(meta_path, root),
                })
            walk(full_path)

    walk(root)
    return metas


def default_context_extender(config, context: Context) -> None:
    """
    Add the default helpers to a Context.

    Relative paths given to the helpers resolve against the directory of the
    current input file, except for ``rss`` which writes relative to the
    directory of the current output file.
    """
    input_dir = os.path.dirname(context.input_path)
    output_dir = os.path.dirname(context.output_path)
    source = context.input_path

    def read_file(file_path: str) -> str:
        with open(os.path.join(input_dir, file_path), 'r', encoding='utf-8') as f:
            return f.read()

    def read_dir(file_path: str = '.') -> List[Dict[str, Any]]:
        directory = os.path.join(input_dir, file_path)
        return [
            {'file': name, 'is_directory': os.path.isdir(os.path.join(directory, name))}
            for name in sorted(os.listdir(directory))
        ]

    def file_exists(file_path: str) -> bool:
        return os.path.exists(os.path.join(input_dir, file_path))

    def meta(file_path: Optional[str] = None) -> None:
        meta_path = os.path.join(input_dir, file_path or config.meta_filename)
        data = _read_json(meta_path, source)
        if not isinstance(data, dict):
            raise EvaluationError(source, f"Metadata file {meta_path} must contain an object")
        context.update(data)

    def metas(file_path: str = '') -> List[Dict[str, Any]]:
        return collect_metadata(os.path.join(input_dir, file_path), config.meta_filename)

    async def render(file_path: str, extra: Optional[Dict[str, Any]] = None) -> str:
        include_input_path = os.path.normpath(os.path.join(input_dir, file_path))
        include_output_path = os.path.normpath(os.path.join(output_dir, file_path))
        if context.get('include_depth', 0) >= config.max_include_depth:
            raise EvaluationError(
                source, f"Include depth limit of {config.max_include_depth} exceeded at {include_input_path}")
        try:
            with open(include_input_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except (IOError, OSError) as e:
            raise EvaluationError(source, f"Cannot include {include_input_path}: {e}") from e

        logger.debug(f"Rendering {include_input_path} into {source}")
        derived = context.derive(include_input_path, include_output_path, content, extra)
        return await pipeline.transform(config, derived)

    def rss(file_path: str, channel: Dict[str, Any], items: List[Dict[str, Any]]) -> None:
        feed_path = os.path.join(output_dir, file_path)
        xml = to_rss_xml(channel, items)
        try:
            os.makedirs(os.path.dirname(feed_path), exist_ok=True)
            with open(feed_path, 'w', encoding='utf-8') as f:
                f.write(xml)
        except (IOError, OSError) as e:
            raise SyncIOError(feed_path, f"Failed to write feed: {e}") from e
        logger.info(f"Generated feed: {feed_path}")

    context['read_file'] = read_file
    context['read_dir'] = read_dir
    context['file_exists'] = file_exists
    context['meta'] = meta
    context['metas'] = metas
    context['import_module'] = importlib.import_module
    context['render'] = render
    context['include'] = render
    context['rss'] = rss
