"""
Tinsel - a programmer's static content build tool.

Tinsel mirrors an input directory into an output directory. Text files with a
transformable extension run through a small template engine that executes
embedded Python, then through a chain of transformers (markdown, table of
contents, ...). Other files are copied when they changed.
"""

__version__ = "1.0.0"

from .errors import TinselError, EvaluationError, TransformError, SyncIOError
from .interpreter import tokenize, compile_template, interpret, Environment, PythonEvaluator
from .context import Context, default_context_extender
from .settings import Config, TinselSettings
from .sync import Synchronizer
from .core import Tinsel, create_config

__all__ = [
    'Tinsel', 'Synchronizer', 'Config', 'TinselSettings', 'Context', 'Environment',
    'PythonEvaluator', 'create_config', 'default_context_extender', 'tokenize',
    'compile_template', 'interpret', 'TinselError', 'EvaluationError',
    'TransformError', 'SyncIOError',
]
