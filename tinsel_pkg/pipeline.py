"""
The per-file pipeline: compile, extend the Context, interpret, transform.
"""

import inspect
import logging
import os

from .errors import SyncIOError, TinselError, TransformError
from .interpreter import compile_template, interpret

DEBUG_SUFFIX = '.debug.py'

logger = logging.getLogger('Tinsel.Pipeline')


def write_debug_program(output_path, program):
    """Write the compiled program next to the destination for inspection."""
    debug_path = output_path + DEBUG_SUFFIX
    try:
        os.makedirs(os.path.dirname(debug_path), exist_ok=True)
        with open(debug_path, 'w', encoding='utf-8') as f:
            f.write(program)
    except (IOError, OSError) as e:
        raise SyncIOError(debug_path, f"Failed to write debug program: {e}") from e
    logger.debug(f"Wrote compiled program: {debug_path}")


async def apply_transformers(config, context, output):
    """Run the configured transformers over evaluated output, in order."""
    for transformer in config.transformers:
        try:
            output = transformer(config, context, output)
            if inspect.isawaitable(output):
                output = await output
        except TinselError:
            raise
        except Exception as e:
            name = getattr(transformer, '__name__', type(transformer).__name__)
            raise TransformError(context.input_path, f"{name} failed: {e}") from e
    return output


async def transform(config, context):
    """
    Run the whole pipeline for one Context and return the final output.

    Transformers may rewrite ``context.output_path``; callers must read it
    after this returns.
    """
    program = compile_template(context.content, config.open_tag, config.close_tag)
    if config.debug and not context.get('is_include'):
        write_debug_program(context.output_path, program)

    for extender in config.context_extenders:
        extender(config, context)

    output = await interpret(program, context, config.evaluator)
    return await apply_transformers(config, context, output)
