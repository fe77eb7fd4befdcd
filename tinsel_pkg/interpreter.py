"""
Template interpreter for Tinsel.

Templates are text files with embedded Python regions. A ``<% ... %>`` region
holds statements, a ``<%= ... %>`` region holds an expression whose value is
appended to the output. Because Python blocks are indentation based, a
statement region ending with a colon opens a block that stays open until an
``<% end %>`` region::

    <% for post in posts: %>
      <li><%= post['title'] %></li>
    <% end %>

``else``, ``elif``, ``except`` and ``finally`` regions continue the innermost
block.
"""

import ast
import builtins
import inspect
import io
import re
import textwrap
import tokenize as python_tokenize
from collections import namedtuple
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from .errors import EvaluationError, TinselError

LITERAL = 'literal'
CODE = 'code'

Token = namedtuple('Token', ['kind', 'text'])

OUTPUT_BUFFER = '__out'
RESULT_NAME = '__result__'
EMIT_NAME = '__emit__'
INDENT = '    '
BLOCK_END = 'end'
BLOCK_CONTINUATION = re.compile(r'(else|elif|except|finally)\b')


def tokenize(text: str, open_tag: str = '<%', close_tag: str = '%>') -> List[Token]:
    """
    Split text into literal and code tokens.

    Every open tag extends to the next close tag. An open tag without a
    matching close tag is kept as literal text.
    """
    tokens = []
    position = 0
    while True:
        start = text.find(open_tag, position)
        if start < 0:
            break
        end = text.find(close_tag, start + len(open_tag))
        if end < 0:
            break
        if start > position:
            tokens.append(Token(LITERAL, text[position:start]))
        tokens.append(Token(CODE, text[start + len(open_tag):end]))
        position = end + len(close_tag)
    if position < len(text):
        tokens.append(Token(LITERAL, text[position:]))
    return tokens


def escape_literal(text: str) -> str:
    """Escape text for use inside a double-quoted Python string."""
    return (text.replace('\\', '\\\\')
                .replace('"', '\\"')
                .replace('\n', '\\n')
                .replace('\r', '\\r'))


def _strip_comment(line):
    """Return a single line of code without its trailing comment."""
    try:
        for token in python_tokenize.generate_tokens(io.StringIO(line).readline):
            if token.type == python_tokenize.COMMENT:
                return line[:token.start[1]].rstrip()
    except (python_tokenize.TokenError, SyntaxError):
        pass
    return line.rstrip()


def _opens_block(line) -> bool:
    return _strip_comment(line).endswith(':')


def _statement_lines(code):
    """Split a statement region into (relative indent, line) pairs, skipping comment-only lines."""
    first, _, rest = code.partition('\n')
    lines = []
    nested = ''
    if _strip_comment(first.strip()):
        lines.append(('', first.strip()))
        # Lines after a block opener on the region's first line form its body
        if _opens_block(first.strip()):
            nested = INDENT
    for line in textwrap.dedent(rest).split('\n'):
        stripped = line.lstrip()
        if _strip_comment(stripped):
            indent = line[:len(line) - len(stripped)]
            lines.append((nested + indent, stripped.rstrip()))
    return lines


def _compile_statement(code, indents, program):
    lines = _statement_lines(code)
    if not lines:
        return
    base = indents[-1]
    head = _strip_comment(lines[0][1])
    if head == BLOCK_END:
        if len(indents) > 1:
            indents.pop()
        else:
            program.append(f'{base}raise SyntaxError("\'end\' without an open block")')
        lines = lines[1:]
        base = indents[-1]
    elif BLOCK_CONTINUATION.match(head) and head.endswith(':') and len(indents) > 1:
        base = indents.pop()[:-len(INDENT)]

    for relative, line in lines:
        program.append(f'{base}{relative}{line}')

    if lines and _opens_block(lines[-1][1]):
        opened = base + lines[-1][0] + INDENT
        program.append(f'{opened}pass')
        indents.append(opened)


def compile_template(text: str, open_tag: str = '<%', close_tag: str = '%>') -> str:
    """
    Compile template text into Python program text.

    The program collects output in a list and leaves the joined result in
    ``__result__``. The same input always compiles to the same program.
    """
    program = [f'{OUTPUT_BUFFER} = []']
    indents = ['']
    for token in tokenize(text, open_tag, close_tag):
        current = indents[-1]
        if token.kind == LITERAL:
            program.append(f'{current}{OUTPUT_BUFFER}.append("{escape_literal(token.text)}")')
        elif token.text.startswith('='):
            expression = token.text[1:].strip()
            program.append(f'{current}{OUTPUT_BUFFER}.append(await {EMIT_NAME}({expression}))')
        else:
            _compile_statement(token.text, indents, program)
    program.append(f'{RESULT_NAME} = "".join({OUTPUT_BUFFER})')
    return '\n'.join(program) + '\n'


async def emit(value: Any) -> str:
    """Turn the value of an expression region into output text."""
    if inspect.isawaitable(value):
        value = await value
    if value is None:
        return ''
    return str(value)


def default_outer_scope() -> Dict[str, Any]:
    """Names visible to templates when the Context does not define them."""
    scope = dict(vars(builtins))
    scope[EMIT_NAME] = emit
    return scope


class Environment:
    """
    Scope chain of a running template.

    Names resolve against the Context first and fall back to the outer scope.
    Assignments made by template code land in the Context.
    """

    def __init__(self, context, outer: Optional[Dict[str, Any]] = None, filename: str = '<template>'):
        self.context = context
        self.outer = outer if outer is not None else default_outer_scope()
        self.filename = filename

    @contextmanager
    def bind(self):
        """Yield the Context namespace set up as globals over the outer scope."""
        namespace = getattr(self.context, 'namespace', self.context)
        namespace['__builtins__'] = self.outer
        try:
            yield namespace
        finally:
            namespace.pop('__builtins__', None)
            namespace.pop(OUTPUT_BUFFER, None)


class PythonEvaluator:
    """Runs compiled programs as Python code with top-level await enabled."""

    async def run(self, program: str, environment: Environment) -> str:
        code = compile(program, environment.filename, 'exec', flags=ast.PyCF_ALLOW_TOP_LEVEL_AWAIT)
        with environment.bind() as namespace:
            result = eval(code, namespace)
            if inspect.isawaitable(result):
                await result
            return namespace.pop(RESULT_NAME, '')


async def interpret(program: str, context, evaluator=None) -> str:
    """Run a compiled program against a Context and return its output."""
    evaluator = evaluator or PythonEvaluator()
    environment = Environment(context, filename=context.get('input_path', '<template>'))
    try:
        return await evaluator.run(program, environment)
    except TinselError:
        raise
    except Exception as e:
        raise EvaluationError(environment.filename, f"{type(e).__name__}: {e}") from e
