#!/usr/bin/env python3
"""
kalipso.py
Translation core for Kalipso (.kpso), a tiny integer-only language
(assignment, print, input) compiled to C source.

Pipeline per source line: lexer -> statement classifier -> C line generation.
Variables get dense slots (v0, v1, ...) in order of first use; declarations
are emitted once, after the whole body has been translated.
"""

import logging
import re

log = logging.getLogger("kalipso")

# =====================================================
# LIMITS
# =====================================================
MAX_VARS = 256
MAX_TOKENS = 100
MAX_TOKEN_LENGTH = 63
MAX_LINES = 10000
MAX_LINE_LENGTH = 1023

# =====================================================
# ERRORS
# =====================================================
class CompileError(Exception):
    """Fatal translation error. Compilation stops at the first one."""

    def __init__(self, phase, message, lineno=None):
        self.phase = phase
        self.message = message
        self.lineno = lineno
        super().__init__(self._format())

    def _format(self):
        if self.lineno is not None:
            return f"{self.phase} error (line {self.lineno}): {self.message}"
        return f"{self.phase} error: {self.message}"

# =====================================================
# LEXER
# =====================================================
class Lexer:
    token_specification = [
        ("WORD",  r'[A-Za-z0-9_]+'),   # identifiers and numbers alike
        ("SKIP",  r'\s+'),
        ("CHAR",  r'.'),               # any single operator / punctuation
    ]
    tok_regex = '|'.join(f'(?P<{n}>{p})' for n, p in token_specification)
    master_re = re.compile(tok_regex, re.DOTALL)

    def __init__(self, line, lineno=None):
        self.line = line
        self.lineno = lineno
        self.tokens = []
        self._tokenize()

    def _tokenize(self):
        for mo in self.master_re.finditer(self.line):
            kind = mo.lastgroup
            val = mo.group()
            if kind == "SKIP":
                continue
            if len(self.tokens) >= MAX_TOKENS:
                raise CompileError("Lexical", "Too many tokens", self.lineno)
            if len(val) > MAX_TOKEN_LENGTH:
                raise CompileError("Lexical", f"Token too long: {val[:16]!r}...", self.lineno)
            self.tokens.append(val)

    def peek_all(self):
        return list(self.tokens)


def tokenize(line, lineno=None):
    return Lexer(line, lineno).peek_all()


_IDENT_RE = re.compile(r'[A-Za-z_][A-Za-z0-9_]*')

def is_identifier(token):
    return _IDENT_RE.fullmatch(token) is not None

# =====================================================
# SYMBOL TABLE
# =====================================================
class SymbolTable:
    """Maps variable names to slots in order of first use."""

    def __init__(self, max_vars=MAX_VARS):
        self.max_vars = max_vars
        self.slots = {}

    def resolve(self, name, lineno=None):
        slot = self.slots.get(name)
        if slot is not None:
            return slot
        if len(self.slots) >= self.max_vars:
            raise CompileError("Semantic", "Too many variables", lineno)
        slot = len(self.slots)
        self.slots[name] = slot
        return slot

    def names(self):
        # dicts keep insertion order, which is slot order
        return list(self.slots)

    def as_dict(self):
        return dict(self.slots)

    def __len__(self):
        return len(self.slots)


def slot_ref(slot):
    return f"v{slot}"

# =====================================================
# COMPILATION STATE
# =====================================================
class CompilationState:
    """Everything one compilation accumulates. Never shared between runs."""

    def __init__(self, max_lines=MAX_LINES, max_vars=MAX_VARS):
        self.symbols = SymbolTable(max_vars)
        self.lines = []
        self.max_lines = max_lines

    def add_line(self, text, lineno=None):
        if len(self.lines) >= self.max_lines:
            raise CompileError("Syntax", "Too many lines", lineno)
        self.lines.append(text)

# =====================================================
# STATEMENT CLASSIFIER + CODE GENERATION
# =====================================================
class CodeGenerator:
    def __init__(self, state):
        self.state = state

    def generate(self, tokens, lineno=None):
        """Classify one non-empty token list and append its C line to the state."""
        if not tokens:
            raise CompileError("Syntax", "Empty statement", lineno)
        head = tokens[0]
        # print/input win over the assignment shape, even for `print = 1`
        if head == "print":
            line = self.print_statement(tokens, lineno)
        elif head == "input":
            line = self.input_statement(tokens, lineno)
        elif len(tokens) >= 3 and tokens[1] == "=":
            line = self.assignment(tokens, lineno)
        else:
            raise CompileError("Syntax", "Invalid statement", lineno)
        self.state.add_line(line, lineno)
        return line

    def print_statement(self, tokens, lineno):
        if len(tokens) < 2:
            raise CompileError("Syntax", "print needs an argument", lineno)
        expr = self.expression(tokens[1:], lineno)
        return f'    printf("%lld\\n", {expr});'

    def input_statement(self, tokens, lineno):
        if len(tokens) != 2:
            raise CompileError("Syntax", "input needs one variable", lineno)
        if not is_identifier(tokens[1]):
            raise CompileError("Syntax", "input needs a variable name", lineno)
        slot = self.state.symbols.resolve(tokens[1], lineno)
        return f'    scanf("%lld", &{slot_ref(slot)});'

    def assignment(self, tokens, lineno):
        if not is_identifier(tokens[0]):
            raise CompileError("Syntax", "Left side must be a variable", lineno)
        slot = self.state.symbols.resolve(tokens[0], lineno)
        expr = self.expression(tokens[2:], lineno)
        return f"    {slot_ref(slot)} = {expr};"

    def expression(self, tokens, lineno):
        # token passthrough: identifiers become slot refs, everything else is kept verbatim
        parts = []
        for tok in tokens:
            if is_identifier(tok):
                parts.append(slot_ref(self.state.symbols.resolve(tok, lineno)))
            else:
                parts.append(tok)
        return " ".join(parts)

# =====================================================
# PROGRAM EMISSION
# =====================================================
def emit_program(state):
    out = ["#include <stdio.h>", "", "int main() {"]
    names = state.symbols.names()
    if names:
        decls = ", ".join(f"{slot_ref(i)} = 0" for i, _ in enumerate(names))
        out.append(f"    long long {decls};")
    out.extend(state.lines)
    out.append("    return 0;")
    out.append("}")
    return "\n".join(out) + "\n"

# =====================================================
# COMPILER DRIVER
# =====================================================
def source_statements(code):
    """Yield (lineno, text) for every line that is not blank or a # comment."""
    # only \n ends a statement; \f, \v and friends stay inside the line
    for lineno, raw in enumerate(code.split("\n"), start=1):
        if raw.endswith("\r"):
            raw = raw[:-1]
        if len(raw) > MAX_LINE_LENGTH:
            raise CompileError("Lexical", "Line too long", lineno)
        text = raw.strip()
        if not text or text.startswith("#"):
            continue
        yield lineno, text


def _run(code, result, verbose):
    state = CompilationState()
    gen = CodeGenerator(state)
    try:
        for lineno, text in source_statements(code):
            toks = tokenize(text, lineno)
            result['tokens'].append(toks)
            line = gen.generate(toks, lineno)
            result['generated'].append(line)
            if verbose:
                log.debug("line %d: %s -> %s", lineno, toks, line.strip())
    finally:
        result['symbol_table'] = state.symbols.as_dict()
    result['program'] = emit_program(state)
    if verbose:
        log.debug("%d statements, %d variables", len(state.lines), len(state.symbols))
    return result['program']


def _empty_result():
    return {
        'tokens': [],
        'generated': [],
        'program': None,
        'symbol_table': {},
        'errors': [],
    }


def compile_source(code, verbose=False):
    """Translate a whole program; errors are reported in result['errors']."""
    result = _empty_result()
    try:
        _run(code, result, verbose)
    except CompileError as e:
        result['errors'] = [str(e)]
        result['program'] = None
    return result


def translate(code, verbose=False):
    """Translate a whole program to C text, raising CompileError on failure."""
    return _run(code, _empty_result(), verbose)

# =====================================================
# TEST PROGRAM
# =====================================================
TEST_PROGRAM = r'''
# sample program
x = 5
y = 10
result = x + y
print result
'''

if __name__ == '__main__':
    print(translate(TEST_PROGRAM), end="")
