"""
QuarkDSL Lexer
==============

Converts source text into a flat list of tokens with line/column positions.

Grammar notes:
    - Whitespace and // line comments are skipped
    - Two-character operators (->, .., ==, !=, <=, >=, &&, ||) win over
      their one-character prefixes
    - @gpu and @quantum become annotation tokens; any other @name is
      dropped without a token or an error
    - 12 is an integer literal, 12.5 a float literal, 12. is 12 followed by '.'
"""

import logging
from enum import Enum, auto
from dataclasses import dataclass
from typing import Any, List

from .errors import LexError


logger = logging.getLogger(__name__)


# =============================================================================
# TOKENS
# =============================================================================

class TokenType(Enum):
    """Token types for the QuarkDSL lexer."""
    # Keywords
    FN = auto()
    LET = auto()
    RETURN = auto()
    IF = auto()
    ELSE = auto()
    FOR = auto()
    IN = auto()
    MAP = auto()

    # Annotations
    GPU_ANNOTATION = auto()
    QUANTUM_ANNOTATION = auto()

    # Types
    INT = auto()
    FLOAT = auto()
    BOOL = auto()
    QUBIT = auto()
    VOID = auto()
    TENSOR = auto()
    QSTATE = auto()

    # Literals
    TRUE = auto()
    FALSE = auto()
    INT_LITERAL = auto()
    FLOAT_LITERAL = auto()
    IDENTIFIER = auto()

    # Operators
    PLUS = auto()
    MINUS = auto()
    STAR = auto()
    SLASH = auto()
    PERCENT = auto()
    EQ_EQ = auto()
    NE = auto()
    LT = auto()
    LE = auto()
    GT = auto()
    GE = auto()
    AND_AND = auto()
    OR_OR = auto()
    BANG = auto()
    EQ = auto()

    # Delimiters
    LPAREN = auto()
    RPAREN = auto()
    LBRACE = auto()
    RBRACE = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    COMMA = auto()
    SEMICOLON = auto()
    COLON = auto()
    ARROW = auto()
    DOT_DOT = auto()

    EOF = auto()


@dataclass(frozen=True)
class Token:
    """A lexer token. value is set for identifiers and numeric literals."""
    type: TokenType
    value: Any
    line: int
    column: int


KEYWORDS = {
    'fn': TokenType.FN,
    'let': TokenType.LET,
    'return': TokenType.RETURN,
    'if': TokenType.IF,
    'else': TokenType.ELSE,
    'for': TokenType.FOR,
    'in': TokenType.IN,
    'map': TokenType.MAP,
    'int': TokenType.INT,
    'float': TokenType.FLOAT,
    'bool': TokenType.BOOL,
    'qubit': TokenType.QUBIT,
    'void': TokenType.VOID,
    'tensor': TokenType.TENSOR,
    'qstate': TokenType.QSTATE,
    'true': TokenType.TRUE,
    'false': TokenType.FALSE,
}

ANNOTATIONS = {
    'gpu': TokenType.GPU_ANNOTATION,
    'quantum': TokenType.QUANTUM_ANNOTATION,
}

TWO_CHAR_TOKENS = {
    '->': TokenType.ARROW,
    '..': TokenType.DOT_DOT,
    '==': TokenType.EQ_EQ,
    '!=': TokenType.NE,
    '<=': TokenType.LE,
    '>=': TokenType.GE,
    '&&': TokenType.AND_AND,
    '||': TokenType.OR_OR,
}

SINGLE_CHAR_TOKENS = {
    '+': TokenType.PLUS,
    '-': TokenType.MINUS,
    '*': TokenType.STAR,
    '/': TokenType.SLASH,
    '%': TokenType.PERCENT,
    '<': TokenType.LT,
    '>': TokenType.GT,
    '!': TokenType.BANG,
    '=': TokenType.EQ,
    '(': TokenType.LPAREN,
    ')': TokenType.RPAREN,
    '{': TokenType.LBRACE,
    '}': TokenType.RBRACE,
    '[': TokenType.LBRACKET,
    ']': TokenType.RBRACKET,
    ',': TokenType.COMMA,
    ';': TokenType.SEMICOLON,
    ':': TokenType.COLON,
}

DIGITS = frozenset("0123456789")
IDENT_START = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ_")
IDENT_CHARS = IDENT_START | DIGITS


# =============================================================================
# LEXER
# =============================================================================

class QuarkLexer:
    """
    Tokenizer for QuarkDSL source code.

    Example:
        >>> tokens = QuarkLexer("fn main() -> int { return 1; }").tokenize()
        >>> tokens[0].type
        <TokenType.FN: 1>
    """

    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens: List[Token] = []

    def tokenize(self) -> List[Token]:
        """Tokenize the entire source, ending with an EOF token."""
        while True:
            self._skip_whitespace_and_comments()
            if self._at_end():
                break

            char = self._peek()
            line, column = self.line, self.column

            if char == '@':
                self._read_annotation()
            elif char in IDENT_START:
                self._read_identifier()
            elif char in DIGITS:
                self._read_number()
            elif char + self._peek(1) in TWO_CHAR_TOKENS:
                pair = char + self._peek(1)
                self._advance()
                self._advance()
                self._add_token(TWO_CHAR_TOKENS[pair], None, line, column)
            elif char in SINGLE_CHAR_TOKENS:
                self._advance()
                self._add_token(SINGLE_CHAR_TOKENS[char], None, line, column)
            else:
                raise LexError(f"Unexpected character '{char}'", line, column)

        self._add_token(TokenType.EOF, None, self.line, self.column)
        logger.debug(f"🔤 Tokenized {len(self.tokens)} tokens")
        return self.tokens

    # Helper methods
    def _at_end(self) -> bool:
        return self.pos >= len(self.source)

    def _peek(self, offset: int = 0) -> str:
        idx = self.pos + offset
        return self.source[idx] if idx < len(self.source) else ""

    def _advance(self) -> str:
        char = self.source[self.pos]
        self.pos += 1
        if char == '\n':
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        return char

    def _add_token(self, type: TokenType, value: Any, line: int, column: int):
        self.tokens.append(Token(type, value, line, column))

    def _skip_whitespace_and_comments(self):
        while not self._at_end():
            char = self._peek()
            if char.isspace():
                self._advance()
            elif char == '/' and self._peek(1) == '/':
                while not self._at_end() and self._peek() != '\n':
                    self._advance()
            else:
                break

    def _read_annotation(self):
        line, column = self.line, self.column
        self._advance()  # consume '@'
        start = self.pos
        while self._peek() and self._peek() in IDENT_START:
            self._advance()
        name = self.source[start:self.pos]
        if name in ANNOTATIONS:
            self._add_token(ANNOTATIONS[name], None, line, column)
        else:
            logger.debug(f"Ignoring unknown annotation '@{name}' at line {line}")

    def _read_number(self):
        line, column = self.line, self.column
        start = self.pos
        while self._peek() and self._peek() in DIGITS:
            self._advance()

        if self._peek() == '.' and self._peek(1) and self._peek(1) in DIGITS:
            self._advance()  # consume '.'
            while self._peek() and self._peek() in DIGITS:
                self._advance()
            self._add_token(TokenType.FLOAT_LITERAL, float(self.source[start:self.pos]), line, column)
        else:
            self._add_token(TokenType.INT_LITERAL, int(self.source[start:self.pos]), line, column)

    def _read_identifier(self):
        line, column = self.line, self.column
        start = self.pos
        while self._peek() and self._peek() in IDENT_CHARS:
            self._advance()
        text = self.source[start:self.pos]

        if text in KEYWORDS:
            self._add_token(KEYWORDS[text], None, line, column)
        else:
            self._add_token(TokenType.IDENTIFIER, text, line, column)


def tokenize(source: str) -> List[Token]:
    """Convenience function: tokenize source text."""
    return QuarkLexer(source).tokenize()
