"""Recolon lexer: scans source text into a flat stream of tokens."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator

from recolon.errors import LexError


# ---------------------------------------------------------------------------
# Token types
# ---------------------------------------------------------------------------

class TokenType(Enum):
    # Literals
    STRING = auto()
    NUMBER = auto()

    # Identifiers
    IDENTIFIER = auto()

    # Keywords
    VAR = auto()
    IF = auto()
    ELIF = auto()
    ELSE = auto()
    WHILE = auto()
    FOR = auto()
    IN = auto()
    COMPOSE = auto()
    FN = auto()
    STRUCT = auto()
    CLASS = auto()
    RETURN = auto()
    BREAK = auto()
    CONTINUE = auto()
    THIS = auto()
    LOG = auto()
    ERR = auto()
    AND = auto()
    OR = auto()
    TRUE = auto()
    FALSE = auto()
    NIL = auto()

    # Operators
    PLUS = auto()          # +
    MINUS = auto()         # -
    STAR = auto()          # *
    SLASH = auto()         # /
    BANG = auto()          # !
    AMPERSAND = auto()     # &
    DOT = auto()           # .
    EQUALS = auto()        # =
    DOUBLE_EQUALS = auto() # ==
    NOT_EQUALS = auto()    # !=
    LT = auto()            # <
    GT = auto()            # >
    LTE = auto()           # <=
    GTE = auto()           # >=

    # Delimiters
    LPAREN = auto()        # (
    RPAREN = auto()        # )
    LBRACE = auto()        # {
    RBRACE = auto()        # }
    LBRACKET = auto()      # [
    RBRACKET = auto()      # ]
    SEMICOLON = auto()     # ;
    COMMA = auto()         # ,
    COLON = auto()         # :

    # Structure
    COMMENT = auto()
    EOF = auto()


class TokenKind(Enum):
    """Coarse token category, as reported to tooling."""
    KEYWORD = "keyword"
    IDENTIFIER = "identifier"
    LITERAL = "literal"
    OPERATOR = "operator"
    PUNCTUATION = "punctuation"
    COMMENT = "comment"
    END = "end-of-input"


# ---------------------------------------------------------------------------
# Lookup tables
# ---------------------------------------------------------------------------

KEYWORDS: dict[str, TokenType] = {
    "var": TokenType.VAR,
    "if": TokenType.IF,
    "elif": TokenType.ELIF,
    "else": TokenType.ELSE,
    "while": TokenType.WHILE,
    "for": TokenType.FOR,
    "in": TokenType.IN,
    "compose": TokenType.COMPOSE,
    "fn": TokenType.FN,
    "struct": TokenType.STRUCT,
    "class": TokenType.CLASS,
    "return": TokenType.RETURN,
    "break": TokenType.BREAK,
    "continue": TokenType.CONTINUE,
    "this": TokenType.THIS,
    "log": TokenType.LOG,
    "err": TokenType.ERR,
    "and": TokenType.AND,
    "or": TokenType.OR,
    "True": TokenType.TRUE,
    "False": TokenType.FALSE,
    "Nil": TokenType.NIL,
    "true": TokenType.TRUE,
    "false": TokenType.FALSE,
    "nil": TokenType.NIL,
}

TWO_CHAR_TOKENS: dict[str, TokenType] = {
    "==": TokenType.DOUBLE_EQUALS,
    "!=": TokenType.NOT_EQUALS,
    "<=": TokenType.LTE,
    ">=": TokenType.GTE,
}

SINGLE_CHAR_TOKENS: dict[str, TokenType] = {
    "+": TokenType.PLUS,
    "-": TokenType.MINUS,
    "*": TokenType.STAR,
    "/": TokenType.SLASH,
    "!": TokenType.BANG,
    "&": TokenType.AMPERSAND,
    ".": TokenType.DOT,
    "=": TokenType.EQUALS,
    "<": TokenType.LT,
    ">": TokenType.GT,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
    ";": TokenType.SEMICOLON,
    ",": TokenType.COMMA,
    ":": TokenType.COLON,
}

DIGITS = "0123456789"

_PUNCTUATION = {
    TokenType.LPAREN, TokenType.RPAREN, TokenType.LBRACE, TokenType.RBRACE,
    TokenType.LBRACKET, TokenType.RBRACKET, TokenType.SEMICOLON,
    TokenType.COMMA, TokenType.COLON,
}

_LITERAL_KEYWORDS = {TokenType.TRUE, TokenType.FALSE, TokenType.NIL}


# ---------------------------------------------------------------------------
# Token dataclass
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str
    line: int
    column: int
    literal: object = None

    @property
    def kind(self) -> TokenKind:
        if self.type == TokenType.EOF:
            return TokenKind.END
        if self.type == TokenType.COMMENT:
            return TokenKind.COMMENT
        if self.type == TokenType.IDENTIFIER:
            return TokenKind.IDENTIFIER
        if self.type in (TokenType.NUMBER, TokenType.STRING) or self.type in _LITERAL_KEYWORDS:
            return TokenKind.LITERAL
        if self.type in _PUNCTUATION:
            return TokenKind.PUNCTUATION
        if self.value in KEYWORDS:
            return TokenKind.KEYWORD
        return TokenKind.OPERATOR

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, L{self.line}:{self.column})"


# ---------------------------------------------------------------------------
# Lexer
# ---------------------------------------------------------------------------

class Lexer:
    """Scans Recolon source text and produces Token objects."""

    def __init__(self, source: str, keep_comments: bool = False) -> None:
        self.source = source
        self.keep_comments = keep_comments
        self.pos: int = 0
        self.line: int = 1
        self.col: int = 1

    # -- Character-level helpers -------------------------------------------

    def _current(self) -> str:
        """Return the character at the current position, or '' at EOF."""
        if self.pos < len(self.source):
            return self.source[self.pos]
        return ""

    def peek(self) -> str:
        """Look ahead one character without consuming it."""
        next_pos = self.pos + 1
        if next_pos < len(self.source):
            return self.source[next_pos]
        return ""

    def advance(self) -> str:
        """Consume and return the current character, advancing position."""
        ch = self._current()
        self.pos += 1
        if ch == "\n":
            self.line += 1
            self.col = 1
        else:
            self.col += 1
        return ch

    # -- Main entry points -------------------------------------------------

    def tokenize(self) -> list[Token]:
        """Scan the entire source and return a list of tokens ending with EOF."""
        return list(self.scan())

    def scan(self) -> Iterator[Token]:
        """Lazily yield tokens; every call starts again from the beginning."""
        self.pos, self.line, self.col = 0, 1, 1

        while self.pos < len(self.source):
            ch = self._current()

            if ch in (" ", "\t", "\r", "\n"):
                self.advance()
                continue

            # Comments: # to end of line
            if ch == "#":
                comment = self._read_comment()
                if self.keep_comments:
                    yield comment
                continue

            if ch == '"':
                yield self._read_string()
                continue

            if ch in DIGITS:
                yield self._read_number()
                continue

            if ch.isalpha() or ch == "_":
                yield self._read_identifier()
                continue

            # Multi-character operators (must check before single-char)
            pair = ch + self.peek()
            if pair in TWO_CHAR_TOKENS:
                yield Token(TWO_CHAR_TOKENS[pair], pair, self.line, self.col)
                self.advance()
                self.advance()
                continue

            if ch in SINGLE_CHAR_TOKENS:
                yield Token(SINGLE_CHAR_TOKENS[ch], ch, self.line, self.col)
                self.advance()
                continue

            raise LexError(f"Unexpected character: {ch!r}", self.line, self.col)

        yield Token(TokenType.EOF, "", self.line, self.col)

    # -- Token readers -----------------------------------------------------

    def _read_comment(self) -> Token:
        """Consume from # to end of line (or end of source)."""
        start_line = self.line
        start_col = self.col
        chars: list[str] = []
        while self.pos < len(self.source) and self._current() != "\n":
            chars.append(self.advance())
        return Token(TokenType.COMMENT, "".join(chars), start_line, start_col)

    def _read_string(self) -> Token:
        """Read a double-quoted string. Characters are taken literally."""
        start_line = self.line
        start_col = self.col
        self.advance()  # consume opening "

        value_chars: list[str] = []

        while self.pos < len(self.source):
            ch = self._current()
            if ch == '"':
                self.advance()  # consume closing "
                value = "".join(value_chars)
                return Token(TokenType.STRING, f'"{value}"', start_line, start_col, value)
            value_chars.append(self.advance())

        raise LexError("Unterminated string literal", start_line, start_col)

    def _read_number(self) -> Token:
        """Read an integer or decimal literal: [0-9]+(\\.[0-9]+)?"""
        start_line = self.line
        start_col = self.col
        chars: list[str] = []

        while self.pos < len(self.source) and self._current() in DIGITS:
            chars.append(self.advance())

        # Optional decimal part
        if self._current() == "." and self.peek() != "" and self.peek() in DIGITS:
            chars.append(self.advance())  # consume '.'
            while self.pos < len(self.source) and self._current() in DIGITS:
                chars.append(self.advance())

        text = "".join(chars)
        return Token(TokenType.NUMBER, text, start_line, start_col, float(text))

    def _read_identifier(self) -> Token:
        """Read an identifier or keyword: [a-zA-Z_][a-zA-Z0-9_]*"""
        start_line = self.line
        start_col = self.col
        chars: list[str] = []

        while self.pos < len(self.source) and (self._current().isalnum() or self._current() == "_"):
            chars.append(self.advance())

        word = "".join(chars)
        token_type = KEYWORDS.get(word, TokenType.IDENTIFIER)
        return Token(token_type, word, start_line, start_col)
