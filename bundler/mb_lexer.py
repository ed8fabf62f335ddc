#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

from dataclasses import dataclass
from enum import Enum, auto
from typing import List, Optional

from mb_errors import TransformError


# ==========================
# Tokens and lexer
# ==========================

class TokenKind(Enum):
    # Special
    EOF = auto()

    IDENT = auto()  # identifier or keyword, e.g. import, foo, $el
    NUMBER = auto()  # numeric literal, e.g. 42, 0x1f, 1e-3, 10n
    STRING = auto()  # string literal, e.g. 'a', "b"
    TEMPLATE = auto()  # one chunk of a template literal, e.g. `a${ or }b`
    REGEX = auto()  # regular expression literal, e.g. /ab+c/gi
    PRIVATE_NAME = auto()  # class private name, e.g. #count
    PUNCT = auto()  # punctuation / operators


# Longest first; the lexer takes the first entry that matches.
PUNCTUATORS = (
    ">>>=",
    "...", "===", "!==", "**=", "<<=", ">>=", ">>>", "&&=", "||=", "??=",
    "=>", "==", "!=", "<=", ">=", "&&", "||", "??", "?.", "++", "--",
    "+=", "-=", "*=", "%=", "&=", "|=", "^=", "<<", ">>", "**",
    "{", "}", "(", ")", "[", "]", ";", ",", "<", ">", "+", "-", "*", "%",
    "&", "|", "^", "!", "~", "?", ":", "=", ".", "@",
)

# Keywords after which a `/` starts a regular expression, not a division.
REGEX_PRECEDING_KEYWORDS = {
    "return", "typeof", "instanceof", "in", "of", "new", "delete", "void",
    "throw", "case", "do", "else", "yield", "await",
}


@dataclass
class Token:
    kind: TokenKind
    text: str
    line: int
    column: int
    start: int = 0  # offset of the first character in the source
    end: int = 0  # offset one past the last character
    newline_before: bool = False

    def __repr__(self) -> str:
        return f"{self.text!r}" if self.kind != TokenKind.EOF else "end-of-file"

    def is_punct(self, text: str) -> bool:
        return self.kind is TokenKind.PUNCT and self.text == text

    def is_ident(self, text: Optional[str] = None) -> bool:
        return self.kind is TokenKind.IDENT and (text is None or self.text == text)


class LexerError(TransformError):
    def __init__(self, message: str, filename: str, line: int, column: int):
        super().__init__(message, filename=filename, line=line, column=column)


def is_ident_start(c: str) -> bool:
    return c.isalpha() or c in ("_", "$")


def is_ident_part(c: str) -> bool:
    return c.isalnum() or c in ("_", "$", "\u200c", "\u200d")


class Lexer:
    """
    JavaScript tokenizer.

    Only as much of the grammar as module rewriting needs: every token keeps
    its source offsets so the transformer can splice the original text.
    Comments and whitespace are dropped; `newline_before` records whether a
    line break separated a token from its predecessor.
    """

    def __init__(self, source: str, filename: str = "<input>") -> None:
        self.source = source
        self.filename = filename
        self.length = len(source)
        self.index = 0
        self.line = 1
        self.column = 1
        # "brace" for `{`, "template" for `${`
        self._brace_stack: List[str] = []
        self._prev: Optional[Token] = None

    @classmethod
    def from_source(cls, source: str) -> "Lexer":
        return cls(source)

    # --- low-level char utilities ---

    def _at_end(self) -> bool:
        return self.index >= self.length

    def _peek(self) -> str:
        if self._at_end():
            return "\0"
        return self.source[self.index]

    def _peek_next(self) -> str:
        if self.index + 1 >= self.length:
            return "\0"
        return self.source[self.index + 1]

    def _advance(self) -> str:
        c = self._peek()
        if not self._at_end():
            self.index += 1
            if c == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1
        return c

    def _error(self, message: str, line: Optional[int] = None, column: Optional[int] = None) -> LexerError:
        return LexerError(
            message,
            self.filename,
            self.line if line is None else line,
            self.column if column is None else column,
        )

    # --- main API ---

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        self._skip_shebang()
        while True:
            tok = self._next_token()
            tokens.append(tok)
            if tok.kind is TokenKind.EOF:
                break
            self._prev = tok
        return tokens

    def _next_token(self) -> Token:
        newline_before = self._skip_ws_and_comments()
        start_line, start_col, start = self.line, self.column, self.index

        def make(kind: TokenKind, text: str) -> Token:
            return Token(kind, text, start_line, start_col, start, self.index, newline_before)

        if self._at_end():
            return make(TokenKind.EOF, "")

        c = self._peek()

        # identifiers and keywords
        if is_ident_start(c):
            self._advance()
            while is_ident_part(self._peek()):
                self._advance()
            return make(TokenKind.IDENT, self.source[start:self.index])

        if c == "#" and is_ident_start(self._peek_next()):
            self._advance()
            while is_ident_part(self._peek()):
                self._advance()
            return make(TokenKind.PRIVATE_NAME, self.source[start:self.index])

        # numbers
        if c.isdigit() or (c == "." and self._peek_next().isdigit()):
            self._read_number()
            return make(TokenKind.NUMBER, self.source[start:self.index])

        # strings
        if c in ("'", '"'):
            text = self._read_string_literal(c)
            return make(TokenKind.STRING, text)

        # template literals (head chunk)
        if c == "`":
            self._advance()
            self._read_template_chunk(start_line, start_col)
            return make(TokenKind.TEMPLATE, self.source[start:self.index])

        # braces track template substitutions
        if c == "{":
            self._advance()
            self._brace_stack.append("brace")
            return make(TokenKind.PUNCT, c)

        if c == "}":
            self._advance()
            if self._brace_stack and self._brace_stack.pop() == "template":
                self._read_template_chunk(start_line, start_col)
                return make(TokenKind.TEMPLATE, self.source[start:self.index])
            return make(TokenKind.PUNCT, c)

        # regex or division
        if c == "/":
            self._advance()
            if self._regex_allowed():
                self._read_regex_body(start_line, start_col)
                return make(TokenKind.REGEX, self.source[start:self.index])
            if self._peek() == "=":
                self._advance()
                return make(TokenKind.PUNCT, "/=")
            return make(TokenKind.PUNCT, "/")

        for punct in PUNCTUATORS:
            if self.source.startswith(punct, self.index):
                # `a?.5:b` is a conditional, not optional chaining
                if punct == "?." and self.index + 2 < self.length and self.source[self.index + 2].isdigit():
                    continue
                for _ in punct:
                    self._advance()
                return make(TokenKind.PUNCT, punct)

        raise self._error(f"[LEX-0040] unexpected character {c!r} at {start_line}:{start_col}", start_line, start_col)

    def _regex_allowed(self) -> bool:
        prev = self._prev
        if prev is None:
            return True
        if prev.kind is TokenKind.IDENT:
            return prev.text in REGEX_PRECEDING_KEYWORDS
        if prev.kind is TokenKind.TEMPLATE:
            return prev.text.endswith("${")
        if prev.kind is TokenKind.PUNCT:
            return prev.text not in (")", "]", "++", "--")
        return False

    def _read_number(self) -> None:
        c = self._advance()
        is_hex_like = c == "0" and self._peek() in ("x", "X", "o", "O", "b", "B")
        while True:
            nxt = self._peek()
            if nxt.isalnum() or nxt in ("_", "."):
                self._advance()
                if (not is_hex_like and nxt in ("e", "E")
                        and self._peek() in ("+", "-") and self._peek_next().isdigit()):
                    self._advance()
                continue
            break

    def _read_string_literal(self, quote: str) -> str:
        start_line, start_col = self.line, self.column
        self._advance()  # opening quote
        chars: List[str] = []
        while True:
            ch = self._peek()
            if self._at_end() or ch == "\n":
                raise self._error("[LEX-0010] unterminated string literal")
            if ch == "\\":
                chars.append(self._advance())
                if self._at_end():
                    raise self._error("[LEX-0050] unterminated escape sequence", start_line, start_col)
                esc = self._advance()
                chars.append(esc)
                if esc == "\r" and self._peek() == "\n":
                    chars.append(self._advance())
                continue
            if ch == quote:
                self._advance()
                break
            chars.append(self._advance())
        return "".join(chars)

    def _read_template_chunk(self, start_line: int, start_col: int) -> None:
        """Consume template text up to and including the closing backtick or a `${`."""
        while True:
            if self._at_end():
                raise self._error("[LEX-0020] unterminated template literal", start_line, start_col)
            ch = self._advance()
            if ch == "\\":
                if self._at_end():
                    raise self._error("[LEX-0050] unterminated escape sequence", start_line, start_col)
                self._advance()
                continue
            if ch == "`":
                return
            if ch == "$" and self._peek() == "{":
                self._advance()
                self._brace_stack.append("template")
                return

    def _read_regex_body(self, start_line: int, start_col: int) -> None:
        in_class = False
        while True:
            ch = self._peek()
            if self._at_end() or ch == "\n":
                raise self._error("[LEX-0030] unterminated regular expression literal", start_line, start_col)
            self._advance()
            if ch == "\\":
                if self._peek() == "\n" or self._at_end():
                    raise self._error("[LEX-0030] unterminated regular expression literal", start_line, start_col)
                self._advance()
            elif ch == "[":
                in_class = True
            elif ch == "]":
                in_class = False
            elif ch == "/" and not in_class:
                break
        # flags
        while is_ident_part(self._peek()):
            self._advance()

    def _skip_shebang(self) -> None:
        if self.source.startswith("#!"):
            while self._peek() not in ("\n", "\0"):
                self._advance()

    def _skip_ws_and_comments(self) -> bool:
        """Skip whitespace and comments; return True if a line break was crossed."""
        saw_newline = False
        while True:
            c = self._peek()
            if self._at_end():
                return saw_newline
            if c in ("\n", "\u2028", "\u2029"):
                saw_newline = True
                self._advance()
                continue
            if c == "\ufeff" or c.isspace():
                self._advance()
                continue
            if c == "/" and self._peek_next() == "/":
                # line comment
                self._advance()  # '/'
                self._advance()  # second '/'
                while self._peek() not in ("\n", "\0"):
                    self._advance()
                continue
            if c == "/" and self._peek_next() == "*":
                # block comment
                self._advance()  # '/'
                self._advance()  # '*'
                while True:
                    if self._at_end():
                        raise self._error("[LEX-0070] unterminated block comment")
                    if self._peek() == "*" and self._peek_next() == "/":
                        self._advance()  # '*'
                        self._advance()  # '/'
                        break
                    if self._peek() == "\n":
                        saw_newline = True
                    self._advance()
                continue
            return saw_newline
