#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

"""
String escape helpers shared by the transformer and the bundle emitter.

Lexer keeps string token text with escape sequences preserved (e.g. "\\n").
This module decodes that token text to the string value it denotes and
encodes values back to a double-quoted JavaScript string literal.
"""

from dataclasses import dataclass


_HEX_CHARS = "0123456789abcdefABCDEF"
_OCT_CHARS = "01234567"
_LINE_TERMINATORS = ("\n", "\r", "\u2028", "\u2029")
_SIMPLE_ESCAPES = {
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
}
_ENCODE_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


@dataclass(frozen=True)
class EscapeDecodeError(ValueError):
    code: str
    details: str = ""


def _read_hex(text: str, i: int, count: int, code: str) -> int:
    digits = text[i:i + count]
    if len(digits) != count or any(ch not in _HEX_CHARS for ch in digits):
        raise EscapeDecodeError(code, f"expected {count} hex digits at offset {i}")
    return int(digits, 16)


def decode_js_string_token(text: str) -> str:
    """
    Decode a JavaScript string token payload to its value.

    Input is lexer-preserved token text (without surrounding quotes).
    """
    out = []
    i = 0

    while i < len(text):
        ch = text[i]
        if ch != "\\":
            out.append(ch)
            i += 1
            continue

        i += 1
        if i >= len(text):
            raise EscapeDecodeError("TRN-0050", "dangling backslash")
        esc = text[i]

        if esc in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[esc])
            i += 1
        elif esc in _LINE_TERMINATORS:
            # line continuation
            i += 1
            if esc == "\r" and i < len(text) and text[i] == "\n":
                i += 1
        elif esc == "x":
            out.append(chr(_read_hex(text, i + 1, 2, "TRN-0051")))
            i += 3
        elif esc == "u":
            if i + 1 < len(text) and text[i + 1] == "{":
                close = text.find("}", i + 2)
                digits = text[i + 2:close] if close != -1 else ""
                if not digits or any(d not in _HEX_CHARS for d in digits) or int(digits, 16) > 0x10FFFF:
                    raise EscapeDecodeError("TRN-0052", "invalid code point escape")
                out.append(chr(int(digits, 16)))
                i = close + 1
            else:
                out.append(chr(_read_hex(text, i + 1, 4, "TRN-0052")))
                i += 5
        elif esc in _OCT_CHARS:
            # legacy octal escape: up to three digits, value <= 0o377
            j = i
            while j < len(text) and j - i < 3 and text[j] in _OCT_CHARS and int(text[i:j + 1], 8) <= 0o377:
                j += 1
            out.append(chr(int(text[i:j], 8)))
            i = j
        else:
            out.append(esc)
            i += 1

    value = "".join(out)
    # join surrogate pairs produced by \uD83D\uDE00-style escapes
    return value.encode("utf-16", "surrogatepass").decode("utf-16", "surrogatepass")


def encode_js_string_literal(value: str) -> str:
    """Encode a string as a double-quoted JavaScript literal."""
    parts = ['"']
    for ch in value:
        if ch in _ENCODE_ESCAPES:
            parts.append(_ENCODE_ESCAPES[ch])
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            parts.append(f"\\x{ord(ch):02x}")
        else:
            parts.append(ch)
    parts.append('"')
    return "".join(parts)
