"""Split message text into argument tokens.

Quoting rules, applied in a single left-to-right pass:

* a backtick toggles a code block; inside it whitespace and quotes are
  literal and the span joins the current token;
* outside a code block an unescaped ``"`` opens or closes a quoted span,
  which becomes exactly one token;
* everything else is split on whitespace.

Unterminated quotes and code blocks are closed at end of input. Callers
that care can inspect :attr:`TokenizeResult.unterminated`.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

from .model import Token

type Unterminated = Literal["quote", "code_block"]

QUOTE = '"'
CODE_BLOCK = "`"
ESCAPE = "\\"


@dataclass(frozen=True, slots=True)
class TokenizeResult:
    tokens: tuple[Token, ...]
    unterminated: Unterminated | None = None

    @property
    def complete(self) -> bool:
        return self.unterminated is None


def scan(content: str, keep_quote_chars: bool = False) -> TokenizeResult:
    tokens: list[Token] = []
    buffer: list[str] = []
    inside_quote = False
    inside_code_block = False
    previous = ""

    def flush() -> None:
        if buffer:
            tokens.append("".join(buffer))
            buffer.clear()

    for char in content:
        escaped = previous == ESCAPE
        previous = char

        if char == CODE_BLOCK:
            inside_code_block = not inside_code_block
            if keep_quote_chars:
                buffer.append(char)
            continue

        if inside_code_block:
            buffer.append(char)
            continue

        if char == QUOTE and not escaped:
            if inside_quote:
                if keep_quote_chars:
                    buffer.append(char)
                inside_quote = False
                flush()
            else:
                flush()
                inside_quote = True
                if keep_quote_chars:
                    buffer.append(char)
            continue

        if inside_quote:
            buffer.append(char)
            continue

        if char.isspace():
            flush()
            continue

        buffer.append(char)

    unterminated: Unterminated | None = None
    if inside_code_block:
        unterminated = "code_block"
    elif inside_quote:
        unterminated = "quote"
    flush()
    return TokenizeResult(tokens=tuple(tokens), unterminated=unterminated)


def tokenize(content: str, keep_quote_chars: bool = False) -> list[Token]:
    return list(scan(content, keep_quote_chars).tokens)


def strip_quotes(args: Iterable[str]) -> list[str]:
    """Remove unescaped double quotes from each argument."""
    stripped: list[str] = []
    for arg in args:
        chars: list[str] = []
        previous = ""
        for char in arg:
            if char != QUOTE or previous == ESCAPE:
                chars.append(char)
            previous = char
        stripped.append("".join(chars))
    return stripped


def _requote(token: Token) -> str:
    if not any(char.isspace() or char in (QUOTE, CODE_BLOCK) for char in token):
        return token
    if CODE_BLOCK not in token:
        return f"{CODE_BLOCK}{token}{CODE_BLOCK}"
    if QUOTE not in token and not token.endswith(ESCAPE):
        return f"{QUOTE}{token}{QUOTE}"
    return token


def join_tokens(tokens: Iterable[Token], keep_quote_chars: bool = False) -> str:
    """Render ``tokens`` back to text that tokenizes to the same sequence.

    With ``keep_quote_chars`` the tokens still carry their own quoting and are
    joined as they are.
    """
    if keep_quote_chars:
        return " ".join(tokens)
    return " ".join(_requote(token) for token in tokens)
