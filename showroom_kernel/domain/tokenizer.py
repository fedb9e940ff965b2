"""
Tokenizer -- utterance text to typed tokens.

Responsibility:
    Splits the text produced by the speech-to-text engine into typed tokens
    for the grammar matcher: words, numbers, percents, phone digit runs and
    catalog product codes.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  First stage of the
    pipeline: tokenize -> match -> resolve -> price -> post.

Invariants enforced:
    - Total: every input produces a token sequence; characters the scanner
      does not recognize become WORD tokens verbatim.
    - Deterministic and case/whitespace insensitive: the same words in any
      casing or spacing yield tokens with identical kinds and texts (only
      spans differ).
    - Spans are (start, end) offsets into the ORIGINAL utterance so error
      messages can point at what the employee actually said.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class TokenKind(str, Enum):
    """Kinds of token the grammar can ask for."""

    WORD = "word"
    NUMBER = "number"
    PERCENT = "percent"
    PHONE_DIGITS = "phone_digits"
    PRODUCT_CODE = "product_code"


@dataclass(frozen=True, slots=True)
class Span:
    """Half-open character range [start, end) in the original utterance."""

    start: int
    end: int


@dataclass(frozen=True, slots=True)
class Token:
    """One typed token."""

    kind: TokenKind
    text: str
    span: Span

    @property
    def is_punctuation(self) -> bool:
        """True for WORD tokens with no letters or digits (commas, dashes...)."""
        return self.kind == TokenKind.WORD and not any(ch.isalnum() for ch in self.text)

    @property
    def is_sentence_boundary(self) -> bool:
        return self.kind == TokenKind.WORD and self.text == SENTENCE_BOUNDARY


# Catalog code shape, e.g. AFL-SOF-103.  The resolver re-checks codes with
# this same pattern so both stages agree on what a code is.
PRODUCT_CODE_PATTERN = re.compile(r"^[A-Z]{2,4}-[A-Z]{2,4}-[0-9]{2,4}$")

PHONE_MIN_DIGITS = 10
PHONE_MAX_DIGITS = 15

SENTENCE_BOUNDARY = "."

# Speech engines often spell small counts out ("a two seater")
NUMBER_WORDS: dict[str, int] = {
    "zero": 0, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
    "eleven": 11, "twelve": 12, "thirteen": 13, "fourteen": 14,
    "fifteen": 15, "sixteen": 16, "seventeen": 17, "eighteen": 18,
    "nineteen": 19, "twenty": 20,
}

# Spoken sign folded into the percent that follows ("minus 5%" -> -5)
SIGN_WORDS = frozenset({"minus", "negative"})

_SCANNER = re.compile(
    r"""
      (?P<code>(?<![A-Za-z0-9-])[A-Za-z]{2,4}-[A-Za-z]{2,4}-[0-9]{2,4}(?![A-Za-z0-9-]))
    | (?P<percent>(?:(?<!\w)-)?\d+(?:\.\d+)?%)
    | (?P<digits>\d+)
    | (?P<word>[^\W\d_]+(?:'[^\W\d_]+)?)
    | (?P<stop>[.!?])
    | (?P<space>\s+)
    | (?P<other>.)
    """,
    re.VERBOSE | re.DOTALL,
)


def normalize(utterance: str) -> str:
    """Lower-case and collapse whitespace."""
    return " ".join(utterance.split()).lower()


def _digits_kind(digits: str) -> TokenKind:
    if PHONE_MIN_DIGITS <= len(digits) <= PHONE_MAX_DIGITS:
        return TokenKind.PHONE_DIGITS
    return TokenKind.NUMBER


def tokenize(utterance: str) -> tuple[Token, ...]:
    """
    Split an utterance into typed tokens.

    Postconditions:
        - Whitespace never produces a token.
        - Product codes are upper-cased, words are lower-cased.
        - ``.``, ``!`` and ``?`` all become the WORD token ``"."``.
        - A sign stays on its percent: "-5%" and "minus 5%" are PERCENT -5.

    Example:
        tokenize("Buy AFL-SOF-103 with a 10% discount")
        -> WORD buy, PRODUCT_CODE AFL-SOF-103, WORD with, WORD a,
           PERCENT 10, WORD discount
    """
    tokens: list[Token] = []
    for m in _SCANNER.finditer(utterance):
        group = m.lastgroup
        text = m.group()
        span = Span(m.start(), m.end())

        if group == "space":
            continue
        if group == "code":
            tokens.append(Token(TokenKind.PRODUCT_CODE, text.upper(), span))
        elif group == "percent":
            value = text[:-1]
            if tokens and tokens[-1].kind == TokenKind.WORD and tokens[-1].text in SIGN_WORDS:
                sign = tokens.pop()
                value = "-" + value.lstrip("-")
                span = Span(sign.span.start, span.end)
            tokens.append(Token(TokenKind.PERCENT, value, span))
        elif group == "digits":
            tokens.append(Token(_digits_kind(text), text, span))
        elif group == "word":
            word = text.lower()
            if word in NUMBER_WORDS:
                tokens.append(Token(TokenKind.NUMBER, str(NUMBER_WORDS[word]), span))
            else:
                tokens.append(Token(TokenKind.WORD, word, span))
        elif group == "stop":
            tokens.append(Token(TokenKind.WORD, SENTENCE_BOUNDARY, span))
        else:
            tokens.append(Token(TokenKind.WORD, text, span))
    return tuple(tokens)
