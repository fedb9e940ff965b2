"""
Grammar -- fixed command templates matched against token streams.

Responsibility:
    Turns the tokenizer's output into an unresolved Intent by matching each
    clause of the utterance against an ordered list of declarative command
    templates.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Second stage of the pipeline: tokenize -> match -> resolve -> price.

Invariants enforced:
    - Templates are tried in priority order; the first template that
      consumes the WHOLE clause wins.  Optional elements are tried taken
      first, so the accepted reading is the leftmost-longest one.
    - A compound utterance is split on sentence boundaries and every clause
      is matched on its own; their slots merge into one Intent.
    - A slot filled by two clauses with different values is fatal
      (DuplicateSlotError); it is never silently overwritten.
    - Every accepted utterance records which templates accepted it.

Failure modes:
    - NoTemplateMatchedError with the furthest partial match (template,
      tokens consumed, expected element) for "did you mean" hints.
    - SlotTypeMismatchError when the furthest progress stopped at a slot
      holding a token of the wrong kind.
    - DuplicateSlotError on conflicting clauses.

Templates (priority order):
    find_customer_by_phone  "find customer with phone 01754031344"
    customer_will_buy       "the customer will buy AFL-SOF-103, a 2-seater
                             made of mahogany lacquer, light finish, with a
                             10% discount"
    sell_to_phone           "sell AFL-SOF-103 to 01754031344 with a 5% discount"
    buy_product             "buy two AFL-SOF-103"
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Sequence, Union

from showroom_kernel.domain.dtos import (
    DISCOUNT_PERCENT,
    FINISH_SHADE,
    FINISH_TYPE,
    MATERIAL,
    PHONE,
    PRODUCT_CODE,
    QUANTITY,
    SEAT_COUNT,
    Intent,
    SlotValue,
)
from showroom_kernel.domain.tokenizer import Token, TokenKind
from showroom_kernel.exceptions import (
    DuplicateSlotError,
    NoTemplateMatchedError,
    SlotTypeMismatchError,
)
from showroom_kernel.logging_config import get_logger

logger = get_logger("domain.grammar")


# ---------------------------------------------------------------------------
# Template elements
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Literal:
    """A keyword (any of ``words``) that must, or may, appear here."""

    words: tuple[str, ...]
    optional: bool = False

    def describe(self) -> str:
        return " or ".join(f"'{w}'" for w in self.words)


@dataclass(frozen=True)
class Slot:
    """A named placeholder filled by exactly one token of ``kind``."""

    name: str
    kind: TokenKind

    def describe(self) -> str:
        return f"{self.kind.value.replace('_', ' ')} for {self.name}"


@dataclass(frozen=True)
class Group:
    """An optional run of elements, matched all-or-nothing."""

    elements: tuple["Element", ...]


Element = Union[Literal, Slot, Group]


@dataclass(frozen=True)
class Template:
    """One command form."""

    name: str
    description: str
    elements: tuple[Element, ...]

    def keywords(self) -> set[str]:
        return _keywords(self.elements)


def lit(*words: str) -> Literal:
    return Literal(tuple(words))


def opt(*words: str) -> Literal:
    return Literal(tuple(words), optional=True)


def slot(name: str, kind: TokenKind) -> Slot:
    return Slot(name, kind)


def group(*elements: Element) -> Group:
    return Group(tuple(elements))


def _keywords(elements: Sequence[Element]) -> set[str]:
    words: set[str] = set()
    for el in elements:
        if isinstance(el, Literal):
            words.update(el.words)
        elif isinstance(el, Group):
            words.update(_keywords(el.elements))
    return words


# ---------------------------------------------------------------------------
# Command templates
# ---------------------------------------------------------------------------

WAKE_WORDS = frozenset({"erp", "hey", "ok", "okay"})

_WAKE = opt(*sorted(WAKE_WORDS))

_QUANTITY = group(
    slot(QUANTITY, TokenKind.NUMBER),
    opt("units", "unit", "pieces", "piece", "sets", "set"),
    opt("of"),
)

_SEATS = group(
    opt("a", "an"),
    slot(SEAT_COUNT, TokenKind.NUMBER),
    lit("seater", "seat", "seats"),
)

_MATERIAL = group(
    lit("made"),
    lit("of", "in", "from"),
    slot(MATERIAL, TokenKind.WORD),
    group(slot(FINISH_TYPE, TokenKind.WORD)),
)

_SHADE = group(
    opt("in", "with"),
    opt("a", "an"),
    slot(FINISH_SHADE, TokenKind.WORD),
    lit("finish", "finished", "shade"),
)

_DISCOUNT = group(
    lit("with", "at", "and", "give", "giving", "apply"),
    opt("a", "an"),
    slot(DISCOUNT_PERCENT, TokenKind.PERCENT),
    lit("discount", "off"),
)

_VARIANT_TAIL: tuple[Element, ...] = (_SEATS, _MATERIAL, _SHADE, _DISCOUNT)

FIND_CUSTOMER_BY_PHONE = Template(
    name="find_customer_by_phone",
    description="find customer with phone <phone>",
    elements=(
        _WAKE,
        lit("find", "search", "get"),
        opt("the", "a"),
        lit("customer", "client"),
        opt("with", "by", "having", "whose"),
        opt("the", "a"),
        lit("phone", "mobile", "number"),
        opt("number", "is"),
        slot(PHONE, TokenKind.PHONE_DIGITS),
    ),
)

CUSTOMER_WILL_BUY = Template(
    name="customer_will_buy",
    description="the customer will buy <code>[, a <n>-seater][ made of <material> [<finish type>]][, <shade> finish][ with a <n>% discount]",
    elements=(
        _WAKE,
        opt("the", "this"),
        lit("customer", "client"),
        lit("will", "wants", "would"),
        opt("to", "like"),
        opt("to"),
        lit("buy", "purchase", "take"),
        _QUANTITY,
        slot(PRODUCT_CODE, TokenKind.PRODUCT_CODE),
        *_VARIANT_TAIL,
    ),
)

SELL_TO_PHONE = Template(
    name="sell_to_phone",
    description="sell <code> to [phone] <phone>[ ...variants][ with a <n>% discount]",
    elements=(
        _WAKE,
        lit("sell"),
        _QUANTITY,
        slot(PRODUCT_CODE, TokenKind.PRODUCT_CODE),
        lit("to"),
        opt("customer", "client"),
        opt("with", "by"),
        opt("phone", "mobile"),
        opt("number"),
        slot(PHONE, TokenKind.PHONE_DIGITS),
        *_VARIANT_TAIL,
    ),
)

BUY_PRODUCT = Template(
    name="buy_product",
    description="buy <code>[ ...variants][ with a <n>% discount]",
    elements=(
        _WAKE,
        lit("buy", "purchase"),
        _QUANTITY,
        slot(PRODUCT_CODE, TokenKind.PRODUCT_CODE),
        *_VARIANT_TAIL,
    ),
)

# Priority order
TEMPLATES: tuple[Template, ...] = (
    FIND_CUSTOMER_BY_PHONE,
    CUSTOMER_WILL_BUY,
    SELL_TO_PHONE,
    BUY_PRODUCT,
)


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------

_END = "end of command"


@dataclass
class _Miss:
    """Furthest point a template reached before failing."""

    position: int
    template: str
    expected: str
    token: Token | None
    slot: Slot | None
    rank: int


class _MissTracker:
    """Records the furthest partial match across all templates of a clause."""

    # Ranks break ties at the same position: a slot with the wrong token is
    # the most specific diagnosis, an optional keyword the least.
    SLOT, REQUIRED, OPTIONAL = 3, 2, 1

    def __init__(self) -> None:
        self.template = ""
        self.best: _Miss | None = None

    def miss(self, position: int, expected: str, token: Token | None,
             rank: int, slot_el: Slot | None = None) -> None:
        best = self.best
        if (
            best is None
            or position > best.position
            or (position == best.position and rank > best.rank)
        ):
            self.best = _Miss(position, self.template, expected, token, slot_el, rank)


class GrammarMatcher:
    """
    Matches token streams against an ordered template list.

    Stateless after construction; one instance may be shared by threads.
    """

    def __init__(self, templates: Sequence[Template] = TEMPLATES):
        self._templates = tuple(templates)
        self._keywords: frozenset[str] = frozenset(
            word for t in self._templates for word in t.keywords()
        )

    @property
    def templates(self) -> tuple[Template, ...]:
        return self._templates

    def match(self, tokens: Sequence[Token]) -> Intent:
        """
        Match a whole utterance.

        Raises:
            NoTemplateMatchedError: A clause fits no template (or the
                utterance is empty).
            SlotTypeMismatchError: A clause failed at a slot holding a
                token of the wrong kind.
            DuplicateSlotError: Two clauses disagree on a slot value.
        """
        clauses = self._split_clauses(tokens)
        if not clauses:
            raise NoTemplateMatchedError(clause="")

        merged: dict[str, SlotValue] = {}
        accepted: list[str] = []
        for clause in clauses:
            template_name, slots = self._match_clause(clause)
            accepted.append(template_name)
            for name, value in slots.items():
                existing = merged.get(name)
                if existing is not None and existing.text != value.text:
                    raise DuplicateSlotError(name, existing.text, value.text)
                if existing is None:
                    merged[name] = value

        intent = Intent(slots=merged, templates=tuple(accepted))
        logger.debug(
            "utterance_matched",
            extra={"templates": list(accepted), "slots": sorted(merged)},
        )
        return intent

    def _split_clauses(self, tokens: Sequence[Token]) -> list[list[Token]]:
        clauses: list[list[Token]] = []
        current: list[Token] = []
        for tok in tokens:
            if tok.is_sentence_boundary:
                clauses.append(current)
                current = []
            elif not tok.is_punctuation:
                current.append(tok)
        clauses.append(current)
        return [
            c for c in clauses
            if c and not all(t.kind == TokenKind.WORD and t.text in WAKE_WORDS for t in c)
        ]

    def _match_clause(self, clause: list[Token]) -> tuple[str, dict[str, SlotValue]]:
        misses = _MissTracker()
        for template in self._templates:
            misses.template = template.name
            for position, slots in self._walk(template.elements, 0, clause, 0, {}, misses):
                if position == len(clause):
                    return template.name, slots
                misses.miss(position, _END, clause[position], _MissTracker.OPTIONAL)

        best = misses.best
        clause_text = " ".join(t.text for t in clause)
        if best is not None and best.slot is not None and best.token is not None:
            raise SlotTypeMismatchError(
                slot=best.slot.name,
                expected_kind=best.slot.kind.value,
                actual_kind=best.token.kind.value,
                actual_text=best.token.text,
                template=best.template,
            )
        raise NoTemplateMatchedError(
            clause=clause_text,
            best_template=best.template if best else None,
            matched_tokens=best.position if best else 0,
            expected=best.expected if best else None,
        )

    def _walk(
        self,
        elements: tuple[Element, ...],
        index: int,
        tokens: list[Token],
        position: int,
        slots: dict[str, SlotValue],
        misses: _MissTracker,
        group_start: int | None = None,
    ) -> Iterator[tuple[int, dict[str, SlotValue]]]:
        """Yield (position, slots) for every way ``elements[index:]`` can match.

        ``group_start`` is where the enclosing optional group began; a miss
        before the group consumed anything only means the group is absent.
        """
        if index == len(elements):
            yield position, slots
            return

        element = elements[index]
        token = tokens[position] if position < len(tokens) else None
        uncommitted = group_start is not None and position == group_start

        if isinstance(element, Group):
            for inner_pos, inner_slots in self._walk(
                element.elements, 0, tokens, position, slots, misses, position
            ):
                yield from self._walk(
                    elements, index + 1, tokens, inner_pos, inner_slots, misses, group_start
                )
            yield from self._walk(elements, index + 1, tokens, position, slots, misses, group_start)
            return

        if isinstance(element, Literal):
            if token is not None and token.kind == TokenKind.WORD and token.text in element.words:
                yield from self._walk(
                    elements, index + 1, tokens, position + 1, slots, misses, group_start
                )
            else:
                rank = _MissTracker.OPTIONAL if element.optional or uncommitted else _MissTracker.REQUIRED
                misses.miss(position, element.describe(), token, rank)
            if element.optional:
                yield from self._walk(elements, index + 1, tokens, position, slots, misses, group_start)
            return

        if token is not None and self._accepts(element, token):
            filled = dict(slots)
            filled[element.name] = SlotValue(
                name=element.name, text=token.text, kind=token.kind, span=token.span
            )
            yield from self._walk(elements, index + 1, tokens, position + 1, filled, misses, group_start)
        elif uncommitted:
            misses.miss(position, element.describe(), token, _MissTracker.OPTIONAL)
        elif token is not None and token.kind != element.kind:
            misses.miss(position, element.describe(), token, _MissTracker.SLOT, element)
        else:
            misses.miss(position, element.describe(), token, _MissTracker.REQUIRED)

    def _accepts(self, element: Slot, token: Token) -> bool:
        if token.kind != element.kind:
            return False
        # Free-text slots never swallow a template keyword
        return element.kind != TokenKind.WORD or token.text not in self._keywords


_default_matcher = GrammarMatcher()


def match(tokens: Sequence[Token]) -> Intent:
    """Match tokens against the built-in templates."""
    return _default_matcher.match(tokens)
