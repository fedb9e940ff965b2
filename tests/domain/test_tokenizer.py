"""Tests for the utterance tokenizer (showroom_kernel/domain/tokenizer.py)."""

import pytest

from showroom_kernel.domain.tokenizer import Span, TokenKind, normalize, tokenize


def kinds(tokens):
    return [t.kind for t in tokens]


def texts(tokens):
    return [t.text for t in tokens]


class TestTokenKinds:
    def test_product_code_is_upper_cased(self):
        (tok,) = tokenize("afl-sof-103")
        assert tok.kind == TokenKind.PRODUCT_CODE
        assert tok.text == "AFL-SOF-103"

    def test_percent_drops_percent_sign(self):
        (tok,) = tokenize("10%")
        assert tok.kind == TokenKind.PERCENT
        assert tok.text == "10"

    def test_decimal_percent(self):
        (tok,) = tokenize("12.5%")
        assert tok.kind == TokenKind.PERCENT
        assert tok.text == "12.5"

    def test_negative_percent_keeps_minus(self):
        tokens = tokenize("a -5% discount")
        assert kinds(tokens) == [TokenKind.WORD, TokenKind.PERCENT, TokenKind.WORD]
        assert tokens[1].text == "-5"
        assert tokens[1].span == Span(2, 5)

    @pytest.mark.parametrize("spoken", ["minus 5%", "Negative 5%", "minus -5%"])
    def test_spoken_sign_joins_percent(self, spoken):
        (tok,) = tokenize(spoken)
        assert tok.kind == TokenKind.PERCENT
        assert tok.text == "-5"
        assert tok.span == Span(0, len(spoken))

    def test_hyphen_after_digit_is_not_a_sign(self):
        tokens = tokenize("10-20%")
        assert texts(tokens) == ["10", "-", "20"]
        assert tokens[2].kind == TokenKind.PERCENT

    def test_long_digit_run_is_phone(self):
        (tok,) = tokenize("01754031344")
        assert tok.kind == TokenKind.PHONE_DIGITS

    def test_short_digit_run_is_number(self):
        (tok,) = tokenize("2")
        assert tok.kind == TokenKind.NUMBER

    @pytest.mark.parametrize("digits,kind", [
        ("123456789", TokenKind.NUMBER),
        ("1234567890", TokenKind.PHONE_DIGITS),
        ("123456789012345", TokenKind.PHONE_DIGITS),
        ("1234567890123456", TokenKind.NUMBER),
    ])
    def test_phone_length_boundaries(self, digits, kind):
        (tok,) = tokenize(digits)
        assert tok.kind == kind

    def test_number_words_become_numbers(self):
        tokens = tokenize("a two seater")
        assert kinds(tokens) == [TokenKind.WORD, TokenKind.NUMBER, TokenKind.WORD]
        assert tokens[1].text == "2"

    def test_words_lower_cased(self):
        assert texts(tokenize("Mahogany LACQUER")) == ["mahogany", "lacquer"]

    def test_code_inside_longer_word_is_not_a_code(self):
        tokens = tokenize("AFL-SOF-10345")
        assert TokenKind.PRODUCT_CODE not in kinds(tokens)


class TestStructure:
    def test_whitespace_never_tokenized(self):
        assert tokenize("   \t\n ") == ()

    def test_sentence_stops_normalized(self):
        tokens = tokenize("find! buy? sell.")
        stops = [t for t in tokens if t.is_sentence_boundary]
        assert len(stops) == 3
        assert all(t.text == "." for t in stops)

    def test_comma_is_punctuation(self):
        tokens = tokenize("AFL-SOF-103, a 2-seater")
        punct = [t.text for t in tokens if t.is_punctuation]
        assert punct == [",", "-"]

    def test_spans_point_into_original(self):
        utterance = "Buy  AFL-SOF-103"
        tokens = tokenize(utterance)
        assert tokens[1].span == Span(5, 16)
        assert utterance[tokens[1].span.start:tokens[1].span.end] == "AFL-SOF-103"

    def test_tokens_are_immutable(self):
        (tok,) = tokenize("buy")
        with pytest.raises(AttributeError):
            tok.text = "sell"

    def test_spacing_does_not_change_kinds_or_texts(self):
        a = tokenize("buy AFL-SOF-103 with a 10% discount")
        b = tokenize("  buy   AFL-SOF-103  with a 10%   discount ")
        assert texts(a) == texts(b)
        assert kinds(a) == kinds(b)

    def test_normalize_collapses_and_lowers(self):
        assert normalize("  Find   Customer ") == "find customer"

    def test_example_utterance(self, example_utterance):
        tokens = [t for t in tokenize(example_utterance) if not t.is_punctuation]
        assert [t.kind for t in tokens if t.kind != TokenKind.WORD] == [
            TokenKind.PHONE_DIGITS,
            TokenKind.PRODUCT_CODE,
            TokenKind.NUMBER,
            TokenKind.PERCENT,
        ]
