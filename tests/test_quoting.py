"""Quoting engine tests.

Test coverage:
- Simple tokens pass through unchanged
- Empty argument keeps its position
- Backslash runs before quotes and at the end of quoted arguments
- Decoder follows the Microsoft C runtime rules
- Round trip through join_arguments / split_command_line
"""

from __future__ import annotations

import itertools

import pytest

from tool_launcher.quoting import join_arguments, quote_argument, split_command_line


# =============================================================================
# quote_argument
# =============================================================================


class TestQuoteArgument:
    """Test single-argument encoding."""

    def test_empty_argument(self):
        assert quote_argument("") == '""'

    @pytest.mark.parametrize(
        "arg",
        ["build", "-out", "/p", r"a\b", r"C:\Tools\wix.exe", "trailing\\", "a'b", "x=1;y"],
    )
    def test_simple_token_unchanged(self, arg: str):
        assert quote_argument(arg) == arg

    @pytest.mark.parametrize(
        ("arg", "expected"),
        [
            ('a"b', r'"a\"b"'),
            ('a\\"', r'"a\\\""'),
            ("a\\ b\\", r'"a\ b\\"'),
            ("has space", '"has space"'),
            ("tab\there", '"tab\there"'),
            ('"', r'"\""'),
            (" ", '" "'),
            ('C:\\Program Files\\App"x', r'"C:\Program Files\App\"x"'),
            ("C:\\Program Files\\", r'"C:\Program Files\\"'),
            ('a\\\\"b', r'"a\\\\\"b"'),
        ],
    )
    def test_quoted_forms(self, arg: str, expected: str):
        assert quote_argument(arg) == expected

    def test_backslashes_before_ordinary_char_kept(self):
        assert quote_argument("a\\\\b c") == '"a\\\\b c"'


# =============================================================================
# join_arguments
# =============================================================================


class TestJoinArguments:
    """Test command-line assembly."""

    def test_preserves_order_with_single_spaces(self):
        line = join_arguments(["build", "-out", "My App.msi", "Product.wxs"])
        assert line == 'build -out "My App.msi" Product.wxs'

    def test_empty_vector(self):
        assert join_arguments([]) == ""

    def test_empty_arguments_keep_position(self):
        assert join_arguments(["a", "", "b"]) == 'a "" b'

    def test_accepts_any_iterable(self):
        assert join_arguments(iter(["x", "y z"])) == 'x "y z"'


# =============================================================================
# split_command_line
# =============================================================================


class TestSplitCommandLine:
    """Test the Microsoft C runtime decoder."""

    @pytest.mark.parametrize(
        ("line", "expected"),
        [
            ("", []),
            ("   ", []),
            ("a b  c", ["a", "b", "c"]),
            ("a\tb", ["a", "b"]),
            ('"a b" c', ["a b", "c"]),
            ('""', [""]),
            ('a "" b', ["a", "", "b"]),
            (r"a\b", [r"a\b"]),
            (r"a\\b", [r"a\\b"]),
            (r'a\"b', ['a"b']),
            (r'a\\"b c"', ["a\\b c"]),
            (r'a\\\"b', ['a\\"b']),
            ('"a""b"', ['a"b']),
            ('a"b c"d', ["ab cd"]),
            ('"unterminated arg', ["unterminated arg"]),
        ],
    )
    def test_split(self, line: str, expected: list[str]):
        assert split_command_line(line) == expected


# =============================================================================
# Round trip
# =============================================================================


ALPHABET = ["a", " ", "\t", '"', "\\"]


def _strings(max_length: int):
    for length in range(max_length + 1):
        for chars in itertools.product(ALPHABET, repeat=length):
            yield "".join(chars)


class TestRoundTrip:
    """decode(encode(v)) == v."""

    def test_every_string_up_to_length_8(self):
        failures = [
            s for s in _strings(8)
            if split_command_line(quote_argument(s)) != [s]
        ]
        assert failures == []

    def test_argument_vectors(self):
        samples = ["", "a", " ", '"', "\\", 'a\\"', "a\\ b\\", "\t\\\\", '"\\"']
        for vector in itertools.product(samples, repeat=3):
            assert split_command_line(join_arguments(vector)) == list(vector)

    def test_program_files_path(self):
        arg = 'C:\\Program Files\\App"x'
        encoded = quote_argument(arg)
        assert encoded == '"C:\\Program Files\\App\\"x"'
        assert split_command_line(encoded) == [arg]
