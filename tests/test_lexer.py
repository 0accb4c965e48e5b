"""
Tests for the Dis program loader: tokens, comments, whitespace and errors.
"""

import numpy as np
import pytest

from lexer import DisParseError, Lexer, assemble
from ring import Ring


class TestTokenize:
    def test_all_commands(self):
        tokens = Lexer("!*>^_{|}", "<test>").tokenize()
        assert [t.type for t in tokens] == ["HALT", "LOAD", "ROT", "JMP", "NOP", "WRITE", "OPR", "READ", "EOF"]

    def test_positions(self):
        tokens = Lexer("_\n  !", "<test>").tokenize()
        assert (tokens[0].line, tokens[0].column) == (1, 1)
        assert (tokens[1].line, tokens[1].column) == (2, 3)

    def test_comments_are_skipped(self):
        tokens = Lexer("( hello, world! )*(x)>", "<test>").tokenize()
        assert [t.value for t in tokens] == ["*", ">", ""]

    def test_comment_can_span_lines(self):
        tokens = Lexer("(a\nb\n)!", "<test>").tokenize()
        assert tokens[0].value == "!"
        assert tokens[0].line == 3

    def test_unexpected_character(self):
        with pytest.raises(DisParseError, match="<test>:1:3"):
            Lexer("__a", "<test>").tokenize()

    def test_unterminated_comment(self):
        with pytest.raises(DisParseError, match="Unterminated comment at <test>:2:1"):
            Lexer("!\n( never closed", "<test>").tokenize()


class TestAssemble:
    def test_byte_values(self):
        assert assemble("! * > ^ _ { | }") == [33, 42, 62, 94, 95, 123, 124, 125]

    def test_empty_program(self):
        assert assemble("  (nothing here)\n") == []

    def test_program_too_long_for_ring(self):
        ring = Ring(np.uint8, 10, 2)
        assert len(assemble("_" * 100, "<test>", ring)) == 100
        with pytest.raises(DisParseError, match="does not fit in 100 cells"):
            assemble("_" * 101, "<test>", ring)

    def test_command_bytes_must_fit_ring(self):
        ring = Ring(np.uint8, 2, 6)
        with pytest.raises(DisParseError, match="not representable"):
            assemble("{", "<test>", ring)
