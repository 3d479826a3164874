"""Tests for SymbolRef and path normalization."""

from __future__ import annotations

import pytest

from tracegraph.ref import SymbolRef, file_ref, normalize_repo_path


class TestSymbolRef:
    def test_file_ref_renders_path(self) -> None:
        ref = SymbolRef(file_path="src/a.ts")
        assert str(ref) == "src/a.ts"
        assert ref.is_file
        assert ref.name == "a.ts"

    def test_child_renders_hash_key(self) -> None:
        ref = SymbolRef(file_path="src/a.ts").child("Widget")
        assert str(ref) == "src/a.ts#Widget"
        assert not ref.is_file
        assert ref.name == "Widget"

    def test_parse_symbol(self) -> None:
        assert SymbolRef.parse("src/a.ts#Widget") == SymbolRef("src/a.ts", "Widget")

    def test_parse_file(self) -> None:
        assert SymbolRef.parse("src/a.ts") == SymbolRef("src/a.ts")

    def test_parse_trailing_separator_is_file(self) -> None:
        assert SymbolRef.parse("src/a.ts#") == SymbolRef("src/a.ts")

    def test_round_trip_through_str(self) -> None:
        ref = SymbolRef("lib/x.js", "run")
        assert SymbolRef.parse(str(ref)) == ref

    def test_frozen(self) -> None:
        ref = SymbolRef("a.ts")
        with pytest.raises(AttributeError):
            ref.file_path = "b.ts"  # type: ignore[misc]

    def test_file_ref_normalizes(self) -> None:
        assert file_ref("/src//lib/../a.ts") == SymbolRef("src/a.ts")


class TestNormalizeRepoPath:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("/src/a.ts", "src/a.ts"),
            ("./src/a.ts", "src/a.ts"),
            ("src//a.ts", "src/a.ts"),
            ("src/lib/../a.ts", "src/a.ts"),
            ("src\\a.ts", "src/a.ts"),
            (".", ""),
            ("", ""),
        ],
    )
    def test_normalize(self, raw: str, expected: str) -> None:
        assert normalize_repo_path(raw) == expected
