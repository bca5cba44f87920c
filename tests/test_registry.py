"""
Tests for NamespaceRegistry and the built-in library.
"""

import pytest

from labbook import CellInterpreter, Context, NamespaceRegistry, OutputKind
from labbook.errors import FunctionThrow, UnknownFunction, UnknownNamespace
from labbook.library import align_dna, default_registry, describe, gc_content, reverse_complement
from labbook.registry import load_registry


class TestNamespaceRegistry:
    """Test cases for the registry."""

    def test_register_direct_and_decorator(self):
        reg = NamespaceRegistry()
        reg.register("Math", "double", lambda x: x * 2)

        @reg.register("Math")
        def triple(x):
            return x * 3

        assert reg.lookup("Math", "double")(2) == 4
        assert reg.lookup("Math", "triple")(2) == 6
        assert reg.functions("Math") == ["double", "triple"]

    def test_lookup_errors(self):
        reg = NamespaceRegistry()
        reg.add_namespace("Stats", {"mean": lambda xs: 0})
        with pytest.raises(UnknownNamespace):
            reg.lookup("Seq", "gc_content")
        with pytest.raises(UnknownFunction):
            reg.lookup("Stats", "median")

    def test_add_namespace_rejects_non_callables(self):
        reg = NamespaceRegistry()
        with pytest.raises(TypeError):
            reg.add_namespace("Bad", {"x": 1})

    def test_namespaces_keep_order(self):
        reg = default_registry()
        assert reg.namespaces() == ["Stats", "Seq", "Align", "Core"]
        assert "Stats" in reg

    def test_load_registry_factory(self):
        reg = load_registry("labbook.library:default_registry")
        assert "mean" in reg.functions("Stats")

    def test_load_registry_bad_path(self):
        with pytest.raises(ValueError):
            load_registry("labbook.library")


class TestBuiltinLibrary:
    """The default function library."""

    def test_describe_is_summary(self):
        summary = describe([1.0, 2.0, 3.0])
        assert summary["count"] == 3
        assert summary["mean"] == 2.0
        assert summary["median"] == 2.0

    def test_gc_content(self):
        assert gc_content("ATGC") == 0.5
        assert gc_content("") == 0.0

    def test_reverse_complement(self):
        assert reverse_complement("aaccg") == "CGGTT"

    def test_invalid_dna(self):
        with pytest.raises(ValueError, match="invalid DNA characters: XZ"):
            gc_content("ACXZ")

    def test_align_identical(self):
        result = align_dna("ACGT", "ACGT")
        assert result["aligned_query"] == "ACGT"
        assert result["aligned_target"] == "ACGT"
        assert result["score"] == 8
        assert result["identity"] == 1.0

    def test_align_with_gap(self):
        result = align_dna("ACGT", "AGT")
        assert result["aligned_query"] == "ACGT"
        assert result["aligned_target"].replace("-", "") == "AGT"
        assert len(result["aligned_target"]) == 4

    def test_align_unknown_mode(self):
        with pytest.raises(ValueError, match="unknown alignment mode"):
            align_dna("A", "A", "local")

    def test_library_through_interpreter(self):
        """Library results classify the way the notebook shows them."""
        interp = CellInterpreter(default_registry())

        out, _ = interp.run("Stats.describe([1, 2, 3])", Context())
        assert out.kind == OutputKind.TABLE
        assert out.data[0]["count"] == 3.0

        out, _ = interp.run("Align.align_dna('ACGT', 'ACGT')", Context())
        assert out.kind == OutputKind.ALIGNMENT

        out, _ = interp.run("Core.version()", Context())
        assert out.data == "0.1.0"

    def test_library_errors_surface_as_function_throw(self):
        interp = CellInterpreter(default_registry())
        with pytest.raises(FunctionThrow, match="data must contain only numbers"):
            interp.run("Stats.mean(['a'])", Context())
        with pytest.raises(FunctionThrow, match="oops"):
            interp.run("Core.fail('oops')", Context())
