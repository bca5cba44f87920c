"""
Tests for the output classifier.
"""

import pytest

from labbook.classifier import OutputDescriptor, OutputKind, classify


class TestClassifyInference:
    """Kind inference without a hint."""

    @pytest.mark.parametrize("value,text", [
        (None, "null"),
        (True, "true"),
        (2.0, "2"),
        (0.25, "0.25"),
        ("ACGT", "ACGT"),
    ])
    def test_scalars_are_text(self, value, text):
        out = classify(value)
        assert out.kind == OutputKind.TEXT
        assert out.data == text

    def test_list_of_objects_is_table(self):
        rows = [{"a": 1.0}, {"a": 2.0}]
        out = classify(rows)
        assert out.kind == OutputKind.TABLE
        assert out.data == rows

    def test_list_of_lists_is_table(self):
        out = classify([[1.0, 2.0], [3.0, 4.0]])
        assert out.kind == OutputKind.TABLE

    def test_flat_list_is_json_text(self):
        out = classify([1.0, "a"])
        assert out.kind == OutputKind.TEXT
        assert out.data == '[\n  1,\n  "a"\n]'

    def test_empty_list_is_text(self):
        assert classify([]).data == "[]"

    def test_alignment(self):
        value = {"aligned_query": "AC-T", "aligned_target": "ACGT", "score": 3.0}
        out = classify(value)
        assert out.kind == OutputKind.ALIGNMENT
        assert out.data is value

    def test_alignment_needs_both_fields(self):
        out = classify({"aligned_query": "ACGT"})
        assert out.kind == OutputKind.TEXT

    def test_summary_object_is_single_row_table(self):
        """An object with mean or count renders as a one-row table."""
        value = {"mean": 2.0, "count": 3.0}
        out = classify(value)
        assert out.kind == OutputKind.TABLE
        assert out.data == [value]

    def test_count_only_summary(self):
        assert classify({"count": 0.0}).kind == OutputKind.TABLE

    def test_plain_object_is_json_text(self):
        out = classify({"name": "x"})
        assert out.kind == OutputKind.TEXT
        assert out.data == '{\n  "name": "x"\n}'


class TestClassifyHints:
    """Explicit hints from display(value, kind)."""

    def test_text_hint_stringifies(self):
        out = classify([1.0, 2.0], "text")
        assert out.kind == OutputKind.TEXT
        assert out.data == "[\n  1,\n  2\n]"

    def test_table_hint_passes_value_through(self):
        out = classify({"a": 1.0}, "table")
        assert out.kind == OutputKind.TABLE
        assert out.data == {"a": 1.0}

    def test_sequence_hint(self):
        out = classify("ACGT", "sequence")
        assert out.kind == OutputKind.SEQUENCE
        assert out.data == "ACGT"

    def test_hint_is_case_insensitive(self):
        assert classify("x", "Alignment").kind == OutputKind.ALIGNMENT

    def test_unknown_hint_falls_back_to_inference(self):
        out = classify({"mean": 1.0}, "chart")
        assert out.kind == OutputKind.TABLE

    def test_non_string_hint_ignored(self):
        assert classify(3.0, 42.0).data == "3"


class TestOutputDescriptor:
    """Descriptor serialization."""

    def test_to_dict_and_back(self):
        out = OutputDescriptor(kind=OutputKind.TABLE, data=[{"a": 1.0}], timing_ms=12)
        data = out.to_dict()
        assert data == {"kind": "table", "data": [{"a": 1.0}], "timing_ms": 12}
        assert OutputDescriptor.from_dict(data) == out

    def test_error_constructor(self):
        out = OutputDescriptor.error("bad")
        assert out.is_error
        assert out.kind == OutputKind.ERROR
        assert out.data == "bad"
        assert out.timing_ms == 0
