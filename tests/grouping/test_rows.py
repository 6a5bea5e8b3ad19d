"""Tests for invoicemerge.grouping.rows — horizontal merge passes."""

import copy

import pytest
from conftest import make_document, make_fragment, make_page

from invoicemerge.config import MergeConfig
from invoicemerge.grouping import (
    RowMergeRule,
    can_merge_horizontally,
    merge_row,
    merge_rows,
)
from invoicemerge.grouping.rows import merge_rows_on_page
from invoicemerge.models import FragmentKind


def _texts(doc):
    return [f.text for f in doc.pages[0].fragments]


class TestCanMergeHorizontally:
    def test_first_pass_small_gap(self):
        a = make_fragment("发", 100, 200)
        b = make_fragment("票", 111, 200)
        assert can_merge_horizontally(a, b, RowMergeRule.first)

    def test_first_pass_gap_limit_exclusive(self):
        a = make_fragment("A", 0, 0)
        assert not can_merge_horizontally(
            a, make_fragment("B", 12, 0), RowMergeRule.first
        )

    def test_first_pass_overlap_merges(self):
        a = make_fragment("A", 0, 0)
        assert can_merge_horizontally(a, make_fragment("B", 5, 0), RowMergeRule.first)

    def test_rotated_never_merges(self):
        a = make_fragment("A", 0, 0, angle=90)
        b = make_fragment("B", 10, 0, angle=90)
        for rule in RowMergeRule:
            assert not can_merge_horizontally(a, b, rule)

    def test_rotation_below_tolerance_ignored(self):
        a = make_fragment("A", 0, 0, angle=0.05)
        b = make_fragment("B", 10, 0)
        assert can_merge_horizontally(a, b, RowMergeRule.first)

    def test_heights_must_be_similar(self):
        a = make_fragment("A", 0, 0, height=10)
        b = make_fragment("B", 10, 0, height=4)
        assert not can_merge_horizontally(a, b, RowMergeRule.first)

    def test_second_pass_char_spaced_pair(self):
        a = make_fragment("A", 0, 0)
        b = make_fragment("B", 20, 0)  # gap of one char height
        assert can_merge_horizontally(a, b, RowMergeRule.second)

    def test_second_pass_requires_single_chars(self):
        a = make_fragment("AB", 0, 0, width=20)
        b = make_fragment("C", 30, 0)
        assert not can_merge_horizontally(a, b, RowMergeRule.second)

    def test_second_pass_gap_too_wide(self):
        a = make_fragment("A", 0, 0)
        b = make_fragment("B", 35, 0)  # gap 25: |25 - 10| >= 12
        assert not can_merge_horizontally(a, b, RowMergeRule.second)

    def test_third_pass_tight_tolerance(self):
        a = make_fragment("AB", 0, 0, width=20)
        assert can_merge_horizontally(
            a, make_fragment("CD", 31, 0, width=20), RowMergeRule.third
        )
        assert not can_merge_horizontally(
            a, make_fragment("CD", 35, 0, width=20), RowMergeRule.third
        )

    def test_third_pass_measures_absolute_distance(self):
        a = make_fragment("AB", 0, 0, width=20)
        b = make_fragment("CD", 10, 0, width=20)  # overlaps by one char height
        assert can_merge_horizontally(a, b, RowMergeRule.third)

    def test_zero_height_pair_not_merged(self):
        a = make_fragment("A", 0, 0, height=0.0)
        b = make_fragment("B", 1, 0, height=0.0)
        # heights 0 and 0 are never "similar" (0 < 0 is False)
        assert not can_merge_horizontally(a, b, RowMergeRule.third)

    def test_accepts_plain_string_rule(self):
        a = make_fragment("A", 0, 0)
        b = make_fragment("B", 10, 0)
        assert can_merge_horizontally(a, b, "first")

    def test_config_threshold(self):
        a = make_fragment("A", 0, 0)
        b = make_fragment("B", 14, 0)
        cfg = MergeConfig(first_pass_max_gap=5.0)
        assert can_merge_horizontally(a, b, RowMergeRule.first, cfg)


class TestMergeRow:
    def test_merged_geometry(self):
        row = [make_fragment("发", 100, 200), make_fragment("票", 111, 200)]
        (merged,) = merge_row(row, RowMergeRule.first)
        assert merged.text == "发票"
        assert merged.x == 100
        assert merged.y == 200
        assert merged.width == 21
        assert merged.height == 10
        assert merged.kind is FragmentKind.row_merged

    def test_chain_is_transitive(self):
        row = [make_fragment(c, i * 10, 0) for i, c in enumerate("ABCD")]
        (merged,) = merge_row(row, RowMergeRule.first)
        assert merged.text == "ABCD"
        assert merged.width == 40

    def test_break_starts_new_run(self):
        row = [
            make_fragment("A", 0, 0),
            make_fragment("B", 10, 0),
            make_fragment("C", 50, 0),
            make_fragment("D", 60, 0),
        ]
        assert [f.text for f in merge_row(row, RowMergeRule.first)] == ["AB", "CD"]

    def test_second_pass_only_forms_pairs(self):
        row = [make_fragment(c, i * 20, 0) for i, c in enumerate("ABCD")]
        assert [f.text for f in merge_row(row, RowMergeRule.second)] == ["AB", "CD"]

    def test_attributes_from_left_fragment(self):
        row = [
            make_fragment("A", 0, 0, font_name="SimSun", font_size=9.0),
            make_fragment("B", 10, 1, font_name="KaiTi", font_size=12.0),
        ]
        (merged,) = merge_row(row, RowMergeRule.first)
        assert merged.font_name == "SimSun"
        assert merged.font_size == 9.0
        assert merged.y == 0

    def test_single_and_empty(self):
        assert merge_row([], RowMergeRule.first) == []
        one = [make_fragment("A", 0, 0)]
        assert merge_row(one, RowMergeRule.first) == one

    def test_inputs_not_modified(self):
        row = [make_fragment("A", 0, 0), make_fragment("B", 10, 0)]
        before = copy.deepcopy(row)
        merge_row(row, RowMergeRule.first)
        assert row == before


class TestMergeRows:
    def test_same_bucket_within_rounding(self):
        doc = make_document([make_fragment("A", 0, 52.4), make_fragment("B", 10, 47.6)])
        assert _texts(merge_rows(doc, 5.0, RowMergeRule.first)) == ["AB"]

    def test_different_buckets_not_merged(self):
        doc = make_document([make_fragment("A", 0, 52.5), make_fragment("B", 10, 47.4)])
        out = merge_rows(doc, 5.0, RowMergeRule.first)
        assert sorted(_texts(out)) == ["A", "B"]

    def test_sorted_by_x_before_merge(self):
        doc = make_document([make_fragment("票", 111, 200), make_fragment("发", 100, 200)])
        assert _texts(merge_rows(doc, 5.0, RowMergeRule.first)) == ["发票"]

    def test_rows_in_ascending_key_order(self):
        doc = make_document([make_fragment("low", 0, 300), make_fragment("high", 0, 100)])
        assert _texts(merge_rows(doc, 5.0, RowMergeRule.first)) == ["high", "low"]

    def test_blank_fragments_dropped(self):
        doc = make_document(
            [make_fragment("A", 0, 0), make_fragment(" ", 10, 0), make_fragment("", 20, 0)]
        )
        assert _texts(merge_rows(doc, 5.0, RowMergeRule.first)) == ["A"]

    def test_column_merged_set_aside_first(self):
        col = make_fragment(
            "壹佰", 10, 21, height=11, kind=FragmentKind.column_merged, baseline_y=10
        )
        doc = make_document(
            [make_fragment("A", 0, 21), col, make_fragment("B", 20, 21)]
        )
        out = merge_rows(doc, 5.0, RowMergeRule.first)
        assert out.pages[0].fragments[0] == col
        assert _texts(out) == ["壹佰", "A", "B"]

    def test_rotated_untouched(self):
        rotated = [make_fragment(c, i * 10, 0, angle=90) for i, c in enumerate("AB")]
        doc = make_document(rotated)
        out = merge_rows(doc, 5.0, RowMergeRule.first)
        assert out.pages[0].fragments == rotated

    def test_row_merged_stays_row_merged(self):
        first = make_fragment("AB", 0, 0, width=20, kind=FragmentKind.row_merged)
        doc = make_document([first, make_fragment("CD", 31, 0, width=20)])
        (merged,) = merge_rows(doc, 2.5, RowMergeRule.third).pages[0].fragments
        assert merged.text == "ABCD"
        assert merged.kind is FragmentKind.row_merged

    def test_input_document_not_mutated(self):
        doc = make_document([make_fragment("A", 0, 0), make_fragment("B", 10, 0)])
        before = copy.deepcopy(doc)
        merge_rows(doc, 5.0, RowMergeRule.first)
        assert doc == before

    def test_pages_independent_and_links_kept(self):
        doc = make_document([make_fragment("A", 0, 0)], [make_fragment("B", 10, 0)])
        doc.pages[1].links = ["https://example.com"]
        out = merge_rows(doc, 5.0, RowMergeRule.first)
        assert [p.texts() for p in out.pages] == [["A"], ["B"]]
        assert out.pages[1].links == ["https://example.com"]

    def test_page_level_helper(self):
        page = make_page([make_fragment("A", 0, 0), make_fragment("B", 10, 0)])
        assert merge_rows_on_page(page, 5.0, RowMergeRule.first).texts() == ["AB"]

    def test_unknown_rule_rejected(self):
        with pytest.raises(ValueError):
            merge_rows(make_document([]), 5.0, "fourth")
