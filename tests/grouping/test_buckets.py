"""Tests for invoicemerge.grouping.buckets — coordinate quantisation."""

import pytest
from conftest import make_fragment

from invoicemerge.grouping import bucket_by, quantize


class TestQuantize:
    @pytest.mark.parametrize(
        "value,bucket,expected",
        [
            (0.0, 5.0, 0.0),
            (7.4, 5.0, 5.0),
            (7.5, 5.0, 10.0),
            (2.5, 5.0, 5.0),
            (-2.5, 5.0, 0.0),
            (-2.6, 5.0, -5.0),
            (21.0, 8.0, 24.0),
            (1.25, 2.5, 2.5),
            (501.0, 2.0, 502.0),
        ],
    )
    def test_halves_round_up(self, value, bucket, expected):
        assert quantize(value, bucket) == pytest.approx(expected)

    @pytest.mark.parametrize("bucket", [0.0, -1.0])
    def test_bucket_must_be_positive(self, bucket):
        with pytest.raises(ValueError):
            quantize(10.0, bucket)


class TestBucketBy:
    def test_keys_ascending(self):
        frags = [make_fragment(t, 0, y) for t, y in [("c", 40), ("a", 0), ("b", 21)]]
        groups = bucket_by(frags, lambda f: f.y, 5.0)
        assert list(groups) == [0.0, 20.0, 40.0]

    def test_members_keep_input_order(self):
        frags = [make_fragment("x", 30, 51), make_fragment("y", 10, 49)]
        groups = bucket_by(frags, lambda f: f.y, 5.0)
        assert [f.text for f in groups[50.0]] == ["x", "y"]

    def test_empty(self):
        assert bucket_by([], lambda f: f.y, 5.0) == {}
