"""Tests for invoicemerge.export.document_json — versioned JSON payloads."""

import json

import pytest
from conftest import item, make_document, make_fragment, upstream_dict

from invoicemerge.export import deserialize_document, serialize_document, write_json
from invoicemerge.models import FragmentKind, InputShapeError, InvoiceRecord


def _doc():
    return make_document(
        [
            make_fragment("发票", 100, 200, width=21, kind=FragmentKind.row_merged),
            make_fragment(
                "壹佰", 500, 21, height=11, kind=FragmentKind.column_merged, baseline_y=10
            ),
        ],
        source="invoice.pdf",
    )


class TestSerializeDocument:
    def test_layout(self):
        data = serialize_document(_doc())
        assert data["version"] == 1
        assert data["source"] == "invoice.pdf"
        assert "record" not in data
        content = data["document"]["pages"][0]["content"]
        assert [c["str"] for c in content] == ["发票", "壹佰"]
        assert content[1]["baselineY"] == 10

    def test_with_record(self):
        data = serialize_document(_doc(), InvoiceRecord(invoice_number="98765432"))
        assert data["record"]["invoiceNumber"] == "98765432"

    def test_round_trip(self):
        record = InvoiceRecord(tax_amount="130.00")
        doc, again = deserialize_document(serialize_document(_doc(), record))
        assert doc == _doc()
        assert again == record


class TestDeserializeDocument:
    def test_bare_upstream_dict(self):
        doc, record = deserialize_document(upstream_dict([item("发", 100, 200)]))
        assert doc.pages[0].texts() == ["发"]
        assert record is None

    def test_newer_version_rejected(self):
        data = serialize_document(_doc())
        data["version"] = 99
        with pytest.raises(InputShapeError, match="version"):
            deserialize_document(data)

    def test_non_object_payload(self):
        with pytest.raises(InputShapeError, match="JSON object"):
            deserialize_document([1, 2])

    def test_malformed_document(self):
        with pytest.raises(InputShapeError):
            deserialize_document({"version": 1, "document": {"pages": [{}]}})


class TestWriteJson:
    def test_utf8_unescaped(self, tmp_path):
        path = write_json(tmp_path / "nested" / "doc.json", serialize_document(_doc()))
        text = path.read_text(encoding="utf-8")
        assert "发票" in text
        assert "\\u" not in text
        assert json.loads(text)["version"] == 1
