"""Invoice field extraction from line-merged text.

After :func:`~invoicemerge.grouping.merge_lines` every line's head
fragment carries ``direct_concat``, the line's texts joined left to
right.  This module scans those strings with an ordered table of
label → value patterns and fills an :class:`InvoiceRecord`:

* invoice_number
* invoice_date (``YYYY年MM月DD日`` as printed)
* amount_excluding_tax
* tax_amount
* amount_including_tax

Assignment is first-match-wins over the whole document: once a field has
a value no later line can change it.  Lines that match nothing leave the
field empty; extraction never raises.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from ..models import Document, InvoiceRecord

log = logging.getLogger(__name__)

# ASCII digits only; ``\d`` would also accept full-width and other
# Unicode digits.
_AMOUNT = r"([0-9]+(?:\.[0-9]{2})?)"


@dataclass(frozen=True)
class FieldRule:
    """One label → value pattern.

    Capture group *i* feeds ``fields[i]``.  With ``whole_line`` the
    pattern must match the entire line text.
    """

    name: str
    fields: Tuple[str, ...]
    pattern: "re.Pattern[str]"
    whole_line: bool = False

    def applies(self, record: InvoiceRecord) -> bool:
        """True while at least one target field is unset."""
        return any(not getattr(record, f) for f in self.fields)

    def match(self, text: str) -> Optional["re.Match[str]"]:
        if self.whole_line:
            return self.pattern.fullmatch(text)
        return self.pattern.search(text)

    def apply(self, record: InvoiceRecord, text: str) -> List[str]:
        """Fill unset target fields from *text*; return the names filled."""
        if not self.applies(record):
            return []
        m = self.match(text)
        if not m:
            return []
        filled = []
        for i, name in enumerate(self.fields, start=1):
            value = m.group(i)
            if value and not getattr(record, name):
                setattr(record, name, value)
                filled.append(name)
        return filled


# Order matters: rules run in this order against each line.
FIELD_RULES: List[FieldRule] = [
    FieldRule(
        "invoice_number",
        ("invoice_number",),
        re.compile(
            r"(?:发\s*票\s*号\s*码|发\s*票\s*号|票\s*号)\s*[:：]?\s*([A-Za-z0-9]+)"
        ),
    ),
    FieldRule(
        "invoice_date",
        ("invoice_date",),
        re.compile(
            r"(?:开\s*票\s*日\s*期|开\s*票\s*时\s*间|日\s*期)\s*[:：]?\s*"
            r"([0-9]{4}年[0-9]{1,2}月[0-9]{1,2}日)"
        ),
    ),
    FieldRule(
        "amount_excluding_tax",
        ("amount_excluding_tax",),
        re.compile(r"(?:不含税金额|不含税价|金额)[:：]?\s*[￥$]?\s*" + _AMOUNT),
    ),
    FieldRule(
        "tax_amount",
        ("tax_amount",),
        re.compile(r"(?:税额|增值税)[:：]?\s*[￥$]?\s*" + _AMOUNT),
    ),
    # Totals row of a VAT invoice: 合计¥<excl>¥<tax>.
    FieldRule(
        "totals_line",
        ("amount_excluding_tax", "tax_amount"),
        re.compile(r"合计¥" + _AMOUNT + r"¥" + _AMOUNT),
        whole_line=True,
    ),
    FieldRule(
        "amount_including_tax",
        ("amount_including_tax",),
        re.compile(r"(?:含\s*税\s*金\s*额|价\s*税\s*合\s*计).*?[￥$]?\s*" + _AMOUNT),
    ),
]


def extract_fields_from_lines(
    lines: Iterable[str],
    rules: List[FieldRule] | None = None,
) -> InvoiceRecord:
    """Apply *rules* to each line text in order, first match wins."""
    if rules is None:
        rules = FIELD_RULES
    record = InvoiceRecord()
    for text in lines:
        if not text:
            continue
        for rule in rules:
            for name in rule.apply(record, text):
                log.debug("field %s <- %r (rule %s)", name, text, rule.name)
        if record.is_complete():
            break
    return record


def extract_invoice_fields(
    document: Document,
    rules: List[FieldRule] | None = None,
) -> InvoiceRecord:
    """Scan every line head of a line-merged *document* for invoice fields.

    Fragments are visited in page then array order; only those with a
    non-empty ``direct_concat`` are considered.  The line merge has
    already rewritten each page in reading order (top line first), so
    first-match-wins follows that order rather than the order the merge
    passes left the fragments in.
    """
    lines = (frag.direct_concat for _, frag in document.iter_fragments())
    record = extract_fields_from_lines((t for t in lines if t), rules)
    missing = record.missing_fields()
    if missing:
        log.info("invoice fields not found: %s", ", ".join(missing))
    return record
