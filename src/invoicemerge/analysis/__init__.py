from .invoice_fields import (
    FIELD_RULES,
    FieldRule,
    extract_fields_from_lines,
    extract_invoice_fields,
)

__all__ = [
    "FIELD_RULES",
    "FieldRule",
    "extract_fields_from_lines",
    "extract_invoice_fields",
]
