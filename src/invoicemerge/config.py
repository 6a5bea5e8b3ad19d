from dataclasses import dataclass


class ConfigValidationError(ValueError):
    """Raised when a MergeConfig field is out of its valid range."""


def _check_range(
    name: str, value: float, lo: float, hi: float, inclusive: bool = True
) -> None:
    if inclusive:
        if not (lo <= value <= hi):
            raise ConfigValidationError(f"{name}={value} out of range [{lo}, {hi}]")
    else:
        if not (lo < value < hi):
            raise ConfigValidationError(f"{name}={value} out of range ({lo}, {hi})")


def _check_positive(name: str, value: float) -> None:
    if value <= 0:
        raise ConfigValidationError(f"{name}={value} must be > 0")


def _check_non_negative(name: str, value: float) -> None:
    if value < 0:
        raise ConfigValidationError(f"{name}={value} must be >= 0")


EXTRACT_MODES = ("chars", "words")


@dataclass
class MergeConfig:
    """Tunables for the five-pass text reassembly and line merge."""

    # ── Bucket widths (page units) ─────────────────────────────────────
    # Row quantisation for pass 1 (loose same-row join).
    row_bucket_first: float = 5.0
    # Column quantisation for pass 2 (strict vertical stacks).
    column_bucket_first: float = 2.0
    # Column quantisation for pass 3 (relative vertical stacks).
    column_bucket_second: float = 5.0
    # Row quantisation for pass 4 (single-character pairs).
    row_bucket_second: float = 5.0
    # Row quantisation for pass 5 (character-spaced runs).
    row_bucket_third: float = 2.5
    # Row quantisation for the final line merge.
    line_bucket: float = 8.0

    # ── Merge thresholds ───────────────────────────────────────────────
    # Fragments with |angle| above this are treated as rotated.
    rotation_tolerance_deg: float = 0.1
    # Heights must differ by less than this fraction of the taller one.
    height_similarity_ratio: float = 0.5
    # Pass 1: merge when the signed horizontal gap is below this.
    first_pass_max_gap: float = 2.0
    # Pass 4: |distance - char height| < mult * char height.
    second_pass_gap_tol_mult: float = 1.2
    # Pass 5: |distance - char height| < mult * char height.
    third_pass_gap_tol_mult: float = 0.2
    # Pass 2: merge when the signed vertical spacing is below this.
    column_first_max_spacing: float = 2.0
    # Pass 3: merge when |spacing| <= mult * next char height.
    column_second_spacing_mult: float = 1.2

    # ── Fragment extraction (pdfplumber) ───────────────────────────────
    # "chars" emits one fragment per glyph, "words" uses extract_words.
    extract_mode: str = "chars"
    extract_x_tolerance: float = 1.0
    extract_y_tolerance: float = 1.0
    # Clip fragment geometry to the page box.
    extract_clip_to_page: bool = True

    # ── Overlay rendering ──────────────────────────────────────────────
    overlay_outline_width: int = 1
    overlay_merged_outline_width: int = 2
    overlay_draw_text: bool = True
    overlay_font_size: int = 10
    overlay_render_dpi: int = 144

    def __post_init__(self) -> None:
        """Validate field ranges to catch misconfiguration early."""
        # -- Strictly positive floats --
        _pos_floats = [
            "row_bucket_first",
            "column_bucket_first",
            "column_bucket_second",
            "row_bucket_second",
            "row_bucket_third",
            "line_bucket",
            "second_pass_gap_tol_mult",
            "third_pass_gap_tol_mult",
            "column_second_spacing_mult",
            "extract_x_tolerance",
            "extract_y_tolerance",
        ]
        for name in _pos_floats:
            _check_positive(name, getattr(self, name))

        # -- Non-negative floats --
        _nn_floats = [
            "rotation_tolerance_deg",
            "first_pass_max_gap",
            "column_first_max_spacing",
        ]
        for name in _nn_floats:
            _check_non_negative(name, getattr(self, name))

        _check_range(
            "height_similarity_ratio",
            self.height_similarity_ratio,
            0.0,
            1.0,
            inclusive=False,
        )

        # -- Positive ints --
        _pos_ints = [
            "overlay_outline_width",
            "overlay_merged_outline_width",
            "overlay_font_size",
            "overlay_render_dpi",
        ]
        for name in _pos_ints:
            val = getattr(self, name)
            if val < 1:
                raise ConfigValidationError(f"{name}={val} must be >= 1")

        if self.extract_mode not in EXTRACT_MODES:
            raise ConfigValidationError(
                f"extract_mode={self.extract_mode!r} must be one of {EXTRACT_MODES}"
            )
