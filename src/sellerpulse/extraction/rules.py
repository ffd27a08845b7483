"""Row classification rules for sheet CSV exports.

Seller dashboards are hand-maintained spreadsheets: a date header row is
followed by a mix of boilerplate rows, category marker rows ("GMV",
"Items Sold") whose data sits on the next pack/product row, and plain metric
rows ("Orders", "Conv. Rate", ...).  Each row is matched against
:data:`ROW_RULES` top to bottom; the first rule whose predicate holds decides
what happens to the row.

The scan carries a two-state machine: ``IDLE`` (no category waiting for its
data row) and ``PENDING`` (a category marker was seen and the next matching
pack/product row supplies its values).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, FrozenSet, List, Optional, Sequence, Tuple

from ..common.config_validator import ExtractionConfig
from ..metric_registry_utils import match_exact


class ScanPhase(Enum):
    IDLE = "idle"
    PENDING = "pending"


@dataclass(frozen=True)
class ScanState:
    phase: ScanPhase = ScanPhase.IDLE
    category: Optional[str] = None

    @classmethod
    def idle(cls) -> "ScanState":
        return cls()

    @classmethod
    def pending(cls, category: str) -> "ScanState":
        return cls(ScanPhase.PENDING, category)

    @property
    def is_pending(self) -> bool:
        return self.phase is ScanPhase.PENDING


@dataclass(frozen=True)
class RowView:
    """A parsed data row seen through the header's date columns.

    ``labels`` holds the non-empty text of the first two non-date cells;
    ``label`` is the primary one (the second cell wins when both are set,
    since sheets put product/pack names to the right of a section name).
    ``values`` is aligned to the header's date columns, with unparseable or
    missing cells as ``0.0``.
    """

    cells: Tuple[str, ...]
    labels: Tuple[str, ...]
    values: Tuple[float, ...]
    parsed_cells: int

    @property
    def label(self) -> str:
        return self.labels[-1] if self.labels else ""

    @property
    def is_blank(self) -> bool:
        return all(not c for c in self.cells)

    @property
    def has_numeric(self) -> bool:
        return self.parsed_cells > 0

    @property
    def has_nonzero(self) -> bool:
        return any(v != 0.0 for v in self.values)


@dataclass(frozen=True)
class RowContext:
    row: RowView
    state: ScanState
    captured: FrozenSet[str]
    config: ExtractionConfig
    filter_pack: Optional[str] = None


@dataclass(frozen=True)
class RuleOutcome:
    state: ScanState
    emit: Optional[str] = None


@dataclass(frozen=True)
class RowRule:
    name: str
    predicate: Callable[[RowContext], bool]
    action: Callable[[RowContext], RuleOutcome]


def _contains(text: str, token: str) -> bool:
    return token.casefold() in text.casefold()


def is_pack_label(label: str, config: ExtractionConfig, filter_pack: Optional[str]) -> bool:
    if not label:
        return False
    if _contains(label, config.pack_token):
        return True
    return bool(filter_pack) and label.casefold() == filter_pack.casefold()


def _has_reserved_token(label: str, config: ExtractionConfig) -> bool:
    return any(_contains(label, token) for token in config.reserved_tokens)


def _category_label(row: RowView, config: ExtractionConfig) -> Optional[str]:
    for text in row.labels:
        found = match_exact(text, config.category_labels)
        if found:
            return found
    return None


def _general_metric_label(row: RowView, config: ExtractionConfig) -> Optional[str]:
    for text in row.labels:
        found = match_exact(text, config.general_metrics)
        if found:
            return found
    return None


def _keep(ctx: RowContext) -> RuleOutcome:
    return RuleOutcome(ctx.state)


# --- predicates -------------------------------------------------------------

def _blank_row(ctx: RowContext) -> bool:
    return ctx.row.is_blank


def _boilerplate_row(ctx: RowContext) -> bool:
    if ctx.row.has_numeric:
        return False
    return any(_contains(text, skip) for text in ctx.row.labels for skip in ctx.config.skip_labels)


def _category_marker(ctx: RowContext) -> bool:
    return not ctx.row.has_numeric and _category_label(ctx.row, ctx.config) is not None


def _pending_pack_row(ctx: RowContext) -> bool:
    return (
        ctx.state.is_pending
        and ctx.row.has_numeric
        and is_pack_label(ctx.row.label, ctx.config, ctx.filter_pack)
    )


def _filtered_out_pack_row(ctx: RowContext) -> bool:
    if not (ctx.filter_pack and _pending_pack_row(ctx)):
        return False
    return ctx.row.label.casefold() != ctx.filter_pack.casefold()


def _pending_product_row(ctx: RowContext) -> bool:
    label = ctx.row.label
    return (
        ctx.state.is_pending
        and bool(label)
        and ctx.row.has_numeric
        and ctx.state.category not in ctx.captured
        and not _has_reserved_token(label, ctx.config)
        and _general_metric_label(ctx.row, ctx.config) is None
    )


def _general_metric_row(ctx: RowContext) -> bool:
    return (
        _general_metric_label(ctx.row, ctx.config) is not None
        and ctx.row.has_nonzero
    )


# --- actions ----------------------------------------------------------------

def _start_category(ctx: RowContext) -> RuleOutcome:
    return RuleOutcome(ScanState.pending(_category_label(ctx.row, ctx.config)))


def _capture_pack_row(ctx: RowContext) -> RuleOutcome:
    category = ctx.state.category
    if category in ctx.captured:
        return RuleOutcome(ScanState.idle())
    return RuleOutcome(ScanState.idle(), emit=category)


def _capture_product_row(ctx: RowContext) -> RuleOutcome:
    # Product rows follow the stricter "no data" test: all zeros is dropped
    if not ctx.row.has_nonzero:
        return RuleOutcome(ScanState.idle())
    return RuleOutcome(ScanState.idle(), emit=ctx.state.category)


def _emit_general_metric(ctx: RowContext) -> RuleOutcome:
    return RuleOutcome(ctx.state, emit=_general_metric_label(ctx.row, ctx.config))


ROW_RULES: Sequence[RowRule] = (
    RowRule("blank_row", _blank_row, _keep),
    RowRule("boilerplate", _boilerplate_row, _keep),
    RowRule("category_marker", _category_marker, _start_category),
    RowRule("pack_row_filtered_out", _filtered_out_pack_row, _keep),
    RowRule("pack_row", _pending_pack_row, _capture_pack_row),
    RowRule("category_product_row", _pending_product_row, _capture_product_row),
    RowRule("general_metric", _general_metric_row, _emit_general_metric),
)


def classify_row(ctx: RowContext, rules: Sequence[RowRule] = ROW_RULES) -> Tuple[Optional[RowRule], RuleOutcome]:
    """Return the first rule matching ``ctx`` and its outcome.

    Rows no rule claims leave the state untouched.
    """
    for rule in rules:
        if rule.predicate(ctx):
            return rule, rule.action(ctx)
    return None, RuleOutcome(ctx.state)


@dataclass
class RuleTrace:
    """Per-row record of which rule fired, for debugging odd sheets."""

    entries: List[Tuple[int, str, Optional[str]]] = field(default_factory=list)

    def add(self, line_index: int, rule: Optional[RowRule], outcome: RuleOutcome) -> None:
        self.entries.append((line_index, rule.name if rule else "unmatched", outcome.emit))
