from sellerpulse.common.config_validator import ExtractionConfig
from sellerpulse.extraction.rules import (
    ROW_RULES,
    RowContext,
    RowView,
    ScanPhase,
    ScanState,
    classify_row,
    is_pack_label,
)

CONFIG = ExtractionConfig()


def view(label, values=(), first=""):
    labels = tuple(t for t in (first, label) if t)
    vals = tuple(float(v) for v in values)
    return RowView(cells=(first, label, *map(str, values)), labels=labels, values=vals, parsed_cells=len(values))


def ctx(row, state=None, captured=(), filter_pack=None):
    return RowContext(
        row=row,
        state=state or ScanState.idle(),
        captured=frozenset(captured),
        config=CONFIG,
        filter_pack=filter_pack,
    )


def fire(context):
    rule, outcome = classify_row(context)
    return (rule.name if rule else None), outcome


def test_rule_table_order():
    assert [r.name for r in ROW_RULES] == [
        "blank_row",
        "boilerplate",
        "category_marker",
        "pack_row_filtered_out",
        "pack_row",
        "category_product_row",
        "general_metric",
    ]


def test_blank_row_keeps_state():
    pending = ScanState.pending("GMV")
    row = RowView(cells=("", "", ""), labels=(), values=(0.0,), parsed_cells=0)
    name, outcome = fire(ctx(row, pending))
    assert name == "blank_row"
    assert outcome.state == pending
    assert outcome.emit is None


def test_seller_sku_without_data_is_boilerplate():
    name, outcome = fire(ctx(view("Seller SKU")))
    assert name == "boilerplate"
    assert outcome.emit is None


def test_category_marker_starts_pending():
    name, outcome = fire(ctx(view("Items Sold")))
    assert name == "category_marker"
    assert outcome.state.phase is ScanPhase.PENDING
    assert outcome.state.category == "Items Sold"


def test_category_label_with_data_is_not_a_marker():
    name, _ = fire(ctx(view("GMV", [1, 2])))
    assert name != "category_marker"


def test_pack_row_emits_pending_category_and_clears():
    name, outcome = fire(ctx(view("1 Pack", [1, 0]), ScanState.pending("GMV")))
    assert name == "pack_row"
    assert outcome.emit == "GMV"
    assert outcome.state == ScanState.idle()


def test_pack_row_for_captured_category_clears_without_emitting():
    name, outcome = fire(ctx(view("1 Pack", [1, 2]), ScanState.pending("GMV"), captured={"GMV"}))
    assert name == "pack_row"
    assert outcome.emit is None
    assert not outcome.state.is_pending


def test_mismatched_pack_keeps_waiting():
    pending = ScanState.pending("GMV")
    name, outcome = fire(ctx(view("1 Pack", [1, 2]), pending, filter_pack="2 Pack"))
    assert name == "pack_row_filtered_out"
    assert outcome.state == pending
    assert outcome.emit is None


def test_filter_token_counts_as_pack_label():
    assert is_pack_label("Trial Size", CONFIG, "Trial Size")
    assert is_pack_label("3 pack", CONFIG, None)
    assert not is_pack_label("NAD+ Cream", CONFIG, None)
    assert not is_pack_label("", CONFIG, "2 Pack")


def test_product_row_emits_only_with_nonzero_data():
    pending = ScanState.pending("Items Sold")
    name, outcome = fire(ctx(view("NAD+ Cream", [0, 4]), pending))
    assert name == "category_product_row"
    assert outcome.emit == "Items Sold"

    name, outcome = fire(ctx(view("NAD+ Cream", [0, 0]), pending))
    assert name == "category_product_row"
    assert outcome.emit is None
    assert not outcome.state.is_pending


def test_reserved_token_is_never_a_product_row():
    name, outcome = fire(ctx(view("SKU count", [1, 2]), ScanState.pending("GMV")))
    assert name is None
    assert outcome.state.is_pending


def test_general_metric_wins_over_product_row_and_keeps_state():
    pending = ScanState.pending("GMV")
    name, outcome = fire(ctx(view("Units per Order", [1.5, 2]), pending))
    assert name == "general_metric"
    assert outcome.emit == "Units per Order"
    assert outcome.state == pending


def test_general_metric_needs_nonzero_value():
    name, outcome = fire(ctx(view("Subscribers", [0, 0])))
    assert name is None
    assert outcome.emit is None


def test_primary_label_is_second_cell():
    row = view("Orders", [1], first="Toner Pads")
    assert row.label == "Orders"
    name, outcome = fire(ctx(row))
    assert outcome.emit == "Orders"


def test_general_metric_matches_either_label():
    row = RowView(cells=("Orders", "3", "3", "6"), labels=("Orders", "6"), values=(3.0, 3.0), parsed_cells=2)
    name, outcome = fire(ctx(row))
    assert name == "general_metric"
    assert outcome.emit == "Orders"

    pending = ScanState.pending("GMV")
    name, outcome = fire(ctx(row, pending))
    assert name == "general_metric"
    assert outcome.state == pending
