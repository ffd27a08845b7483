import math
from datetime import date

import pytest

from sellerpulse.common.config_validator import ExtractionConfig
from sellerpulse.extraction.csv_line import parse_csv_line
from sellerpulse.extraction.rules import RuleTrace
from sellerpulse.extraction.tabular import extract_metric_series, locate_header

DAYS = list(range(1, 13))
HEADER = ",Metric," + ",".join(f"{d}-Jan" for d in DAYS)


def row(label, values, first=""):
    return f"{first},{label}," + ",".join(str(v) for v in values)


GMV_1 = [100 + d for d in DAYS]
GMV_2 = [200 + d for d in DAYS]
ITEMS_1 = [d for d in DAYS]
ITEMS_2 = [2 * d for d in DAYS]
ORDERS = [3 for _ in DAYS]


def make_sheet(*extra_rows):
    lines = [
        "Weekly dashboard,,",
        "",
        HEADER,
        ",Seller SKU,TP-1,TP-2",
        ",GMV",
        row("1 Pack", GMV_1),
        row("2 Pack", GMV_2),
        ",Items Sold",
        row("1 Pack", ITEMS_1),
        row("2 Pack", ITEMS_2),
        row("Orders", ORDERS),
        row("Conv. Rate", ['"5.5%"'] * len(DAYS)),
        row("Subscribers", [0] * len(DAYS)),
        row("Orders", [99] * len(DAYS)),
    ]
    lines.extend(extra_rows)
    return "\n".join(lines)


def test_default_extraction_takes_first_pack_per_category():
    dataset = extract_metric_series(make_sheet(), source_name="Toner")
    assert dataset.source_name == "Toner"
    assert dataset.metric_names == ["GMV", "Items Sold", "Orders", "Conv. Rate"]
    assert dataset.get("GMV").amounts == [float(v) for v in GMV_1]
    assert dataset.get("Items Sold").amounts == [float(v) for v in ITEMS_1]
    assert dataset.get("Conv. Rate").amounts == [5.5] * len(DAYS)


def test_dates_follow_header_and_season():
    dataset = extract_metric_series(make_sheet())
    assert list(dataset.dates) == [date(2026, 1, d) for d in DAYS]
    for series in dataset.metrics:
        assert series.dates == list(dataset.dates)


def test_pack_filter_selects_matching_variant():
    dataset = extract_metric_series(make_sheet(), filter_pack="2 Pack")
    assert dataset.get("GMV").amounts == [float(v) for v in GMV_2]
    assert dataset.get("Items Sold").amounts == [float(v) for v in ITEMS_2]
    # general metrics ignore the filter
    assert dataset.get("Orders").amounts == [3.0] * len(DAYS)


def test_filter_excluding_every_pack_yields_no_category_series():
    dataset = extract_metric_series(make_sheet(), filter_pack="3 Pack")
    assert dataset.get("GMV") is None
    assert dataset.get("Items Sold") is None
    assert dataset.get("Orders") is not None


def test_all_zero_general_metric_is_dropped_and_duplicates_ignored():
    dataset = extract_metric_series(make_sheet())
    assert dataset.get("Subscribers") is None
    assert dataset.get("Orders").amounts == [3.0] * len(DAYS)


def test_every_series_is_aligned_and_finite():
    bad = row("Page Views", ["n/a", "", "abc", 5])
    dataset = extract_metric_series(make_sheet(bad))
    page_views = dataset.get("Page Views")
    assert page_views is not None
    assert page_views.amounts[:4] == [0.0, 0.0, 0.0, 5.0]
    assert page_views.amounts[4:] == [0.0] * (len(DAYS) - 4)
    for series in dataset.metrics:
        assert len(series) == len(dataset.dates)
        assert all(math.isfinite(v) for v in series.amounts)


def test_quoted_thousands_are_parsed():
    sheet = "\n".join([HEADER, ",Page Views," + ",".join(['"1,250"'] * len(DAYS))])
    dataset = extract_metric_series(sheet)
    assert dataset.get("Page Views").amounts == [1250.0] * len(DAYS)


def test_category_pack_row_keeps_zeros_when_some_cell_parses():
    values = [0] * (len(DAYS) - 1) + [4]
    sheet = "\n".join([HEADER, ",Items Sold", row("1 Pack", values)])
    dataset = extract_metric_series(sheet)
    assert dataset.get("Items Sold").amounts == [float(v) for v in values]


def test_product_row_without_pack_sub_row():
    sheet = "\n".join([HEADER, ",GMV", row("NAD+ Cream", GMV_1), row("Orders", ORDERS)])
    dataset = extract_metric_series(sheet)
    assert dataset.get("GMV").amounts == [float(v) for v in GMV_1]
    assert dataset.get("Orders") is not None


def test_all_zero_product_row_is_dropped():
    sheet = "\n".join([HEADER, ",GMV", row("NAD+ Cream", [0] * len(DAYS)), row("1 Pack", GMV_1)])
    dataset = extract_metric_series(sheet)
    assert dataset.get("GMV") is None


def test_text_only_sub_header_keeps_category_pending():
    sheet = "\n".join([HEADER, ",GMV", ",Toner Pads", row("1 Pack", GMV_1)])
    dataset = extract_metric_series(sheet)
    assert dataset.get("GMV").amounts == [float(v) for v in GMV_1]


def test_labels_match_case_insensitively_and_come_back_canonical():
    sheet = "\n".join([HEADER, row("orders", ORDERS), row("", ["x"] * 3, first="gmv"), row("1 pack", GMV_1)])
    dataset = extract_metric_series(sheet)
    assert dataset.metric_names == ["Orders", "GMV"]


def test_label_in_first_column():
    sheet = "\n".join([HEADER, "Orders,," + ",".join(str(v) for v in ORDERS)])
    dataset = extract_metric_series(sheet)
    assert dataset.get("Orders").amounts == [3.0] * len(DAYS)


def test_no_header_returns_empty_dataset():
    dataset = extract_metric_series("a,b,c\n1,2,3\n", source_name="junk")
    assert dataset.is_empty
    assert dataset.dates == ()
    assert dataset.source_name == "junk"


def test_header_outside_scan_window_is_not_found():
    filler = ["note,,"] * 15
    dataset = extract_metric_series("\n".join(filler + [HEADER, row("Orders", ORDERS)]))
    assert dataset.is_empty


def test_header_needs_enough_cells_and_dates():
    config = ExtractionConfig()
    short = [parse_csv_line(",1-Jan,2-Jan,3-Jan,4-Jan,5-Jan,6-Jan")]
    assert locate_header(short, config) is None
    few_dates = [parse_csv_line(",a,b,c,d,e,f,g,1-Jan,2-Jan,3-Jan,4-Jan,5-Jan")]
    assert locate_header(few_dates, config) is None
    header = locate_header([parse_csv_line("x"), parse_csv_line(HEADER)], config)
    assert header.line_index == 1
    assert header.columns[0] == 2


def test_duplicate_header_dates_keep_first_column():
    header_line = ",Metric," + ",".join(f"{d}-Jan" for d in DAYS) + ",12-Jan"
    header = locate_header([parse_csv_line(header_line)], ExtractionConfig())
    assert len(header.dates) == len(DAYS)
    assert header.columns[-1] == len(DAYS) + 1


def test_december_and_january_columns_are_ascending():
    header_line = ",Metric," + ",".join(["29-Dec", "30-Dec", "31-Dec"] + [f"{d}-Jan" for d in range(1, 9)])
    dataset = extract_metric_series("\n".join([header_line, row("Orders", list(range(1, 12)))]))
    assert dataset.dates[0] == date(2025, 12, 29)
    assert dataset.dates[-1] == date(2026, 1, 8)
    assert list(dataset.dates) == sorted(dataset.dates)
    assert dataset.get("Orders").amounts[:3] == [1.0, 2.0, 3.0]


def test_trace_records_rule_per_row():
    trace = RuleTrace()
    extract_metric_series(make_sheet(), trace=trace)
    fired = [name for _, name, _ in trace.entries]
    assert fired[0] == "boilerplate"
    assert "category_marker" in fired
    assert ("pack_row", "GMV") in [(name, emit) for _, name, emit in trace.entries]


def test_minimal_sheet_with_relaxed_header_thresholds():
    config = ExtractionConfig(min_header_cells=2, min_date_cells=2)
    text = '"","",1-Dec,2-Dec\n"","Items Sold"\n"","1 Pack",5,7'
    dataset = extract_metric_series(text, config=config)
    assert dataset.metric_names == ["Items Sold"]
    series = dataset.get("Items Sold")
    assert series.amounts == [5.0, 7.0]
    assert series.dates == [date(2025, 12, 1), date(2025, 12, 2)]


@pytest.mark.parametrize("filter_pack", [None, "1 Pack", "2 Pack"])
def test_extraction_is_repeatable(filter_pack):
    first = extract_metric_series(make_sheet(), filter_pack=filter_pack)
    second = extract_metric_series(make_sheet(), filter_pack=filter_pack)
    assert first == second


def test_trailing_total_column_does_not_hide_metric_label():
    header = "Metric," + ",".join(f"{d}-Jan" for d in DAYS) + ",Total"
    orders = "Orders," + ",".join(str(v) for v in ORDERS) + f",{sum(ORDERS)}"
    dataset = extract_metric_series("\n".join([header, orders]))
    assert dataset.get("Orders").amounts == [3.0] * len(DAYS)
