"""
Dashboard aggregation tests.

The aggregation functions take plain report objects, so these tests build
lightweight stand-ins instead of touching the database.
"""

from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from schemas.ingestion import PeerMetrics, PeerMetricValues
from services.aggregation_service import (
    ABOVE_MEDIAN,
    BELOW_MEDIAN,
    PEER_BANKS,
    SUBJECT_BANK,
    aggregate_report_metrics,
    build_bank_metric_cards,
    build_executive_insights,
    build_metric_cards_response,
    build_metric_history,
    build_peer_comparison,
    compute_peer_median,
    compute_peer_percentile,
    dedupe_reports,
    estimate_balance_sheet,
    format_total_assets,
    insight_category,
    is_substantive,
    latest_report_metrics,
    subject_metrics_from_reports,
    threshold_status,
)

T0 = datetime(2025, 1, 1, 9, 0, 0)
_ids = iter(range(1, 10_000))


def insight(insight_type="summary", content="Capital remains strong at 14.8% Tier 1.", metrics=None,
            category="capital", title="Capital position", minutes=0):
    return SimpleNamespace(
        insight_type=insight_type,
        category=category,
        title=title,
        content=content,
        metrics=metrics,
        created_at=T0 + timedelta(minutes=minutes),
    )


def report(name="Call Report Q1", source="upload", report_type="call_report", period="Q1 2025",
           status="analyzed", minutes=0, insights=None, institution_name="Mizuho Americas"):
    created = T0 + timedelta(minutes=minutes)
    return SimpleNamespace(
        id=f"r{next(_ids)}",
        name=name,
        report_type=report_type,
        source=source,
        source_url=None,
        file_path=None,
        rssd_id="623806",
        institution_name=institution_name,
        reporting_period=period,
        status=status,
        error_message=None,
        created_at=created,
        updated_at=created,
        insights=insights or [],
    )


def metrics_report(metrics, minutes=0, **kwargs):
    return report(minutes=minutes, insights=[insight("metric_extraction", metrics=metrics, minutes=minutes)], **kwargs)


# ═══════════════════════════════════════════════════════════════════════════
# Deduplication
# ═══════════════════════════════════════════════════════════════════════════


class TestDedupe:

    def test_keeps_newest_per_logical_key(self):
        older = report(minutes=0)
        newer = report(minutes=5)

        result = dedupe_reports([older, newer])

        assert len(result) == 1
        assert result[0].id == newer.id
        assert result[0].has_older_version is True

    def test_different_periods_are_distinct(self):
        q1 = report(period="Q1 2025", minutes=0)
        q2 = report(period="Q2 2025", minutes=1)

        result = dedupe_reports([q1, q2])

        assert [r.id for r in result] == [q2.id, q1.id]
        assert not any(r.has_older_version for r in result)

    def test_source_and_type_are_part_of_key(self):
        upload = report(source="upload")
        ffiec = report(source="ffiec", minutes=1)
        ubpr = report(report_type="ubpr", minutes=2)

        assert len(dedupe_reports([upload, ffiec, ubpr])) == 3

    def test_empty(self):
        assert dedupe_reports([]) == []


# ═══════════════════════════════════════════════════════════════════════════
# Metric merge
# ═══════════════════════════════════════════════════════════════════════════


class TestAggregateMetrics:

    def test_newest_positive_value_wins(self):
        old = metrics_report({"tier1_capital_ratio": 13.0, "roa": 0.9}, minutes=0, period="Q4 2024")
        new = metrics_report({"tier1_capital_ratio": 14.8, "roa": 0}, minutes=10, period="Q1 2025")

        merged = aggregate_report_metrics([old, new])

        assert merged.metrics["tier1_capital_ratio"] == 14.8
        # Zero in the newer report does not shadow the older positive value
        assert merged.metrics["roa"] == 0.9
        assert merged.metric_sources["roa"].period == "Q4 2024"
        assert merged.metric_sources["tier1_capital_ratio"].report_type == "CALL_REPORT"
        assert merged.has_data is True
        assert merged.reports_count == 2

    def test_ignores_non_analyzed_and_non_numeric(self):
        pending = metrics_report({"roe": 10.0}, status="pending")
        analyzed = metrics_report({"roe": "high", "nim": True, "lcr": 120})

        merged = aggregate_report_metrics([pending, analyzed])

        assert merged.metrics == {"lcr": 120.0}
        assert merged.reports_count == 1

    def test_source_label_by_origin(self):
        ffiec = metrics_report({"roe": 10.0}, source="ffiec")
        fdic = metrics_report({"nim": 2.4}, source="fdic", name="FDIC pull")

        merged = aggregate_report_metrics([ffiec, fdic])

        assert merged.metric_sources["roe"].source == "FFIEC CDR"
        assert merged.metric_sources["nim"].source == "FDIC"

    def test_no_reports(self):
        merged = aggregate_report_metrics([])
        assert merged.metrics == {}
        assert merged.has_data is False

    def test_latest_report_metrics_uses_newest_with_metrics(self):
        plain = report(minutes=20)
        with_metrics = metrics_report({"roa": 0.92}, minutes=10, name="UBPR_2025-03-31.pdf", period=None)

        latest = latest_report_metrics([plain, with_metrics])

        assert latest.has_data is True
        assert latest.metrics == {"roa": 0.92}
        assert latest.reporting_period == "Q1 2025"
        assert latest.report_name == "UBPR_2025-03-31.pdf"


# ═══════════════════════════════════════════════════════════════════════════
# Metric cards
# ═══════════════════════════════════════════════════════════════════════════


class TestMetricCards:

    @pytest.mark.parametrize("value,direction,good,warning,expected", [
        (12.0, "min", 10.5, 8.0, "good"),
        (9.0, "min", 10.5, 8.0, "warning"),
        (7.0, "min", 10.5, 8.0, "critical"),
        (50.0, "max", 55.0, 65.0, "good"),
        (60.0, "max", 55.0, 65.0, "warning"),
        (70.0, "max", 55.0, 65.0, "critical"),
    ])
    def test_threshold_status(self, value, direction, good, warning, expected):
        assert threshold_status(value, direction, good, warning) == expected

    def test_cards_only_for_present_metrics(self):
        cards = build_bank_metric_cards({"tier1_capital_ratio": 14.8, "efficiency_ratio": 64.2, "roa": 0}, {})

        by_id = {c.id: c for c in cards}
        assert set(by_id) == {"tier1-capital", "efficiency"}
        assert by_id["tier1-capital"].value == "14.8%"
        assert by_id["tier1-capital"].threshold.min == 8.0
        assert by_id["tier1-capital"].threshold.status == "good"
        assert by_id["efficiency"].threshold.max == 60.0
        assert by_id["efficiency"].threshold.status == "warning"

    def test_cet1_alias(self):
        cards = build_bank_metric_cards({"cet1_ratio": 13.0}, {})
        assert [c.id for c in cards] == ["cet1"]
        assert cards[0].value == "13%"

    def test_total_assets_card(self):
        cards = build_bank_metric_cards({"total_assets": 4.6e11}, {})
        assert cards[-1].id == "total-assets"
        assert cards[-1].value == "$460.0B"

    def test_format_total_assets(self):
        assert format_total_assets(1.5e12) == "$1.50T"
        assert format_total_assets(2.5e9) == "$2.5B"
        assert format_total_assets(7e8) == "$700M"

    def test_cards_response_carries_source_period(self):
        r = metrics_report({"net_interest_margin": 2.42}, period="Q2 2025")

        response = build_metric_cards_response([r])

        assert response.has_data is True
        assert response.reporting_period == "Q2 2025"
        assert response.metrics[0].change_label == "as of Q2 2025"
        assert response.metrics[0].bank_id == "mizuho"


# ═══════════════════════════════════════════════════════════════════════════
# Executive insights
# ═══════════════════════════════════════════════════════════════════════════


class TestExecutiveInsights:

    @pytest.mark.parametrize("category,insight_type,expected", [
        ("capital", "summary", "strength"),
        ("liquidity", "summary", "strength"),
        ("compliance", "summary", "opportunity"),
        ("asset_quality", "summary", "attention"),
        ("general", "risk_assessment", "risk"),
        ("general", "recommendation", "opportunity"),
        (None, "trend_analysis", "attention"),
    ])
    def test_insight_category(self, category, insight_type, expected):
        assert insight_category(category, insight_type) == expected

    def test_skips_metric_extraction_and_extracts_metric(self):
        r = report(insights=[
            insight("metric_extraction", metrics={"roa": 1.0}),
            insight("risk_assessment", content="Net charge-offs rose 35 bps quarter over quarter.", category="general", minutes=1),
        ])

        response = build_executive_insights(r)

        assert response.has_data is True
        assert len(response.insights) == 1
        item = response.insights[0]
        assert item.category == "risk"
        assert item.metric == "35 bps"
        assert item.source == "Call Report"
        assert item.report_type == "call_report (Q1 2025)"

    def test_summary_truncated(self):
        r = report(insights=[insight(content="x" * 250)])
        summary = build_executive_insights(r).insights[0].summary
        assert summary == "x" * 200 + "..."

    def test_no_report(self):
        response = build_executive_insights(None)
        assert response.insights == []
        assert response.has_data is False


class TestSubstantive:

    @pytest.mark.parametrize("content,expected", [
        ("", False),
        ("[placeholder insight]", False),
        ("Looks fine overall.", False),
        ("Tier 1 at 14.8%", True),
        ("Analysis of the quarterly call report for the institution shows nothing unusual.", False),
        ("Deposit balances declined across commercial segments while funding costs rose, pressuring margins.", True),
    ])
    def test_is_substantive(self, content, expected):
        assert is_substantive(content) is expected


# ═══════════════════════════════════════════════════════════════════════════
# Metric history
# ═══════════════════════════════════════════════════════════════════════════


class TestMetricHistory:

    def test_points_sorted_by_period_one_per_period(self):
        q4 = metrics_report({"tier1_capital_ratio": 14.0}, minutes=30, period="Q4 2024")
        q1_old = metrics_report({"tier1_capital_ratio": 14.2}, minutes=10, period="Q1 2025")
        q1_new = metrics_report({"tier1_capital_ratio": 14.8}, minutes=20, period="Q1 2025")

        history = build_metric_history([q4, q1_old, q1_new], "tier1")

        assert [p.period for p in history.points] == ["Q4 2024", "Q1 2025"]
        assert history.points[-1].report_id == q1_new.id
        assert history.latest_value == 14.8
        assert history.previous_value == 14.0
        assert history.change == pytest.approx(0.8)
        assert history.is_good_change is True

    def test_lower_is_better_metric(self):
        q1 = metrics_report({"efficiency_ratio": 60.0}, period="Q1 2025")
        q2 = metrics_report({"efficiency_ratio": 62.0}, minutes=1, period="Q2 2025")

        history = build_metric_history([q1, q2], "efficiency")

        assert history.is_positive_good is False
        assert history.is_good_change is False
        assert history.change_percent == pytest.approx(3.33)

    def test_raw_extracted_key_keeps_metric_direction(self):
        q1 = metrics_report({"npl_ratio": 0.8}, period="Q1 2025")
        q2 = metrics_report({"npl_ratio": 0.7}, minutes=1, period="Q2 2025")

        history = build_metric_history([q1, q2], "npl_ratio")

        assert history.metric_key == "npl_ratio"
        assert history.is_positive_good is False
        assert history.is_good_change is True

    def test_empty(self):
        history = build_metric_history([], "roa")
        assert history.points == []
        assert history.change_percent == 0


# ═══════════════════════════════════════════════════════════════════════════
# Peer percentile
# ═══════════════════════════════════════════════════════════════════════════


class TestPeerPercentile:

    def test_percentile_midpoint(self):
        assert compute_peer_percentile(13, [10, 12, 14, 16]) == 50

    def test_percentile_lower_is_better(self):
        # Efficiency 55 beats peers at 60 and 70
        assert compute_peer_percentile(55, [50, 60, 70], lower_is_better=True) == 67

    def test_percentile_rounds_half_up(self):
        assert compute_peer_percentile(1.5, [1, 2, 3, 4, 5, 6, 7, 8]) == 13
        assert compute_peer_percentile(5.5, [1, 2, 3, 4, 5, 6, 7, 8]) == 63

    def test_percentile_ties_count_neither_way(self):
        assert compute_peer_percentile(12, [12, 12]) == 0

    def test_percentile_no_peers(self):
        assert compute_peer_percentile(10, []) == 50
        assert compute_peer_percentile(10, [None, "N/A"]) == 50

    def test_median_upper_without_interpolation(self):
        assert compute_peer_median([16, 10, 14, 12]) == 14
        assert compute_peer_median([3, 1, 2]) == 2
        assert compute_peer_median([]) == 0

    def test_build_peer_comparison_reference_values(self):
        metrics = build_peer_comparison(["jpmorgan", "bofa", "citi", "wells"])

        tier1 = next(m for m in metrics if m.id == "tier1-peer")
        # Subject 14.8 vs 15.1, 13.8, 14.5, 12.4 -> beats three of four
        assert tier1.peer_percentile == 75
        assert tier1.interpretation == ABOVE_MEDIAN
        assert tier1.subject_value == "14.8%"
        assert tier1.peer_median == "14.50%"
        assert [p.bank_name for p in tier1.peer_values] == ["JPMorgan", "Bank of America", "Citibank", "Wells Fargo"]

        efficiency = next(m for m in metrics if m.id == "efficiency-peer")
        # 64.2 is lower than 69.8 and 67.3 only
        assert efficiency.peer_percentile == 50
        assert efficiency.category == "efficiency"

    def test_eight_reference_peers_round_half_up(self):
        metrics = build_peer_comparison(
            ["jpmorgan", "bofa", "citi", "wells", "goldman", "morgan_stanley", "usbank", "pnc"]
        )

        tier1 = next(m for m in metrics if m.id == "tier1-peer")
        # Beats 5 of 8 -> 62.5
        assert tier1.peer_percentile == 63

    def test_unknown_peers_ignored(self):
        metrics = build_peer_comparison(["nope"])
        assert all(m.peer_values == [] for m in metrics)
        assert all(m.peer_percentile == 50 for m in metrics)

    def test_subject_values_and_live_metrics_override(self):
        live = [PeerMetrics(
            rssd_id=PEER_BANKS["jpmorgan"]["rssd_id"],
            name="JPMorgan",
            metrics=PeerMetricValues(roa=2.0),
            fetched_at="2025-06-01T00:00:00Z",
        )]

        metrics = build_peer_comparison(["jpmorgan"], subject_values={"roa": 1.5}, live_peer_metrics=live)

        roa = next(m for m in metrics if m.id == "roa-peer")
        assert roa.subject_value == "1.5%"
        assert roa.peer_values[0].value == "2%"
        assert roa.peer_percentile == 0
        assert roa.interpretation == BELOW_MEDIAN

    def test_failed_live_metrics_fall_back_to_reference(self):
        live = [PeerMetrics(
            rssd_id=PEER_BANKS["bofa"]["rssd_id"],
            name="Bank of America",
            metrics=PeerMetricValues(roa=5.0),
            fetched_at="2025-06-01T00:00:00Z",
            error="FDIC API returned 500",
        )]

        metrics = build_peer_comparison(["bofa"], live_peer_metrics=live)

        roa = next(m for m in metrics if m.id == "roa-peer")
        assert roa.peer_values[0].value == "0.98%"

    def test_subject_metrics_from_reports(self):
        subject = subject_metrics_from_reports({
            "tier1_capital_ratio": 15.0,
            "return_on_average_assets": 1.1,
            "unrelated": 3.0,
        })
        assert subject == {"tier1": 15.0, "roa": 1.1}

    def test_subject_reference_has_every_peer_metric(self):
        assert set(SUBJECT_BANK["metrics"]) == {"tier1", "cet1", "roa", "roe", "efficiency", "nim", "npl", "lcr"}


# ═══════════════════════════════════════════════════════════════════════════
# Balance sheet
# ═══════════════════════════════════════════════════════════════════════════


class TestBalanceSheet:

    def test_requires_total_assets(self):
        assert estimate_balance_sheet({}) is None
        assert estimate_balance_sheet({"total_assets": 0}) is None

    def test_leverage_based_estimate(self):
        estimate = estimate_balance_sheet({
            "total_assets": 1_000_000_000,
            "tier1_leverage_ratio": 10.0,
            "tier1_capital_ratio": 14.0,
            "common_equity_tier1_ratio": 12.0,
            "total_capital_ratio": 16.0,
        })

        capital = estimate.capital_breakdown
        assert capital.tier1_capital == pytest.approx(100_000_000)
        assert capital.cet1_capital == pytest.approx(0.12 * 1e9 * 0.7)
        assert capital.at1_capital == pytest.approx(100_000_000 - 84_000_000)
        # RWA derived from leverage: 1e8 / 0.14
        assert capital.total_capital == pytest.approx(0.16 * (1e8 / 0.14))
        assert capital.tier1_ratio == pytest.approx(14.0)

    def test_ratio_only_estimate(self):
        estimate = estimate_balance_sheet({"total_assets": 1e9, "tier1_capital_ratio": 10.0})

        capital = estimate.capital_breakdown
        assert capital.tier1_capital == pytest.approx(0.1 * 1e9 * 0.7)
        assert capital.total_capital == pytest.approx(capital.tier1_capital * 1.05)
        assert capital.tier2_capital == pytest.approx(capital.total_capital - capital.tier1_capital)

    def test_asset_mix_sums_to_total(self):
        estimate = estimate_balance_sheet({"total_assets": 2e9, "tier1_capital_ratio": 12.0})

        assert sum(a.value for a in estimate.assets) == pytest.approx(2e9)
        assert [a.percentage for a in estimate.assets] == pytest.approx([35.0, 45.0, 20.0])
        assert estimate.assets[0].display_value == "$700M"
        assert estimate.liabilities_equity[-1].name == "CET1 / Tier 1 Capital"
