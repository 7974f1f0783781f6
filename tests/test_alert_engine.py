"""
Tests for the dynamic-threshold alert engine.
"""
import pytest

from app.services.alert_engine import (
    DEFAULT_ALERT_RULES,
    AlertEngine,
    AlertRule,
    AlertStatistics,
    Comparison,
    Severity,
    select_candidates,
)

SPIKE_SERIES = [1000, 1020, 990, 1010, 1005, 1015, 995, 1000, 1010, 5000]


def make_stats(**overrides) -> AlertStatistics:
    values = dict(
        latest=1000.0, previous=1000.0, mean=1000.0, stddev=10.0,
        p5=980.0, p95=1020.0, anomaly_score=0.0, growth_rate=0.0, data_points=30,
    )
    values.update(overrides)
    return AlertStatistics(**values)


@pytest.fixture
def engine():
    return AlertEngine()


class TestStatistics:

    def test_reference_window_excludes_latest(self, engine):
        stats = engine.compute_statistics(SPIKE_SERIES)

        assert stats.latest == 5000
        assert stats.previous == 1010
        assert stats.mean == pytest.approx(1005.0)
        assert stats.stddev == pytest.approx(9.13, abs=0.01)
        assert stats.p95 == 1020
        assert stats.p5 == 990
        assert stats.anomaly_score > 400
        assert stats.growth_rate == pytest.approx(395.05, abs=0.01)

    def test_needs_two_points(self, engine):
        assert engine.compute_statistics([]) is None
        assert engine.compute_statistics([1000]) is None
        assert engine.evaluate([1000]) == []

    def test_flat_history_has_zero_anomaly_score(self, engine):
        stats = engine.compute_statistics([500, 500, 500, 900])
        assert stats.stddev == 0
        assert stats.anomaly_score == 0.0


class TestSpikeScenario:

    def test_extreme_spike_fires_without_duplicate(self, engine):
        alerts = engine.evaluate(SPIKE_SERIES)
        rule_ids = [a.rule_id for a in alerts]

        assert rule_ids[0] == "extreme-spike"
        assert alerts[0].severity is Severity.CRITICAL
        assert alerts[0].current_value == 5000
        assert "high-spike" not in rule_ids
        assert "growth-rate" not in rule_ids
        assert rule_ids == ["extreme-spike", "statistical-anomaly", "rapid-growth"]

    def test_alerts_carry_scope_and_unique_ids(self, engine):
        alerts = engine.evaluate(SPIKE_SERIES, scope="Karnataka")
        assert all(a.state == "Karnataka" for a in alerts)
        assert len({a.id for a in alerts}) == len(alerts)

    def test_steady_series_is_quiet(self, engine):
        assert engine.evaluate([1000, 1010, 990, 1005, 1000]) == []


class TestDegenerateInput:

    def test_all_zero_only_hits_the_floor(self, engine):
        alerts = engine.evaluate([0] * 10)
        assert [a.rule_id for a in alerts] == ["system-failure"]

    def test_non_positive_threshold_never_triggers(self):
        rule = next(r for r in DEFAULT_ALERT_RULES if r.id == "low-enrollment")
        stats = make_stats(latest=-1.0, p5=0.0, mean=0.0, stddev=0.0)
        assert rule.evaluate(stats) is None

    def test_floor_is_configurable(self):
        quiet = AlertEngine(absolute_floor=10)
        alerts = quiet.evaluate([50, 52, 48, 51, 50])
        assert alerts == []


class TestDeduplication:

    def test_first_declared_rule_wins(self):
        first = AlertRule(
            id="first", name="First", metric="m", metric_selector=lambda s: s.latest,
            comparison=Comparison.GREATER_THAN, threshold_expression=lambda s: 1.0,
            severity=Severity.LOW, message_template="{value}",
        )
        second = AlertRule(
            id="second", name="Second", metric="m", metric_selector=lambda s: s.latest,
            comparison=Comparison.GREATER_THAN, threshold_expression=lambda s: 2.0,
            severity=Severity.CRITICAL, message_template="{value}",
        )
        alerts = AlertEngine(rules=[first, second]).evaluate_statistics(make_stats(latest=10.0))

        assert [a.rule_id for a in alerts] == ["first"]

    def test_opposite_comparisons_are_distinct(self):
        above = AlertRule(
            id="above", name="Above", metric="m", metric_selector=lambda s: s.latest,
            comparison=Comparison.GREATER_THAN, threshold_expression=lambda s: 1.0,
            severity=Severity.HIGH, message_template="{value}",
        )
        below = AlertRule(
            id="below", name="Below", metric="m", metric_selector=lambda s: s.latest,
            comparison=Comparison.LESS_THAN, threshold_expression=lambda s: 100.0,
            severity=Severity.MEDIUM, message_template="{value}",
        )
        stats = make_stats(latest=10.0)
        selected = select_candidates([above.evaluate(stats), below.evaluate(stats)])
        assert [c.rule.id for c in selected] == ["above", "below"]

    def test_one_alert_per_metric_and_comparison(self, engine):
        alerts = engine.evaluate([1000] * 5 + [1010, 990, 1000, 1005, 20])
        keys = [(a.metric, a.condition) for a in alerts]
        assert len(keys) == len(set(keys))


class TestOrdering:

    def test_sorted_by_severity(self, engine):
        alerts = engine.evaluate([1000, 1020, 990, 1010, 1005, 1015, 995, 1000, 1010, 20])
        order = {"critical": 0, "high": 1, "medium": 2, "low": 3}
        ranks = [order[a.severity.value] for a in alerts]
        assert ranks == sorted(ranks)
        assert [a.rule_id for a in alerts] == ["statistical-anomaly", "low-enrollment", "growth-rate"]

    def test_collapse_reports_low_warning_before_floor(self, engine):
        alerts = engine.evaluate([1000, 1020, 990, 1010, 1005, 1015, 995, 1000, 1010, 50])
        rule_ids = [a.rule_id for a in alerts]
        assert "low-enrollment" in rule_ids
        assert "system-failure" not in rule_ids

    def test_floor_fires_when_low_warning_not_computable(self, engine):
        # mean 100, stddev 100: mean - 2σ is negative
        alerts = engine.evaluate([0, 200, 0, 200, 0, 200, 0, 200, 10])
        assert [a.rule_id for a in alerts] == ["system-failure", "growth-rate"]
        assert alerts[0].severity is Severity.CRITICAL

    def test_message_mentions_value_and_direction(self, engine):
        alerts = engine.evaluate(SPIKE_SERIES)
        growth = next(a for a in alerts if a.rule_id == "rapid-growth")
        assert "increase" in growth.message

    def test_rule_catalogue(self):
        ids = [r.id for r in DEFAULT_ALERT_RULES]
        assert ids == [
            "extreme-spike", "high-spike", "low-enrollment", "system-failure",
            "statistical-anomaly", "rapid-growth", "growth-rate",
        ]
        assert DEFAULT_ALERT_RULES[0].to_dict()["condition"] == "greater_than"
