# SPDX-License-Identifier: LGPL-3.0-only

import unittest
from datetime import datetime, timedelta, timezone

from quota_engine.core.types import (
    Account,
    AccountCounts,
    LimitsSnapshot,
    QuotaInfo,
    Snapshot,
    SummarySnapshot,
)
from quota_engine.usage.aggregation import (
    compute_aggregates,
    family_gauge,
    model_averages,
    next_global_reset,
    overall_average,
    soonest_family_reset,
)

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def account(email, models, status="ok"):
    return Account(
        email=email,
        status=status,
        models={
            model_id: value if isinstance(value, QuotaInfo) else QuotaInfo(value)
            for model_id, value in models.items()
        },
    )


class ModelAveragesTest(unittest.TestCase):
    def test_null_fractions_are_excluded_from_sum_and_count(self) -> None:
        averages = model_averages(
            [
                account("a@example.com", {"m1": 0.8}),
                account("b@example.com", {"m1": 0.4, "m2": None}),
            ]
        )
        self.assertEqual(set(averages), {"m1", "m2"})
        self.assertAlmostEqual(averages["m1"], 0.6)
        self.assertIsNone(averages["m2"])

    def test_null_does_not_count_as_zero(self) -> None:
        averages = model_averages(
            [
                account("a@example.com", {"m1": 1.0}),
                account("b@example.com", {"m1": None}),
            ]
        )
        self.assertEqual(averages["m1"], 1.0)

    def test_empty_input(self) -> None:
        self.assertEqual(model_averages([]), {})
        self.assertIsNone(overall_average({}))

    def test_overall_average_is_unweighted_mean_of_non_null(self) -> None:
        self.assertAlmostEqual(overall_average({"A": 0.8, "B": 0.4}), 0.6)
        self.assertAlmostEqual(overall_average({"A": 0.8, "B": 0.4, "C": None}), 0.6)
        self.assertIsNone(overall_average({"A": None}))


class FamilyGaugeTest(unittest.TestCase):
    def test_null_counts_as_zero_within_an_account(self) -> None:
        gauge = family_gauge(
            [account("a@example.com", {"claude-sonnet": 0.5, "claude-opus": None})],
            "claude",
        )
        self.assertEqual(gauge.fraction, 0.25)
        self.assertEqual(gauge.account_count, 1)

    def test_accounts_contribute_once_each(self) -> None:
        gauge = family_gauge(
            [
                account("a@example.com", {"claude-a": 1.0, "claude-b": 0.0}),
                account("b@example.com", {"claude-a": 0.2}),
                account("c@example.com", {"gemini-pro": 1.0}),
            ],
            "claude",
        )
        self.assertAlmostEqual(gauge.fraction, 0.35)
        self.assertEqual(gauge.account_count, 2)

    def test_no_family_models_means_no_data(self) -> None:
        gauge = family_gauge([account("a@example.com", {"claude-a": 1.0})], "gemini")
        self.assertIsNone(gauge.fraction)
        self.assertEqual(gauge.account_count, 0)

    def test_soonest_family_reset(self) -> None:
        accounts = [
            account(
                "a@example.com",
                {
                    "claude-a": QuotaInfo(0.0, NOW + timedelta(hours=3)),
                    "claude-b": QuotaInfo(0.5, NOW + timedelta(hours=2)),
                    "gemini-pro": QuotaInfo(0.0, NOW + timedelta(minutes=5)),
                },
            ),
            account(
                "b@example.com",
                {"claude-a": QuotaInfo(0.0, NOW + timedelta(hours=1))},
            ),
            account("c@example.com", {"claude-a": QuotaInfo(1.0)}),
        ]
        self.assertEqual(
            soonest_family_reset(accounts, "claude"), NOW + timedelta(hours=1)
        )
        self.assertEqual(
            soonest_family_reset(accounts, "gemini"), NOW + timedelta(minutes=5)
        )
        self.assertIsNone(soonest_family_reset(accounts[2:], "claude"))


class NextGlobalResetTest(unittest.TestCase):
    def test_picks_soonest_exhausted_future_reset(self) -> None:
        accounts = [
            account("a@example.com", {"m1": QuotaInfo(0.0, NOW + timedelta(seconds=10))}),
            account("b@example.com", {"m2": QuotaInfo(0.0, NOW + timedelta(seconds=5))}),
        ]
        result = next_global_reset(accounts, now=NOW)
        self.assertEqual(result.reset_time, NOW + timedelta(seconds=5))
        self.assertEqual(result.model_id, "m2")

    def test_ignores_low_but_not_exhausted_and_past_resets(self) -> None:
        accounts = [
            account(
                "a@example.com",
                {
                    "low": QuotaInfo(0.01, NOW + timedelta(seconds=1)),
                    "unknown": QuotaInfo(None, NOW + timedelta(seconds=1)),
                    "past": QuotaInfo(0.0, NOW - timedelta(seconds=1)),
                    "now": QuotaInfo(0.0, NOW),
                    "no-reset": QuotaInfo(0.0),
                },
            )
        ]
        self.assertIsNone(next_global_reset(accounts, now=NOW))

    def test_ties_keep_input_order(self) -> None:
        reset = NOW + timedelta(minutes=1)
        accounts = [
            account("a@example.com", {"first": QuotaInfo(0.0, reset)}),
            account("b@example.com", {"second": QuotaInfo(0.0, reset)}),
        ]
        self.assertEqual(next_global_reset(accounts, now=NOW).model_id, "first")


class ComputeAggregatesTest(unittest.TestCase):
    def test_unusable_accounts_do_not_feed_any_aggregate(self) -> None:
        limits = LimitsSnapshot(
            models=("claude-a", "gemini-pro"),
            accounts=(
                account("a@example.com", {"claude-a": 0.8, "gemini-pro": 0.6}),
                account(
                    "b@example.com",
                    {"claude-a": QuotaInfo(0.0, NOW + timedelta(minutes=1))},
                    status="invalid",
                ),
            ),
        )
        snapshot = Snapshot(
            summary=SummarySnapshot(counts=AccountCounts(total=2)), limits=limits
        )
        aggregates = compute_aggregates(snapshot, now=NOW)

        self.assertAlmostEqual(aggregates.model_averages["claude-a"], 0.8)
        self.assertAlmostEqual(aggregates.overall_average, 0.7)
        self.assertAlmostEqual(aggregates.family_gauges["claude"].fraction, 0.8)
        self.assertEqual(aggregates.family_gauges["claude"].account_count, 1)
        self.assertAlmostEqual(aggregates.family_gauges["gemini"].fraction, 0.6)
        self.assertIsNone(aggregates.next_global_reset)

    def test_end_to_end_model_and_overall_average(self) -> None:
        limits = LimitsSnapshot(
            models=("m1", "m2"),
            accounts=(
                account("a@example.com", {"m1": 0.8}),
                account("b@example.com", {"m1": 0.4, "m2": None}),
                Account(email="c@example.com", status="error", error="boom"),
            ),
        )
        aggregates = compute_aggregates(
            Snapshot(summary=SummarySnapshot(), limits=limits), now=NOW
        )
        self.assertAlmostEqual(aggregates.model_averages["m1"], 0.6)
        self.assertIsNone(aggregates.model_averages["m2"])
        self.assertAlmostEqual(aggregates.overall_average, 0.6)


if __name__ == "__main__":
    unittest.main()
