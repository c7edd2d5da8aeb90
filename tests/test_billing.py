from dataclasses import replace
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

from models import SubscriptionService
from services.billing import (
    PaymentFacts, api_call_amount, iot_installation_amount, recalculate_amount, storage_amount,
    subscription_amount, summarize_payments,
)
from services.decimal_math import GIB


def _usage(api_calls=0, iots=0):
    return SimpleNamespace(api_call_count=api_calls, iot_installation_count=iots)


class TestChargeLines:
    def test_api_calls_and_iot(self, rates):
        usage = _usage(api_calls=12345, iots=4)
        assert api_call_amount(usage, rates) == Decimal("1.2345")
        assert iot_installation_amount(usage, rates) == Decimal("2.0")

    def test_missing_usage_costs_nothing(self, rates):
        assert api_call_amount(None, rates) == 0
        assert iot_installation_amount(None, rates) == 0

    def test_storage_within_free_limit(self, rates):
        assert storage_amount(19 * GIB, rates) == 0
        assert storage_amount(20 * GIB, rates) == 0

    def test_storage_over_free_limit(self, rates):
        assert storage_amount(21 * GIB, rates) == Decimal("0.1")

    def test_storage_excess_rounds_to_whole_gb(self, rates):
        assert storage_amount(20 * GIB + GIB // 4, rates) == 0
        assert storage_amount(20 * GIB + GIB // 2, rates) == Decimal("0.1")
        assert storage_amount(23 * GIB + (GIB * 3) // 4, rates) == Decimal("0.4")

    def test_subscriptions_use_daily_flat_rates(self, rates):
        services = [SubscriptionService.REPORT_DOWNLOAD, "AI_ENERGY_USAGE_FORECAST", SubscriptionService.INTERACTIVE_AI]
        assert subscription_amount(services, rates) == Decimal("0.47")
        assert subscription_amount(None, rates) == 0


def test_cancelling_the_only_subscription_drops_its_charge(rates):
    rates = replace(rates, subscription_rates={SubscriptionService.REPORT_DOWNLOAD: Decimal("10")})
    usage = _usage(api_calls=50000, iots=6)  # 5 + 3

    assert recalculate_amount(usage, [SubscriptionService.REPORT_DOWNLOAD], 0, rates) == Decimal("18")
    assert recalculate_amount(usage, [], 0, rates) == Decimal("8")


def test_recalculate_amount_is_sum_of_lines(rates):
    usage = _usage(api_calls=100, iots=2)
    services = [SubscriptionService.AI_ENERGY_USAGE_FORECAST]
    total = recalculate_amount(usage, services, 22 * GIB, rates)
    assert total == (
        api_call_amount(usage, rates)
        + iot_installation_amount(usage, rates)
        + storage_amount(22 * GIB, rates)
        + subscription_amount(services, rates)
    )
    assert total == Decimal("0.01") + Decimal("1.0") + Decimal("0.2") + Decimal("0.24")


class TestSummary:
    def _facts(self):
        return [
            PaymentFacts(1, date(2024, 6, 1), 10 * GIB, [SubscriptionService.REPORT_DOWNLOAD], 1000, 4),
            PaymentFacts(1, date(2024, 6, 2), 22 * GIB, [SubscriptionService.REPORT_DOWNLOAD], 2000, 6),
            PaymentFacts(1, date(2024, 6, 3), 21 * GIB, [], 3000, 5),
            PaymentFacts(2, date(2024, 6, 3), 5 * GIB, [SubscriptionService.INTERACTIVE_AI]),
        ]

    def test_api_calls_are_summed(self, rates):
        s = summarize_payments(self._facts(), date(2024, 6, 30), rates)
        assert s.summary_api_call_count == 6000
        assert s.summary_api_call_amount == Decimal("0.6")

    def test_iot_count_is_not_summed(self, rates):
        s = summarize_payments(self._facts(), date(2024, 6, 30), rates)
        assert s.recently_iot_installation_count == 6
        assert s.summary_iot_installation_amount == Decimal("3.0")

    def test_iot_count_after_range_end_is_ignored(self, rates):
        s = summarize_payments(self._facts(), date(2024, 6, 1), rates)
        assert s.recently_iot_installation_count == 4

    def test_storage_and_subscriptions(self, rates):
        s = summarize_payments(self._facts(), date(2024, 6, 30), rates)
        assert s.recently_storage_usage == {1: 22 * GIB, 2: 5 * GIB}
        assert s.summary_storage_usage_amount == Decimal("0.3")
        assert s.subscribed_count == {1: {"REPORT_DOWNLOAD": 2}, 2: {"INTERACTIVE_AI": 1}}
        assert s.summary_subscription_amount == Decimal("0.40")
        assert s.summary_amount == Decimal("0.6") + Decimal("3.0") + Decimal("0.3") + Decimal("0.40")

    def test_empty(self, rates):
        s = summarize_payments([], date(2024, 6, 30), rates)
        assert s.summary_amount == 0
        assert s.subscribed_count == {}
