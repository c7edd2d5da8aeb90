from decimal import Decimal

import pytest

from models import CompanyType, RatePeakType
from services.read_models import TariffProfile
from services.tariff_rates import base_rate, hourly_rates, resolve_rate


def _profile(**overrides):
    values = dict(
        country_id=1,
        industrial_rate=Decimal("0.5124"),
        commercial_rate=Decimal("0.6319"),
        peak_multiplier=Decimal("1.5"),
        mid_peak_multiplier=Decimal("1.2"),
        off_peak_multiplier=Decimal("0.8"),
        peak_hours=frozenset({17, 18, 19}),
        mid_peak_hours=frozenset({9, 10, 11}),
        off_peak_hours=frozenset({0, 1, 2}),
    )
    values.update(overrides)
    return TariffProfile(**values)


class TestBaseRate:
    def test_fems_pays_industrial(self):
        assert base_rate(CompanyType.FEMS, _profile()) == Decimal("0.5124")

    def test_bems_pays_commercial(self):
        assert base_rate(CompanyType.BEMS, _profile()) == Decimal("0.6319")


class TestResolveRate:
    def test_peak_price_is_rounded_half_up(self):
        rate = resolve_rate(CompanyType.BEMS, _profile(), 18)
        # 0.6319 * 1.5 = 0.94785
        assert rate.price == Decimal("0.9479")
        assert rate.band == RatePeakType.PEAK

    def test_peak_wins_over_mid_and_off_peak(self):
        profile = _profile(mid_peak_hours=frozenset({18}), off_peak_hours=frozenset({18}))
        assert resolve_rate(CompanyType.BEMS, profile, 18).band == RatePeakType.PEAK

    def test_mid_peak_wins_over_off_peak(self):
        profile = _profile(off_peak_hours=frozenset({10}))
        rate = resolve_rate(CompanyType.FEMS, profile, 10)
        assert rate.band == RatePeakType.MID_PEAK
        assert rate.price == Decimal("0.6149")  # 0.5124 * 1.2 = 0.61488

    def test_unlisted_hour_uses_base_rate(self):
        rate = resolve_rate(CompanyType.BEMS, _profile(), 14)
        assert rate.band == RatePeakType.UNKNOWN
        assert rate.price == Decimal("0.6319")

    def test_hour_out_of_range(self):
        with pytest.raises(ValueError):
            resolve_rate(CompanyType.BEMS, _profile(), 24)


def test_hourly_rates_cover_whole_day():
    table = hourly_rates(CompanyType.BEMS, _profile())
    assert sorted(table) == list(range(24))
    assert table[0].band == RatePeakType.OFF_PEAK
    assert table[0].price == Decimal("0.5055")  # 0.6319 * 0.8 = 0.50552
    assert all(r.price == r.price.quantize(Decimal("0.0001")) for r in table.values())
