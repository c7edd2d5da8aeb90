from datetime import date, datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from models import AIForecastEnergy, Company, CompanyType, Country, Energy, Iot, RatePeakType
from services.energy_service import (
    get_realtime_and_last_month, get_this_and_last_month, read_energy, read_hourly_rates,
)
from services.errors import ConfigurationMissing, ReferenceNotFound

SEOUL = ZoneInfo("Asia/Seoul")
UTC = timezone.utc


async def _reading(iot, local: datetime, usage: str):
    return await Energy.create(iot=iot, facility_usage=Decimal(usage), reference_time=local.astimezone(UTC))


class TestReadEnergy:
    @pytest.mark.asyncio
    async def test_peak_hour_reading(self, company, iot):
        await _reading(iot, datetime(2024, 6, 3, 18, 0, tzinfo=SEOUL), "10")
        await AIForecastEnergy.create(
            company=company, forecast_usage=Decimal("8"),
            forecast_time=datetime(2024, 6, 3, 18, 0, tzinfo=SEOUL).astimezone(UTC),
        )

        summary = await read_energy(company.id, date(2024, 6, 3))

        assert summary.usage == Decimal("10")
        assert summary.forecast_usage == Decimal("8")
        assert summary.bill == Decimal("9.479")
        assert summary.forecast_bill == Decimal("7.5832")
        hour = summary.months[0].days[0].hours[0]
        assert hour.reference_time.astimezone(SEOUL).hour == 18

    @pytest.mark.asyncio
    async def test_range_is_local_days(self, company, iot):
        # 00:30 and 23:30 Seoul on June 3 are both inside; 00:30 on June 4 is not
        await _reading(iot, datetime(2024, 6, 3, 0, 30, tzinfo=SEOUL), "1")
        await _reading(iot, datetime(2024, 6, 3, 23, 30, tzinfo=SEOUL), "2")
        await _reading(iot, datetime(2024, 6, 4, 0, 30, tzinfo=SEOUL), "4")

        summary = await read_energy(company.id, date(2024, 6, 3))
        assert summary.usage == Decimal("3")

        both = await read_energy(company.id, date(2024, 6, 3), date(2024, 6, 4))
        assert both.usage == Decimal("7")
        assert [d.reference_date for d in both.months[0].days] == [date(2024, 6, 3), date(2024, 6, 4)]

    @pytest.mark.asyncio
    async def test_other_companies_readings_are_excluded(self, company, iot, korea):
        other = await Company.create(name="Other", type=CompanyType.FEMS, country=korea)
        other_iot = await Iot.create(serial_number="IOT-9999", company=other)
        await _reading(iot, datetime(2024, 6, 3, 12, 0, tzinfo=SEOUL), "1")
        await _reading(other_iot, datetime(2024, 6, 3, 12, 0, tzinfo=SEOUL), "50")

        summary = await read_energy(company.id, date(2024, 6, 3))
        assert summary.usage == Decimal("1")

    @pytest.mark.asyncio
    async def test_no_data_is_not_an_error(self, company):
        summary = await read_energy(company.id, date(2024, 6, 3))
        assert summary.months == []
        assert summary.bill == 0

    @pytest.mark.asyncio
    async def test_unknown_company(self, db):
        with pytest.raises(ReferenceNotFound):
            await read_energy(404, date(2024, 6, 3))

    @pytest.mark.asyncio
    async def test_country_without_tariff(self, db):
        country = await Country.create(name="Nowhere", language_code="xx", time_zone="UTC")
        lonely = await Company.create(name="Lonely", type=CompanyType.BEMS, country=country)
        with pytest.raises(ConfigurationMissing):
            await read_energy(lonely.id, date(2024, 6, 3))


class TestPairedViews:
    @pytest.mark.asyncio
    async def test_realtime_and_last_month(self, company, iot):
        await _reading(iot, datetime(2024, 6, 15, 10, 0, tzinfo=SEOUL), "2")
        await _reading(iot, datetime(2024, 5, 15, 10, 0, tzinfo=SEOUL), "3")
        await _reading(iot, datetime(2024, 5, 16, 10, 0, tzinfo=SEOUL), "100")

        realtime, last_month = await get_realtime_and_last_month(company.id, today=date(2024, 6, 15))
        assert realtime.usage == Decimal("2")
        assert last_month.usage == Decimal("3")

    @pytest.mark.asyncio
    async def test_this_and_last_month(self, company, iot):
        await _reading(iot, datetime(2024, 6, 1, 0, 30, tzinfo=SEOUL), "2")
        await _reading(iot, datetime(2024, 6, 30, 23, 30, tzinfo=SEOUL), "3")
        await _reading(iot, datetime(2024, 5, 31, 23, 30, tzinfo=SEOUL), "5")
        await _reading(iot, datetime(2024, 4, 30, 23, 30, tzinfo=SEOUL), "7")

        this_month, last_month = await get_this_and_last_month(company.id, today=date(2024, 6, 15))
        assert this_month.usage == Decimal("5")
        assert last_month.usage == Decimal("5")
        assert [m.reference_month for m in last_month.months] == [date(2024, 5, 1)]


class TestHourlyRates:
    @pytest.mark.asyncio
    async def test_single_company(self, company):
        table = await read_hourly_rates(company.id)
        assert list(table) == [company.id]
        assert table[company.id][18].price == Decimal("0.9479")
        assert table[company.id][18].band == RatePeakType.PEAK
        assert table[company.id][14].band == RatePeakType.UNKNOWN

    @pytest.mark.asyncio
    async def test_all_companies_skip_missing_tariff(self, company, korea):
        fems = await Company.create(name="Plant", type=CompanyType.FEMS, country=korea)
        bare = await Country.create(name="Nowhere", language_code="xx", time_zone="UTC")
        await Company.create(name="Lonely", type=CompanyType.BEMS, country=bare)

        table = await read_hourly_rates()
        assert set(table) == {company.id, fems.id}
        assert table[fems.id][14].price == Decimal("0.5124")

    @pytest.mark.asyncio
    async def test_single_company_without_tariff(self, db):
        bare = await Country.create(name="Nowhere", language_code="xx", time_zone="UTC")
        lonely = await Company.create(name="Lonely", type=CompanyType.BEMS, country=bare)
        with pytest.raises(ConfigurationMissing):
            await read_hourly_rates(lonely.id)
