from datetime import date
from decimal import Decimal

import pytest
import pytest_asyncio
from tortoise import Tortoise

from models import Company, CompanyType, Country, EnergyRate, Iot
from services.billing import BillingRates


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory database per test."""
    await Tortoise.init(
        db_url="sqlite://:memory:",
        modules={"models": ["models"]},
        use_tz=True,
        timezone="UTC",
    )
    await Tortoise.generate_schemas()
    yield
    await Tortoise.close_connections()


@pytest_asyncio.fixture
async def korea(db):
    country = await Country.create(name="Korea", language_code="ko", time_zone="Asia/Seoul")
    await EnergyRate.create(
        country=country,
        industrial_rate=Decimal("0.5124"),
        commercial_rate=Decimal("0.6319"),
        peak_multiplier=Decimal("1.5"),
        mid_peak_multiplier=Decimal("1.2"),
        off_peak_multiplier=Decimal("0.8"),
        peak_hours=[17, 18, 19],
        mid_peak_hours=[9, 10, 11],
        off_peak_hours=[0, 1, 2, 3],
    )
    return country


@pytest_asyncio.fixture
async def company(korea):
    return await Company.create(name="Gangnam Tower", type=CompanyType.BEMS, country=korea)


@pytest_asyncio.fixture
async def iot(company):
    return await Iot.create(serial_number="IOT-0001", company=company)


@pytest.fixture
def rates():
    return BillingRates(
        api_call_rate=Decimal("0.0001"),
        iot_installation_rate=Decimal("0.5"),
        storage_rate_per_gb=Decimal("0.1"),
        free_storage_limit_gb=20,
    )


@pytest.fixture
def today():
    return date(2024, 6, 15)
