from enum import Enum

from tortoise import fields, models


# -------- Enumerations --------
class CompanyType(str, Enum):
    FEMS = "FEMS"  # factory energy management -> industrial rate
    BEMS = "BEMS"  # building energy management -> commercial rate


class RatePeakType(str, Enum):
    PEAK = "PEAK"
    MID_PEAK = "MID_PEAK"
    OFF_PEAK = "OFF_PEAK"
    UNKNOWN = "UNKNOWN"


class SubscriptionService(str, Enum):
    REPORT_DOWNLOAD = "REPORT_DOWNLOAD"
    AI_ENERGY_USAGE_FORECAST = "AI_ENERGY_USAGE_FORECAST"
    INTERACTIVE_AI = "INTERACTIVE_AI"


class PaymentMethod(str, Enum):
    TRANSFER = "TRANSFER"
    CARD = "CARD"


class PaymentStatus(str, Enum):
    COMPLETE = "COMPLETE"
    OUTSTANDING = "OUTSTANDING"


# -------- Tenants --------
class Country(models.Model):
    id = fields.IntField(pk=True)
    name = fields.CharField(max_length=20, unique=True, index=True)
    language_code = fields.CharField(max_length=5, unique=True)
    time_zone = fields.CharField(max_length=50)  # IANA zone, e.g. "Asia/Seoul"
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "countries"

    def __str__(self) -> str:
        return self.name


class Company(models.Model):
    id = fields.IntField(pk=True)
    name = fields.CharField(max_length=50, index=True)
    type = fields.CharEnumField(CompanyType, max_length=4)
    country = fields.ForeignKeyField("models.Country", related_name="companies", on_delete=fields.RESTRICT, index=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "companies"

    def __str__(self) -> str:
        return self.name


# -------- Devices & series --------
class Iot(models.Model):
    id = fields.IntField(pk=True)
    serial_number = fields.CharField(max_length=64, unique=True, index=True)
    company = fields.ForeignKeyField("models.Company", related_name="iots", on_delete=fields.CASCADE, index=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "iots"

    def __str__(self) -> str:
        return self.serial_number


class Energy(models.Model):
    """Actual facility usage measured by one IoT device (UTC timestamp)."""
    id = fields.IntField(pk=True)
    iot = fields.ForeignKeyField("models.Iot", related_name="energies", on_delete=fields.CASCADE, index=True)
    facility_usage = fields.DecimalField(max_digits=19, decimal_places=4, default=0)
    reference_time = fields.DatetimeField(index=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "energies"
        indexes = (("iot_id", "reference_time"),)


class AIForecastEnergy(models.Model):
    """Forecast usage for a whole company (UTC timestamp)."""
    id = fields.IntField(pk=True)
    company = fields.ForeignKeyField("models.Company", related_name="forecasts", on_delete=fields.CASCADE, index=True)
    forecast_usage = fields.DecimalField(max_digits=19, decimal_places=4, default=0)
    forecast_time = fields.DatetimeField(index=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "ai_forecast_energies"
        indexes = (("company_id", "forecast_time"),)


# ========================
# Tariffs
# ========================
class EnergyRate(models.Model):
    """
    Time-of-day tariff of one country. Hour lists hold 0..23 and are expected
    to be disjoint; hours missing from all three lists bill at the base rate.
    """
    id = fields.IntField(pk=True)
    country = fields.OneToOneField("models.Country", related_name="energy_rate", on_delete=fields.CASCADE)
    industrial_rate = fields.DecimalField(max_digits=19, decimal_places=4)
    commercial_rate = fields.DecimalField(max_digits=19, decimal_places=4)
    peak_multiplier = fields.DecimalField(max_digits=7, decimal_places=4)
    mid_peak_multiplier = fields.DecimalField(max_digits=7, decimal_places=4)
    off_peak_multiplier = fields.DecimalField(max_digits=7, decimal_places=4)
    peak_hours = fields.JSONField(default=list)
    mid_peak_hours = fields.JSONField(default=list)
    off_peak_hours = fields.JSONField(default=list)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "energy_rates"

    def __str__(self) -> str:
        return f"EnergyRate(country={self.country_id})"


# ========================
# Metering & billing
# ========================
class MeteredUsage(models.Model):
    id = fields.IntField(pk=True)
    company = fields.ForeignKeyField("models.Company", related_name="metered_usages", on_delete=fields.CASCADE, index=True)
    usage_date = fields.DateField(index=True)
    api_call_count = fields.BigIntField(default=0)
    iot_installation_count = fields.IntField(default=0)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "metered_usages"
        unique_together = ("company", "usage_date")


class Subscription(models.Model):
    id = fields.IntField(pk=True)
    company = fields.ForeignKeyField("models.Company", related_name="subscriptions", on_delete=fields.CASCADE, index=True)
    service = fields.CharEnumField(SubscriptionService, max_length=30)
    start_date = fields.DateField(index=True)
    end_date = fields.DateField(null=True, index=True)  # null = still active; otherwise last billed day
    cancelled = fields.BooleanField(default=False)  # cancelled on end_date, which is then not billed
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "subscriptions"

    def __str__(self) -> str:
        return f"{self.service.value}@{self.company_id} ({self.start_date}..{self.end_date or '∞'})"


class Payment(models.Model):
    id = fields.IntField(pk=True)
    company = fields.ForeignKeyField("models.Company", related_name="payments", on_delete=fields.CASCADE, index=True)
    metered_usage = fields.ForeignKeyField("models.MeteredUsage", null=True, related_name="payments",
                                           on_delete=fields.SET_NULL, index=True)
    subscription_services = fields.JSONField(default=list)  # list of SubscriptionService values
    storage_usage = fields.BigIntField(default=0)  # bytes
    method = fields.CharEnumField(PaymentMethod, max_length=8, default=PaymentMethod.CARD)
    amount = fields.DecimalField(max_digits=19, decimal_places=4, default=0)
    status = fields.CharEnumField(PaymentStatus, max_length=12, default=PaymentStatus.OUTSTANDING)
    usage_date = fields.DateField(index=True)
    scheduled_payment_date = fields.DateField()
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "payments"
