# services/seeder.py
from __future__ import annotations
import json
from decimal import Decimal
from pathlib import Path
from typing import Dict

from tortoise.transactions import in_transaction

from models import Country, EnergyRate

DATA_DIR = Path(__file__).resolve().parent.parent / "data"

RATE_FIELDS = ("industrial_rate", "commercial_rate", "peak_multiplier", "mid_peak_multiplier", "off_peak_multiplier")
HOUR_FIELDS = ("peak_hours", "mid_peak_hours", "off_peak_hours")


def _load_json(filename: str):
    p = DATA_DIR / filename
    return json.loads(p.read_text(encoding="utf-8")) if p.exists() else []


async def seed_if_empty(logger=print):
    countries_count = await Country.all().count()
    rates_count = await EnergyRate.all().count()

    logger(f"[seed] counts => countries={countries_count}, energy_rates={rates_count}")

    if countries_count and rates_count:
        logger("[seed] already populated, skipping.")
        return

    countries_seed = _load_json("countries_seed.json")
    rates_seed = _load_json("energy_rates_seed.json")

    created = {"countries": 0, "energy_rates": 0}
    skipped = {"countries": 0, "energy_rates": 0}
    countries_by_name: Dict[str, Country] = {}

    async with in_transaction():
        # -------------------
        # Countries
        # -------------------
        for c in countries_seed:
            name = (c.get("name") or "").strip()
            if not name:
                skipped["countries"] += 1
                continue
            obj = await Country.get_or_none(name=name)
            if not obj:
                obj = await Country.create(
                    name=name,
                    language_code=c.get("language_code"),
                    time_zone=c.get("time_zone") or "UTC",
                )
                created["countries"] += 1
            else:
                skipped["countries"] += 1
            countries_by_name[name] = obj

        # -------------------
        # Energy rates (one per country)
        # -------------------
        for r in rates_seed:
            country = countries_by_name.get((r.get("country") or "").strip())
            if country is None or await EnergyRate.exists(country_id=country.id):
                skipped["energy_rates"] += 1
                continue
            await EnergyRate.create(
                country=country,
                **{f: Decimal(str(r[f])) for f in RATE_FIELDS},
                **{f: sorted(int(h) for h in r.get(f) or []) for f in HOUR_FIELDS},
            )
            created["energy_rates"] += 1

    logger(
        "[seed] done.\n"
        f"  created={created}\n"
        f"  skipped={skipped}"
    )
