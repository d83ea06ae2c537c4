"""
Test configuration and fixtures for the Data Grid API.

Store-backed tests run against a throwaway SQLite database (aiosqlite) in the
pytest temporary directory. NullPool keeps connections from outliving the
event loop that opened them, since fixtures, TestClient and async tests each
run their own loop.
"""
import asyncio

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import NullPool

from datagrid.main import create_app
from datagrid.registry import get_registry
from datagrid.services.db_operations import ItemStore

SAMPLE_RECORDS = [
    {
        "id": 1, "Brand": "Tesla", "Model": "Model 3 Long Range Dual Motor",
        "AccelSec": 4.6, "TopSpeed_KmH": 233, "Range_Km": 450, "Efficiency_WhKm": 161,
        "FastCharge_KmH": 940, "RapidCharge": "Yes", "PowerTrain": "AWD",
        "PlugType": "Type 2 CCS", "BodyStyle": "Sedan", "Segment": "D", "Seats": 5,
        "PriceEuro": 55480, "Date": "2020-01-15",
    },
    {
        "id": 2, "Brand": "Volkswagen", "Model": "ID.3 Pure",
        "AccelSec": 10.0, "TopSpeed_KmH": 160, "Range_Km": 270, "Efficiency_WhKm": 167,
        "FastCharge_KmH": 250, "RapidCharge": "Yes", "PowerTrain": "RWD",
        "PlugType": "Type 2 CCS", "BodyStyle": "Hatchback", "Segment": "C", "Seats": 5,
        "PriceEuro": 30000, "Date": "2020-06-01",
    },
    {
        "id": 3, "Brand": "Polestar", "Model": "2",
        "AccelSec": 4.7, "TopSpeed_KmH": 210, "Range_Km": 400, "Efficiency_WhKm": 181,
        "FastCharge_KmH": 620, "RapidCharge": "Yes", "PowerTrain": "AWD",
        "PlugType": "Type 2 CCS", "BodyStyle": "Liftback", "Segment": "D", "Seats": 5,
        "PriceEuro": 56440, "Date": "2020-03-10",
    },
    {
        "id": 4, "Brand": "BMW", "Model": "iX3",
        "AccelSec": 6.8, "TopSpeed_KmH": 180, "Range_Km": 360, "Efficiency_WhKm": 206,
        "FastCharge_KmH": 560, "RapidCharge": "Yes", "PowerTrain": "RWD",
        "PlugType": "Type 2 CCS", "BodyStyle": "SUV", "Segment": "D", "Seats": 5,
        "PriceEuro": 68040, "Date": "2021-01-20",
    },
    {
        "id": 5, "Brand": "Honda", "Model": "e",
        "AccelSec": 9.5, "TopSpeed_KmH": 145, "Range_Km": 170, "Efficiency_WhKm": 168,
        "FastCharge_KmH": 190, "RapidCharge": "Yes", "PowerTrain": "RWD",
        "PlugType": "Type 2 CCS", "BodyStyle": "Hatchback", "Segment": "B", "Seats": 4,
        "PriceEuro": 32997, "Date": None,
    },
    {
        "id": 6, "Brand": "Renault", "Model": "Kangoo Maxi ZE 33",
        "AccelSec": 22.4, "TopSpeed_KmH": 130, "Range_Km": 160, "Efficiency_WhKm": 194,
        "FastCharge_KmH": None, "RapidCharge": "No", "PowerTrain": "FWD",
        "PlugType": "Type 2", "BodyStyle": "SPV", "Segment": "N", "Seats": 5,
        "PriceEuro": 38000, "Date": "",
    },
]

NEW_VEHICLE = {
    "Brand": "Kia", "Model": "e-Niro 64 kWh",
    "AccelSec": 7.8, "TopSpeed_KmH": 167, "Range_Km": 370, "Efficiency_WhKm": 173,
    "FastCharge_KmH": 350, "RapidCharge": "Yes", "PowerTrain": "FWD",
    "PlugType": "Type 2 CCS", "BodyStyle": "SUV", "Segment": "C", "Seats": 5,
    "PriceEuro": 38105, "Date": "2019-09-01",
}


@pytest.fixture
def registry():
    return get_registry()


@pytest.fixture
def new_vehicle():
    return dict(NEW_VEHICLE)


@pytest.fixture
def sample_records():
    return [dict(record) for record in SAMPLE_RECORDS]


@pytest.fixture
def store(tmp_path, registry):
    """Record store on a fresh SQLite file seeded with SAMPLE_RECORDS."""
    store = ItemStore.from_url(
        registry,
        f"sqlite+aiosqlite:///{tmp_path / 'datagrid.db'}",
        poolclass=NullPool,
    )

    async def seed():
        await store.create_schema()
        for record in SAMPLE_RECORDS:
            await store.insert(record)

    asyncio.run(seed())
    yield store
    asyncio.run(store.dispose())


class FakeTextGenerator:
    """Records prompts and answers with a canned comparison."""

    def __init__(self, answer="The BMW iX3 costs more but the Tesla goes further."):
        self.answer = answer
        self.prompts = []

    async def __call__(self, prompt):
        self.prompts.append(prompt)
        return self.answer


@pytest.fixture
def text_generator():
    return FakeTextGenerator()


@pytest.fixture
def app(store, text_generator):
    return create_app(store=store, text_generator=text_generator)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
