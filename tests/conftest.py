import mongomock
import pytest
from fastapi.testclient import TestClient

import main


@pytest.fixture()
def mongo(monkeypatch):
    db = mongomock.MongoClient()["milkdb"]
    monkeypatch.setattr(main, "milk_production_collection", db["milk_production"])
    monkeypatch.setattr(main, "mpp_collection", db["mpp_milk_collections"])
    return db


@pytest.fixture()
def rate_table(monkeypatch):
    table = {
        (4.5, 8.5): 32.5,
        (4.5, 9.0): 34.0,
        (5.0, 8.5): 35.0,
        (5.0, 9.0): 36.5,
    }
    monkeypatch.setattr(main, "rate_chart", table)
    return table


@pytest.fixture()
def client(mongo):
    return TestClient(main.app)


@pytest.fixture()
def records():
    return [
        {"cattle_id": "c1", "date": "2024-01-01", "shift": "morning", "morning_amount": 10, "evening_amount": 8},
        {"cattle_id": "c1", "date": "2024-01-01T00:00:00.000Z", "shift": "evening", "evening_amount": 5},
        {"cattle_id": "c2", "date": "2024-01-02", "shift": "morning", "morning_amount": 12, "evening_amount": 0},
    ]
