from datetime import datetime, timedelta, timezone

from fleetkeeper.schemas.maintenance import MaintenanceResponse
from fleetkeeper.schemas.truck import TruckResponse
from fleetkeeper.services.fleet_summary import (
    build_dashboard,
    filter_trucks,
    last_service_dates,
    mileage_due,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_truck(truck_id: int, mileage: int = 100000, **overrides) -> TruckResponse:
    values = {
        "id": truck_id,
        "company_id": 1,
        "vin": f"1FUJGLDR5CLBP88{truck_id:02d}",
        "license_plate": f"PLATE{truck_id}",
        "year": 2019,
        "make": "Freightliner",
        "model": "Cascadia",
        "current_mileage": mileage,
    }
    values.update(overrides)
    return TruckResponse(**values)


_record_ids = iter(range(1, 10000))


def make_record(truck_id: int, days_ago: int, maintenance_type: str = "Oil Change", **overrides) -> MaintenanceResponse:
    values = {
        "id": next(_record_ids),
        "company_id": 1,
        "truck_id": truck_id,
        "maintenance_type": maintenance_type,
        "performed_at": NOW - timedelta(days=days_ago),
        "mileage": 90000,
    }
    values.update(overrides)
    return MaintenanceResponse(**values)


def test_empty_fleet() -> None:
    summary = build_dashboard([], [], now=NOW)

    assert summary.total_trucks == 0
    assert summary.trucks_needing_maintenance == 0
    assert summary.recent == []
    assert summary.upcoming == []


def test_trucks_never_serviced_need_maintenance() -> None:
    summary = build_dashboard([make_truck(1), make_truck(2)], [make_record(2, days_ago=5)], now=NOW)

    assert summary.total_trucks == 2
    assert summary.trucks_needing_maintenance == 1


def test_stale_service_needs_maintenance() -> None:
    summary = build_dashboard([make_truck(1)], [make_record(1, days_ago=45)], now=NOW, stale_days=30)

    assert summary.trucks_needing_maintenance == 1


def test_mileage_due_uses_latest_record_per_type() -> None:
    truck = make_truck(1, mileage=105000)
    newest = make_record(1, days_ago=2, next_due_mileage=115000)
    older = make_record(1, days_ago=20, next_due_mileage=100000)

    assert mileage_due(truck, [newest, older]) is False
    assert mileage_due(truck, [older]) is True


def test_recent_maintenance_is_limited_and_labelled() -> None:
    trucks = [make_truck(1)]
    records = [make_record(1, days_ago=d) for d in range(7)]

    summary = build_dashboard(trucks, records, now=NOW, limit=5)

    assert summary.recent_maintenance_count == 5
    assert summary.recent[0].record.id == records[0].id
    assert summary.recent[0].truck_label == "2019 Freightliner Cascadia"


def test_upcoming_maintenance_within_window() -> None:
    trucks = [make_truck(1), make_truck(2), make_truck(3)]
    records = [
        make_record(1, days_ago=80),
        make_record(2, days_ago=70),
        make_record(3, days_ago=10),
    ]

    summary = build_dashboard(trucks, records, now=NOW, interval_days=90, window_days=30)

    assert [(item.truck_id, item.days_until) for item in summary.upcoming] == [(1, 10), (2, 20)]


def test_naive_datetimes_are_treated_as_utc() -> None:
    naive = make_record(1, days_ago=0, performed_at=datetime(2024, 5, 30))

    latest = last_service_dates([naive])

    assert latest[1] == datetime(2024, 5, 30, tzinfo=timezone.utc)


def test_filter_trucks() -> None:
    trucks = [
        make_truck(1),
        make_truck(2, make="Volvo", model="VNL", license_plate="XYZ987"),
    ]

    assert [t.id for t in filter_trucks(trucks, "volvo")] == [2]
    assert [t.id for t in filter_trucks(trucks, "xyz")] == [2]
    assert [t.id for t in filter_trucks(trucks, "cascadia")] == [1]
    assert [t.id for t in filter_trucks(trucks, "  ")] == [1, 2]
    assert filter_trucks(trucks, "kenworth") == []
