"""Dashboard figures and truck search, computed from already-fetched rows."""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from fleetkeeper.schemas.maintenance import MaintenanceResponse
from fleetkeeper.schemas.truck import TruckResponse


@dataclass
class RecentMaintenance:
    record: MaintenanceResponse
    truck_label: str


@dataclass
class UpcomingMaintenance:
    truck_id: int
    truck_label: str
    due_date: date
    days_until: int


@dataclass
class DashboardSummary:
    total_trucks: int = 0
    trucks_needing_maintenance: int = 0
    recent_maintenance_count: int = 0
    recent: List[RecentMaintenance] = field(default_factory=list)
    upcoming: List[UpcomingMaintenance] = field(default_factory=list)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def last_service_dates(records: Iterable[MaintenanceResponse]) -> Dict[int, datetime]:
    """Most recent ``performed_at`` per truck id."""
    latest: Dict[int, datetime] = {}
    for record in records:
        performed = _as_utc(record.performed_at)
        if record.truck_id not in latest or performed > latest[record.truck_id]:
            latest[record.truck_id] = performed
    return latest


def mileage_due(truck: TruckResponse, records: Iterable[MaintenanceResponse]) -> bool:
    """True if the latest record of any maintenance type has come due by mileage."""
    latest_by_type: Dict[str, MaintenanceResponse] = {}
    for record in records:
        if record.truck_id != truck.id:
            continue
        current = latest_by_type.get(record.maintenance_type)
        if current is None or _as_utc(record.performed_at) > _as_utc(current.performed_at):
            latest_by_type[record.maintenance_type] = record
    return any(r.is_due(truck.current_mileage) for r in latest_by_type.values())


def needs_maintenance(
    truck: TruckResponse,
    last_service: Optional[datetime],
    records: Iterable[MaintenanceResponse],
    now: datetime,
    stale_days: int = 30,
) -> bool:
    if last_service is None:
        return True
    if last_service < now - timedelta(days=stale_days):
        return True
    return mileage_due(truck, records)


def build_dashboard(
    trucks: List[TruckResponse],
    records: List[MaintenanceResponse],
    now: Optional[datetime] = None,
    interval_days: int = 90,
    stale_days: int = 30,
    window_days: int = 30,
    limit: int = 5,
) -> DashboardSummary:
    """Summarise a company's fleet.

    ``records`` must be ordered newest first. Upcoming maintenance assumes a
    fixed service interval after each truck's last service and only lists
    due dates within ``window_days`` from now.
    """
    now = _as_utc(now or datetime.now(timezone.utc))
    labels = {truck.id: truck.label for truck in trucks}
    latest = last_service_dates(records)

    needing = [
        truck for truck in trucks
        if needs_maintenance(truck, latest.get(truck.id), records, now, stale_days)
    ]

    recent = [
        RecentMaintenance(record=record, truck_label=labels.get(record.truck_id, "Unknown truck"))
        for record in records[:limit]
    ]

    upcoming = []
    for truck in trucks:
        last = latest.get(truck.id)
        if last is None:
            continue
        due = last + timedelta(days=interval_days)
        days_until = (due.date() - now.date()).days
        if 0 < days_until <= window_days:
            upcoming.append(
                UpcomingMaintenance(
                    truck_id=truck.id,
                    truck_label=truck.label,
                    due_date=due.date(),
                    days_until=days_until,
                )
            )
    upcoming.sort(key=lambda item: item.days_until)

    return DashboardSummary(
        total_trucks=len(trucks),
        trucks_needing_maintenance=len(needing),
        recent_maintenance_count=len(recent),
        recent=recent,
        upcoming=upcoming[:limit],
    )


def filter_trucks(trucks: Iterable[TruckResponse], term: Optional[str]) -> List[TruckResponse]:
    """Case-insensitive substring match on make, model, VIN and license plate."""
    trucks = list(trucks)
    term = (term or "").strip().lower()
    if not term:
        return trucks
    return [
        truck for truck in trucks
        if any(term in value.lower() for value in (truck.make, truck.model, truck.vin, truck.license_plate))
    ]
