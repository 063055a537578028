from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey
from sqlalchemy.sql import func
from fleetkeeper.core.database import Base


class MaintenanceRecord(Base):
    __tablename__ = "maintenance_records"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="CASCADE"), index=True, nullable=False)
    truck_id = Column(Integer, ForeignKey("trucks.id", ondelete="CASCADE"), index=True, nullable=False)

    # Maintenance details
    maintenance_type = Column(String(100), nullable=False)  # oil_change, tire_rotation, etc.
    performed_at = Column(DateTime(timezone=True), nullable=False)
    mileage = Column(Integer, nullable=False)
    next_due_mileage = Column(Integer)

    # Parts and notes
    part_make_model = Column(String(200))
    notes = Column(Text)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
