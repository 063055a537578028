from fleetkeeper.models.user import AuthUser
from fleetkeeper.models.company import Company
from fleetkeeper.models.truck import Truck
from fleetkeeper.models.maintenance import MaintenanceRecord

__all__ = ["AuthUser", "Company", "Truck", "MaintenanceRecord"]
