from fleetkeeper.schemas.auth import User, AuthSession, AuthChangeEvent, LoginForm, RegisterForm
from fleetkeeper.schemas.company import CompanyForm, CompanyResponse
from fleetkeeper.schemas.truck import TruckForm, TruckResponse
from fleetkeeper.schemas.maintenance import MaintenanceForm, MaintenanceResponse, MAINTENANCE_TYPES
from fleetkeeper.schemas.forms import parse_form

__all__ = [
    "User", "AuthSession", "AuthChangeEvent", "LoginForm", "RegisterForm",
    "CompanyForm", "CompanyResponse",
    "TruckForm", "TruckResponse",
    "MaintenanceForm", "MaintenanceResponse", "MAINTENANCE_TYPES",
    "parse_form",
]
