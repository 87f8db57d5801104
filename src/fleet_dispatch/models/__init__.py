"""SQLAlchemy ORM models."""

# Import all models so Base.metadata registers them for create_all().
from fleet_dispatch.models.command import Command as Command
from fleet_dispatch.models.device import Device as Device
