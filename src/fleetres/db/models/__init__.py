from fleetres.db.models.base import ORMBase
from fleetres.db.models.vehicle import Vehicle
from fleetres.db.models.assignment import Assignment


__all__ = ['ORMBase', 'Vehicle', 'Assignment']
