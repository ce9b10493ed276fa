"""Error taxonomy for the tracking core."""


class TransitError(Exception):
    """Base class for all tracking errors."""


class PreconditionError(TransitError):
    """Operation attempted in the wrong state."""


class ClaimConflictError(TransitError):
    """Vehicle is already claimed by another driver."""

    def __init__(self, vehicle_id: str, holder: str = None):
        self.vehicle_id = vehicle_id
        self.holder = holder
        super().__init__(f"Vehicle {vehicle_id} is currently locked by another driver")


class InvalidRouteError(TransitError):
    """Route cannot be built from the given stops."""


class GeofenceInputError(TransitError):
    """Stop coordinates are malformed."""


class EtaError(TransitError):
    """Base class for recoverable ETA failures."""

    placeholder = "ETA not available"


class EtaUnavailable(EtaError):
    """Routing oracle returned no routes or no legs."""


class EtaTransportError(EtaError):
    """Network or parse failure talking to the routing oracle."""

    placeholder = "Error fetching ETA"


class StoreTransportError(TransitError):
    """Network failure talking to the vehicle-state store."""


class LocationUnavailableError(TransitError):
    """Device could not produce a position fix."""
