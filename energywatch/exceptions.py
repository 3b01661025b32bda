"""
Exception hierarchy for the energywatch service.

Route handlers let these propagate; the handlers registered in
``energywatch.api.main`` turn them into terse HTTP responses.
"""


class EnergyWatchError(Exception):
    """Base exception for energywatch."""

    pass


class DeviceNotFoundError(EnergyWatchError):
    """Device does not exist or is not owned by the caller."""

    def __init__(self, device_id: str) -> None:
        super().__init__(f"Device {device_id!r} not found")
        self.device_id = device_id


class StorageFailureError(EnergyWatchError):
    """The persistence layer failed to complete an operation."""

    pass


class BatchFailedError(StorageFailureError):
    """Every unit of a per-device fan-out failed.

    Attributes:
        failures: Mapping of device_id -> exception raised for that device.
    """

    def __init__(self, operation: str, failures: dict[str, BaseException]) -> None:
        super().__init__(
            f"{operation} failed for all {len(failures)} device(s)"
        )
        self.operation = operation
        self.failures = failures
