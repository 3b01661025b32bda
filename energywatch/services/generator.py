"""
Synthetic telemetry generator for simulated energy devices.

Produces one SampleReading per call from a per-type load envelope. Solar
devices report generation as negative power at a 48 V bus; meters and
appliances report positive consumption at 220 V. Anything that is not
solar or an appliance is treated as a meter.

This is a pure function apart from the random source: device_id, timestamp
and the ``random.Random`` instance are injected by the caller so tests can
assert envelopes deterministically.

CHANGELOG:
- 2026-10-13: Make the energy interval a parameter for the scheduler
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import UTC, datetime

from pydantic import BaseModel

from energywatch.db.models import DeviceType

# Sampling interval assumed by on-demand generation paths, in hours.
ON_DEMAND_INTERVAL_H = 0.5

# Symmetric noise added to the base load before the sign is applied.
NOISE_W = 100.0

_default_rng = random.Random()


@dataclass(frozen=True)
class LoadEnvelope:
    """Statistical envelope of one device type.

    Attributes:
        min_w: Lower bound of the uniform base load in watts.
        max_w: Upper bound of the uniform base load in watts.
        nominal_voltage_v: Voltage the reading is centred on; also the
            divisor used to derive current.
        voltage_jitter_v: Half-width of the uniform voltage jitter.
        sign: +1 for consumption, -1 for generation.
    """

    min_w: float
    max_w: float
    nominal_voltage_v: float
    voltage_jitter_v: float
    sign: int


ENVELOPES: dict[str, LoadEnvelope] = {
    DeviceType.SOLAR: LoadEnvelope(
        min_w=800.0,
        max_w=2800.0,
        nominal_voltage_v=48.0,
        voltage_jitter_v=1.0,
        sign=-1,
    ),
    DeviceType.APPLIANCE: LoadEnvelope(
        min_w=200.0,
        max_w=1000.0,
        nominal_voltage_v=220.0,
        voltage_jitter_v=5.0,
        sign=1,
    ),
    DeviceType.METER: LoadEnvelope(
        min_w=300.0,
        max_w=1500.0,
        nominal_voltage_v=220.0,
        voltage_jitter_v=5.0,
        sign=1,
    ),
}


class SampleReading(BaseModel):
    """A generated telemetry reading, ready to be persisted as a Sample.

    Attributes:
        device_id: Device the reading belongs to.
        ts: Timestamp of the reading (UTC).
        power_w: Signed power in watts. Negative = generation.
        voltage_v: Voltage in volts.
        current_a: Base load divided by the nominal voltage.
        energy_wh: Base load times the sampling interval in hours.
    """

    device_id: str
    ts: datetime
    power_w: float
    voltage_v: float
    current_a: float
    energy_wh: float


def envelope_for(device_type: str) -> LoadEnvelope:
    """Return the load envelope for ``device_type`` (meter for unknown types)."""
    return ENVELOPES.get(device_type, ENVELOPES[DeviceType.METER])


def generate_sample(
    device_id: str,
    device_type: str,
    *,
    ts: datetime | None = None,
    rng: random.Random | None = None,
    interval_h: float = ON_DEMAND_INTERVAL_H,
) -> SampleReading:
    """Generate one synthetic reading for a device.

    Args:
        device_id: Identifier of the device.
        device_type: Device type string (``solar``, ``meter``, ``appliance``).
        ts: Reading timestamp. Defaults to now (UTC).
        rng: Random source. Defaults to the module-level generator.
        interval_h: Sampling interval used to derive ``energy_wh``.

    Returns:
        SampleReading: The generated reading.
    """
    if rng is None:
        rng = _default_rng
    if ts is None:
        ts = datetime.now(tz=UTC)

    env = envelope_for(device_type)
    base_w = rng.uniform(env.min_w, env.max_w)
    noise_w = rng.uniform(-NOISE_W, NOISE_W)
    voltage_v = env.nominal_voltage_v + rng.uniform(
        -env.voltage_jitter_v, env.voltage_jitter_v
    )

    return SampleReading(
        device_id=device_id,
        ts=ts,
        power_w=env.sign * (base_w + noise_w),
        voltage_v=voltage_v,
        current_a=base_w / env.nominal_voltage_v,
        energy_wh=base_w * interval_h,
    )
