# simulator/telemetry_publisher.py

import json
import time

import numpy as np
import paho.mqtt.publish as publish

from simulator.config import SIM_CONFIG


def fault_severity(cfg, cycle: int) -> float:
    """0 = healthy, 1 = fully developed fault."""
    if cycle < cfg["fault_start_cycle"] or cycle >= cfg["recovery_cycle"]:
        return 0.0
    ramp = (cycle - cfg["fault_start_cycle"]) / max(cfg["fault_ramp_cycles"], 1)
    return float(min(ramp, 1.0))


def generate_reading(cfg, cycle: int, rng=None) -> dict:
    """
    One telemetry payload (collaborator field names).
    Scenario: normal → bearing degradation → critical → recovery.
    """
    rng = rng or np.random.default_rng()
    s = fault_severity(cfg, cycle)

    def jitter(x):
        return float(x * (1.0 + cfg["noise"] * rng.standard_normal()))

    vibration = cfg["vibration_base"] + s * cfg["vibration_fault_gain"]
    bearing = cfg["bearing_temp_base"] + s * cfg["bearing_temp_fault_gain"]
    current = cfg["current"] * (1.0 + 0.2 * s)

    return {
        "motorId": cfg["motor_id"],
        "gridVoltage": round(jitter(cfg["voltage"]), 1),
        "motorCurrent": round(jitter(current), 2),
        "powerFactor": round(min(jitter(cfg["power_factor"] - 0.05 * s), 1.0), 3),
        "gridFrequency": round(cfg["frequency"] + 0.05 * rng.standard_normal(), 2),
        "vibrationRms": round(max(jitter(vibration), 0.0), 2),
        "motorSurfaceTemp": round(jitter(cfg["surface_temp_base"] + 10 * s), 1),
        "bearingTemp": round(jitter(bearing), 1),
        "dustDensity": round(max(jitter(cfg["dust"]), 0.0), 1),
        "timestamp": time.time(),
    }


def publish_reading(cfg, payload):
    publish.single(
        cfg["topic"],
        json.dumps(payload),
        qos=1,
        hostname=cfg["broker"],
        port=cfg["port"],
    )


def run(cfg=SIM_CONFIG):
    rng = np.random.default_rng()
    for cycle in range(cfg["cycles"]):
        payload = generate_reading(cfg, cycle, rng)
        publish_reading(cfg, payload)
        print(f"[SIM] cycle={cycle} vib={payload['vibrationRms']} bearing={payload['bearingTemp']}")
        time.sleep(cfg["cycle_sec"])


if __name__ == "__main__":
    run()
