# simulator/config.py

SIM_CONFIG = {
    "motor_id": "MOTOR_01",

    # ======================
    # Nominal operating point
    # ======================
    "voltage": 220.0,
    "current": 6.5,
    "power_factor": 0.9,
    "frequency": 50.0,
    "dust": 60.0,

    "vibration_base": 1.6,      # mm/s
    "surface_temp_base": 48.0,  # °C
    "bearing_temp_base": 45.0,  # °C

    "noise": 0.03,              # relative gaussian noise

    # ======================
    # Scenario (cycles)
    # ======================
    "fault_start_cycle": 40,
    "fault_ramp_cycles": 30,    # vibration + bearing temp ramp
    "recovery_cycle": 110,      # maintenance done, back to nominal

    "vibration_fault_gain": 4.0,     # mm/s added at full ramp
    "bearing_temp_fault_gain": 38.0, # °C added at full ramp

    # ======================
    # Timing
    # ======================
    "cycle_sec": 1.0,
    "cycles": 150,

    # ======================
    # MQTT
    # ======================
    "broker": "localhost",
    "port": 1883,
    "topic": "mechasense/telemetry/MOTOR_01",
}
