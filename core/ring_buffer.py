from collections import deque


class VibrationHistory:
    """
    Vibration History Buffer
    ========================
    - Per motor buffer
    - Fixed length (oldest dropped)
    - Feeds the remote predictor and the local trend estimate
    """

    def __init__(self, maxlen=50):
        self.maxlen = maxlen
        self.buffers = {}

    # =========================================================
    # PUBLIC API
    # =========================================================
    def append(self, reading):
        """Ignores readings without vibration."""
        if reading.vibration_rms is None:
            return

        if reading.motor_id not in self.buffers:
            self.buffers[reading.motor_id] = deque(maxlen=self.maxlen)

        self.buffers[reading.motor_id].append(
            {
                "vibration_rms": reading.vibration_rms,
                "timestamp": reading.timestamp,
            }
        )

    def get(self, motor_id) -> list:
        if motor_id not in self.buffers:
            return []
        return list(self.buffers[motor_id])

    def clear(self, motor_id):
        if motor_id in self.buffers:
            self.buffers[motor_id].clear()
