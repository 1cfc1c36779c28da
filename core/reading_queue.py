import queue
import threading
import logging

logger = logging.getLogger(__name__)


class ReadingQueue:
    """
    Reading evaluation queue.

    - ONE worker thread: readings are evaluated strictly in arrival
      order, off the MQTT network thread
    - Queue backpressure handling (drop_oldest / drop_new)
    - A failing reading is logged and dropped; the next one runs
    - Health metrics
    """

    def __init__(self, maxsize=100, drop_policy="drop_oldest"):
        self.queue = queue.Queue(maxsize=maxsize)
        self.drop_policy = drop_policy

        self._worker = None
        self._running = False
        self._put_lock = threading.Lock()

        # Metrics
        self.metrics = {
            "readings_processed": 0,
            "readings_failed": 0,
            "readings_dropped": 0,
            "queue_maxsize": maxsize,
        }

    @classmethod
    def from_config(cls, config: dict) -> "ReadingQueue":
        q = config.get("queue", {})
        return cls(
            maxsize=int(q.get("maxsize", 100)),
            drop_policy=q.get("drop_policy", "drop_oldest"),
        )

    # =========================================================
    # START
    # =========================================================
    def start(self, handler):
        if self._worker is not None:
            return

        self._running = True
        self._worker = threading.Thread(
            target=self._worker_loop,
            args=(handler,),
            daemon=True,
            name="ReadingWorker",
        )
        self._worker.start()
        logger.info("[Queue] Reading worker started")

    # =========================================================
    # WORKER LOOP
    # =========================================================
    def _worker_loop(self, handler):
        while self._running:
            try:
                item = self.queue.get(timeout=1)
            except queue.Empty:
                continue

            try:
                handler(item)
                self.metrics["readings_processed"] += 1
            except Exception:
                self.metrics["readings_failed"] += 1
                logger.exception("[Queue] Reading evaluation failed, cycle skipped")
            finally:
                self.queue.task_done()

    # =========================================================
    # PUBLIC API
    # =========================================================
    def put(self, item) -> bool:
        with self._put_lock:
            try:
                self.queue.put(item, block=False)
                return True
            except queue.Full:
                self.metrics["readings_dropped"] += 1

            if self.drop_policy != "drop_oldest":
                logger.warning("[Queue] Queue full, new reading dropped")
                return False

            try:
                self.queue.get_nowait()
                self.queue.task_done()
            except queue.Empty:
                pass

            try:
                self.queue.put(item, block=False)
            except queue.Full:
                logger.warning("[Queue] Queue full, new reading dropped")
                return False

            logger.warning("[Queue] Queue full, oldest reading dropped")
            return True

    def join(self):
        self.queue.join()

    # =========================================================
    # METRICS
    # =========================================================
    def get_status(self):
        return {
            "queue_size": self.queue.qsize(),
            "metrics": dict(self.metrics),
            "running": self._running,
        }

    # =========================================================
    # STOP
    # =========================================================
    def stop(self):
        self._running = False
        if self._worker is not None:
            self._worker.join(timeout=2)
            self._worker = None
        logger.info("[Queue] Reading worker stopped cleanly")
