"""Process-wide single-flight guard for backfill runs."""


class SingleFlight:
    """Non-blocking mutual exclusion for one kind of job.

    try_acquire() never waits: it either takes the slot or reports that a
    run is already in flight. Check-and-set happens without an await in
    between, so it is atomic on the event loop.
    """

    def __init__(self, name: str = "backfill") -> None:
        self.name = name
        self._held = False

    @property
    def is_running(self) -> bool:
        return self._held

    def try_acquire(self) -> bool:
        if self._held:
            return False
        self._held = True
        return True

    def release(self) -> None:
        self._held = False
