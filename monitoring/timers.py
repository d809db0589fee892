"""
Timer Loop

Cooperative single-threaded timer loop on top of sched.scheduler. Every
callback runs on the thread that calls run(), one at a time.
"""

import sched
import time


class TimerLoop:
    """
    Args:
        clock (callable): Returns the current time in seconds (monotonic)
        sleep (callable): Blocks for the given number of seconds
    """

    def __init__(self, clock=time.monotonic, sleep=time.sleep):
        self._clock = clock
        self._sleep = sleep
        self._scheduler = sched.scheduler(clock, sleep)
        self._stopped = False

    def now(self):
        return self._clock()

    def call_later(self, delay_s, callback, *args):
        """Schedule callback after delay_s seconds. Returns a handle for cancel()."""
        return self._scheduler.enter(max(0.0, delay_s), 0, callback, args)

    def cancel(self, handle):
        if handle is None:
            return
        try:
            self._scheduler.cancel(handle)
        except ValueError:
            # Already ran or already cancelled
            pass

    @property
    def pending(self):
        return len(self._scheduler.queue)

    def run(self, until=None):
        """
        Run due callbacks until the queue drains or stop() is called.
        Once stopped, the loop stays stopped and run() returns immediately.

        Args:
            until (float, optional): Absolute clock time to return at
        """
        while not self._stopped:
            delay = self._scheduler.run(blocking=False)
            if delay is None:
                return
            if until is not None and self.now() + delay > until:
                remaining = until - self.now()
                if remaining > 0:
                    self._sleep(remaining)
                return
            self._sleep(delay)

    @property
    def stopped(self):
        return self._stopped

    def stop(self):
        self._stopped = True
