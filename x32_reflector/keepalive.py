import asyncio
import logging

from .errors import SchedulerStateError
from .protocol import encode_keep_alive
from .transport import send_datagram

logger = logging.getLogger('x32-reflector')

KEEPALIVE_INTERVAL_SECONDS = 9


class KeepAliveScheduler:
    """
    Periodically tells every source device to keep streaming to us, then expires
    subscribers that have not renewed within the timeout.

    Consoles stop sending updates 10 seconds after the last /xremote, so the
    interval stays a little below that.
    """

    def __init__(self, devices, subscribers, ttl_seconds, interval=KEEPALIVE_INTERVAL_SECONDS,
                 send=send_datagram, message=None):
        self.devices = devices
        self.subscribers = subscribers
        self.ttl_seconds = ttl_seconds
        self.interval = interval
        self.send = send
        self.message = message if message is not None else encode_keep_alive()
        self._task = None

    @property
    def running(self):
        return self._task is not None

    def start(self):
        """Start ticking on the running event loop"""
        if self._task is not None:
            raise SchedulerStateError("Keep-alive has already been launched")
        logger.info("Launching keep-alive")
        self._task = asyncio.get_running_loop().create_task(self._loop())

    def stop(self):
        if self._task is None:
            raise SchedulerStateError("Keep-alive is not running, have you called start()?")
        logger.info("Stopping keep-alive")
        self._task.cancel()
        self._task = None

    def send_keep_alives(self):
        sent_count = 0
        for entry in self.devices.bound_devices():
            if self.send(entry.socket, self.message, entry.address, entry.port):
                sent_count += 1
        return sent_count

    def sweep(self):
        removed = self.subscribers.sweep_expired(self.ttl_seconds)
        if removed > 0:
            logger.info(f"Removed {removed} expired subscribers")
        return removed

    def tick(self):
        # Keep-alive goes out first so a slow sweep never delays it
        try:
            self.send_keep_alives()
        except Exception:
            logger.exception("Keep-alive failed")
        try:
            self.sweep()
        except Exception:
            logger.exception("Subscriber sweep failed")

    async def _loop(self):
        while True:
            await asyncio.sleep(self.interval)
            self.tick()
