import logging
import time
from dataclasses import dataclass
from threading import Lock

from .errors import AlreadyRegisteredError, UnknownDeviceError, UnknownTargetError

logger = logging.getLogger('x32-reflector')


@dataclass
class SubscriberTarget:
    address: str
    port: int
    last_renewal: float

    def matches(self, address, port):
        return self.address == address and self.port == port


@dataclass(frozen=True)
class TargetInfo:
    """Read-only snapshot of a subscriber handed out to callers"""
    address: str
    port: int
    last_renewal: float


class SubscriberRegistry:
    """
    Subscriber targets per source device, kept in insertion order.

    Every operation runs entirely under the registry lock and never awaits, so a
    datagram callback, a keep-alive tick or a management request always sees a
    complete collection.
    """

    def __init__(self, clock=time.monotonic):
        self.clock = clock
        self.targets = {}  # {device_name: [SubscriberTarget]}
        self.lock = Lock()

    def add_device(self, device_name):
        with self.lock:
            self.targets.setdefault(device_name, [])

    def _collection(self, device_name):
        collection = self.targets.get(device_name)
        if collection is None:
            raise UnknownDeviceError(device_name)
        return collection

    def add_target(self, device_name, address, port):
        with self.lock:
            collection = self._collection(device_name)
            if any(target.matches(address, port) for target in collection):
                raise AlreadyRegisteredError(device_name, address, port)
            collection.append(SubscriberTarget(address, port, self.clock()))

        logger.info(f"Changes from {device_name} are being redirected to {address}:{port}")

    def remove_target(self, device_name, address, port):
        with self.lock:
            collection = self._collection(device_name)
            for index, target in enumerate(collection):
                if target.matches(address, port):
                    del collection[index]
                    break
            else:
                raise UnknownTargetError(device_name, address, port)

        logger.info(f"Changes from {device_name} are no longer being redirected to {address}:{port}")

    def renew_target(self, device_name, address, port):
        with self.lock:
            collection = self._collection(device_name)
            for target in collection:
                if target.matches(address, port):
                    # The clock may be coarse; never let a renewal move backwards
                    target.last_renewal = max(target.last_renewal, self.clock())
                    break
            else:
                raise UnknownTargetError(device_name, address, port)

        logger.info(f"{address}:{port} has renewed itself against {device_name}")

    def list_targets(self, device_name):
        with self.lock:
            return [
                TargetInfo(target.address, target.port, target.last_renewal)
                for target in self._collection(device_name)
            ]

    def sweep_expired(self, ttl):
        """
        Remove every target whose last renewal is at least ``ttl`` seconds old.

        Returns:
            Number of targets removed across all devices
        """
        removed = 0
        with self.lock:
            current_time = self.clock()
            for device_name, collection in self.targets.items():
                stale = [t for t in collection if current_time - t.last_renewal >= ttl]
                if not stale:
                    continue

                for target in stale:
                    logger.info(f"{target.address}:{target.port} expired from {device_name}")
                collection[:] = [t for t in collection if t not in stale]
                removed += len(stale)

        return removed
