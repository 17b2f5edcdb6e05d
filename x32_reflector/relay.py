import time

from .device_registry import DeviceRegistry, SourceDevice
from .forwarder import Forwarder
from .keepalive import KeepAliveScheduler
from .subscriber_registry import SubscriberRegistry
from .transport import bind_socket, send_datagram


class Relay:
    """
    Owns the registries, the forwarder and the keep-alive scheduler for one process.

    This is the handle the management layer works through. Management operations
    raise ManagementError subclasses, never anything else.
    """

    def __init__(self, config, devices, subscribers, forwarder, scheduler):
        self.config = config
        self.devices = devices
        self.subscribers = subscribers
        self.forwarder = forwarder
        self.scheduler = scheduler

    @classmethod
    async def create(cls, config, bind=bind_socket, send=send_datagram, clock=time.monotonic):
        subscribers = SubscriberRegistry(clock=clock)
        forwarder = Forwarder(subscribers, send=send)
        devices = await DeviceRegistry.create(
            config.udp.bind,
            [SourceDevice(d.name, d.address, d.port) for d in config.devices],
            subscribers,
            forwarder,
            bind=bind,
        )
        scheduler = KeepAliveScheduler(
            devices,
            subscribers,
            config.ttl_seconds,
            interval=config.keepalive_interval,
            send=send,
        )
        return cls(config, devices, subscribers, forwarder, scheduler)

    @property
    def ttl_seconds(self):
        return self.config.ttl_seconds

    def start(self):
        self.scheduler.start()

    def stop(self):
        self.scheduler.stop()

    def close(self):
        if self.scheduler.running:
            self.scheduler.stop()
        self.devices.close()

    def register_target(self, device_name, address, port):
        self.subscribers.add_target(device_name, address, port)

    def remove_target(self, device_name, address, port):
        self.subscribers.remove_target(device_name, address, port)

    def renew_target(self, device_name, address, port):
        self.subscribers.renew_target(device_name, address, port)

    def list_targets(self, device_name):
        return self.subscribers.list_targets(device_name)

    def list_devices(self):
        return self.devices.list_devices()

    def seconds_remaining(self, target):
        """Seconds until ``target`` is removed by the sweep"""
        return self.ttl_seconds - (self.subscribers.clock() - target.last_renewal)
