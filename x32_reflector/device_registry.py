import logging
import re
from dataclasses import dataclass

from .errors import ConfigurationError, DuplicateNameError, UnknownDeviceError
from .transport import bind_socket

logger = logging.getLogger('x32-reflector')

DEVICE_NAME_PATTERN = re.compile(r'[A-Za-z0-9_-]+')


@dataclass(frozen=True)
class SourceDevice:
    name: str
    address: str
    port: int


@dataclass(frozen=True)
class BoundDevice:
    """A source device together with the socket it owns for its registered lifetime"""
    device: SourceDevice
    socket: object

    @property
    def name(self):
        return self.device.name

    @property
    def address(self):
        return self.device.address

    @property
    def port(self):
        return self.device.port


class DeviceRegistry:
    """Configured source devices keyed by name, each with its own bound UDP socket"""

    def __init__(self, bind_address, subscribers, forwarder, bind=bind_socket):
        self.bind_address = bind_address
        self.subscribers = subscribers
        self.forwarder = forwarder
        self.bind = bind
        self.devices = {}  # {name: BoundDevice}

    @classmethod
    async def create(cls, bind_address, devices, subscribers, forwarder, bind=bind_socket):
        """
        Build a registry holding every device in ``devices``.

        Names are checked before any socket is bound. If a later registration fails
        every socket bound so far is closed before the error propagates.
        """
        seen = set()
        for device in devices:
            if device.name in seen:
                raise DuplicateNameError(device.name)
            seen.add(device.name)

        registry = cls(bind_address, subscribers, forwarder, bind=bind)
        try:
            for device in devices:
                await registry.register(device)
        except Exception:
            registry.close()
            raise

        return registry

    async def register(self, device):
        """
        Bind a fresh socket for ``device`` and start forwarding what it receives.

        Raises:
            ConfigurationError: malformed or duplicate name
            BindError: the socket could not be bound
        """
        if not DEVICE_NAME_PATTERN.fullmatch(device.name):
            raise ConfigurationError(f"Invalid device name: {device.name!r}")
        if device.name in self.devices:
            raise DuplicateNameError(device.name)

        socket = await self.bind(self.bind_address)

        # Another registration of the same name may have completed while binding
        if device.name in self.devices:
            socket.close()
            raise DuplicateNameError(device.name)

        entry = BoundDevice(device, socket)
        socket.on_message(lambda data, addr: self.forwarder.forward(entry, data))
        socket.on_error(lambda exc: self.forwarder.record_socket_error(entry, exc))

        self.devices[device.name] = entry
        self.subscribers.add_device(device.name)

        logger.info(f"Registered x32 device at {device.address}:{device.port} under {device.name}")

    def list_devices(self):
        return [
            {"name": entry.name, "address": entry.address, "port": entry.port}
            for entry in self.devices.values()
        ]

    def resolve_device(self, name):
        entry = self.devices.get(name)
        if entry is None:
            raise UnknownDeviceError(name)
        return entry.device

    def bound_devices(self):
        return list(self.devices.values())

    def close(self):
        for entry in self.devices.values():
            entry.socket.close()
        self.devices.clear()
