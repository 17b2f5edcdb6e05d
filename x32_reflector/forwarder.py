import logging

from .errors import UnknownDeviceError
from .transport import send_datagram

logger = logging.getLogger('x32-reflector')


class Forwarder:
    """Copies every datagram received from a source device to all of its subscribers"""

    def __init__(self, subscribers, send=send_datagram):
        self.subscribers = subscribers
        self.send = send
        self.packets_in = 0
        self.packets_out = 0
        self.traffic_bytes_in = 0
        self.traffic_bytes_out = 0
        self.send_failures = 0

    def forward(self, device, data):
        """
        Forward a raw datagram from ``device`` to every current target of that device

        Args:
            device: BoundDevice the datagram arrived on
            data: Payload, sent on unmodified

        Returns:
            Number of targets the datagram was handed to
        """
        self.packets_in += 1
        self.traffic_bytes_in += len(data)

        try:
            targets = self.subscribers.list_targets(device.name)
        except UnknownDeviceError:
            logger.debug(f"Dropping datagram from unregistered device {device.name}")
            return 0

        if not targets:
            logger.debug(f"Dropping datagram from {device.name}, no subscribers")
            return 0

        sent_count = 0
        for target in targets:
            if self.send(device.socket, data, target.address, target.port):
                sent_count += 1
                self.packets_out += 1
                self.traffic_bytes_out += len(data)
            else:
                self.send_failures += 1

        return sent_count

    def record_socket_error(self, device, exc):
        """Sends asyncio could not complete are reported back here after the fact"""
        self.send_failures += 1
        logger.error(f"Send from {device.name} socket failed: {exc}")

    def get_current_traffic(self):
        return {
            "packets_in": self.packets_in,
            "packets_out": self.packets_out,
            "bytes_in": self.traffic_bytes_in,
            "bytes_out": self.traffic_bytes_out,
            "send_failures": self.send_failures,
        }
