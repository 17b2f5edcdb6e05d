import asyncio
import ipaddress
import logging

from .errors import BindError, SendError

logger = logging.getLogger('x32-reflector')


class DeviceProtocol(asyncio.DatagramProtocol):
    """UDP protocol for one source device socket - hands every datagram to a callback"""

    def __init__(self, on_message=None, on_error=None):
        self.on_message = on_message
        self.on_error = on_error
        self.transport = None
        super().__init__()

    def connection_made(self, transport):
        self.transport = transport

    def datagram_received(self, data, addr):
        if self.on_message is not None:
            self.on_message(data, addr)

    def error_received(self, exc):
        # asyncio reports failed sendto calls here instead of raising them
        if self.on_error is not None:
            self.on_error(exc)
        else:
            logger.error(f"Socket error received: {exc}")


class DeviceSocket:
    """A bound UDP socket owned by exactly one source device"""

    def __init__(self, transport, protocol):
        self.transport = transport
        self.protocol = protocol

    @property
    def local_address(self):
        return self.transport.get_extra_info('sockname')

    def on_message(self, handler):
        self.protocol.on_message = handler

    def on_error(self, handler):
        self.protocol.on_error = handler

    def _unreachable(self, address):
        """True when ``address`` is an IP literal of a different family than the bound socket"""
        try:
            version = ipaddress.ip_address(address).version
        except ValueError:
            # Hostnames are left to the resolver
            return False
        sockname = self.transport.get_extra_info('sockname')
        return bool(sockname) and ipaddress.ip_address(sockname[0]).version != version

    def send(self, data, address, port):
        """Fire-and-forget send, raises SendError if the datagram could not be queued"""
        if self._unreachable(address):
            raise SendError(address, port, "address family does not match the bound socket")
        try:
            self.transport.sendto(data, (address, port))
        except (OSError, ValueError) as e:
            raise SendError(address, port, e) from e

    def close(self):
        self.transport.close()


async def bind_socket(local_address, port=None):
    """
    Bind a UDP socket on ``local_address``.

    Args:
        local_address: Local interface address to bind on
        port: Local port, None lets the OS pick an ephemeral port

    Returns:
        DeviceSocket wrapping the bound transport

    Raises:
        BindError: if the socket could not be bound
    """
    loop = asyncio.get_running_loop()
    try:
        transport, protocol = await loop.create_datagram_endpoint(
            DeviceProtocol,
            local_addr=(local_address, port or 0)
        )
    except OSError as e:
        raise BindError(local_address, port, e) from e

    return DeviceSocket(transport, protocol)


def send_datagram(socket, data, address, port):
    """Best-effort send, failures are logged and swallowed"""
    try:
        socket.send(data, address, port)
        return True
    except SendError as e:
        logger.error(f"Failed to forward to address {address}:{port}: {e.reason}")
        return False
