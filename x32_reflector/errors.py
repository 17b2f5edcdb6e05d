class RelayError(Exception):
    """Base class for every error raised by the relay"""


class ConfigurationError(RelayError):
    pass


class DuplicateNameError(ConfigurationError):
    def __init__(self, name):
        super().__init__(f"Device name '{name}' is already registered")
        self.name = name


class BindError(RelayError):
    def __init__(self, address, port, reason):
        super().__init__(f"Failed to bind socket on {address}:{port or 0}: {reason}")
        self.address = address
        self.port = port
        self.reason = reason


class ManagementError(RelayError):
    """Recoverable errors reported back to the management caller"""


class UnknownDeviceError(ManagementError):
    def __init__(self, name):
        super().__init__("Unknown device")
        self.name = name


class UnknownTargetError(ManagementError):
    def __init__(self, device, address, port):
        super().__init__("Unknown redirect target")
        self.device = device
        self.address = address
        self.port = port


class AlreadyRegisteredError(ManagementError):
    def __init__(self, device, address, port):
        super().__init__(f"{address}:{port} is already registered against {device}")
        self.device = device
        self.address = address
        self.port = port


class SendError(RelayError):
    def __init__(self, address, port, reason):
        super().__init__(f"Failed to send to {address}:{port}: {reason}")
        self.address = address
        self.port = port
        self.reason = reason


class SchedulerStateError(RelayError, RuntimeError):
    pass


class ProtocolError(RelayError, ValueError):
    pass
