import asyncio

from x32_reflector import server_main
from x32_reflector.errors import BindError, ConfigurationError


def test_main_fails_without_configuration(monkeypatch):
    def no_config():
        raise ConfigurationError("No valid configuration found")

    monkeypatch.setattr(server_main, "load_configuration", no_config)

    assert server_main.main() == 1


def test_main_fails_when_socket_cannot_bind(monkeypatch, config):
    async def serve(config):
        raise BindError("127.0.0.1", None, OSError("Address already in use"))

    monkeypatch.setattr(server_main, "load_configuration", lambda: config)
    monkeypatch.setattr(server_main, "serve", serve)

    assert server_main.main() == 1


def test_serve_starts_keepalive_and_cleans_up(monkeypatch, config, binder):
    seen = {}

    class FakeServer:
        def __init__(self, server_config):
            self.app = server_config.app

        async def serve(self):
            relay = self.app.state.relay
            seen["keepalive"] = relay.scheduler.running
            seen["devices"] = relay.list_devices()
            seen["relay"] = relay

    real_create = server_main.Relay.create

    async def create(config):
        return await real_create(config, bind=binder)

    monkeypatch.setattr(server_main.uvicorn, "Server", FakeServer)
    monkeypatch.setattr(server_main.Relay, "create", create)

    asyncio.run(server_main.serve(config))

    assert seen["keepalive"] is True
    assert [d["name"] for d in seen["devices"]] == ["Primary", "Secondary"]
    assert not seen["relay"].scheduler.running
    assert all(s.closed for s in binder.sockets)
