import pytest

from connectwave import main
from connectwave.core.config import Settings


class FakeServer:
    def __init__(self, config, *, started: bool) -> None:
        self.config = config
        self.started = False
        self._will_start = started

    def run(self) -> None:
        self.started = self._will_start


def test_run_exits_non_zero_when_listener_fails(monkeypatch) -> None:
    monkeypatch.setattr(main.uvicorn, "Server", lambda config: FakeServer(config, started=False))

    with pytest.raises(SystemExit) as exc:
        main.run(Settings(_env_file=None, port=5577))

    assert exc.value.code == 1


def test_run_passes_transport_settings_to_uvicorn(monkeypatch) -> None:
    servers: list[FakeServer] = []

    def build(config):
        server = FakeServer(config, started=True)
        servers.append(server)
        return server

    monkeypatch.setattr(main.uvicorn, "Server", build)

    main.run(Settings(_env_file=None, host="127.0.0.1", port=5577, ws_ping_interval=10, ws_ping_timeout=5))

    config = servers[0].config
    assert (config.host, config.port) == ("127.0.0.1", 5577)
    assert config.ws_ping_interval == 10
    assert config.ws_ping_timeout == 5
