import json
import socket
import threading
import time

import numpy as np

from motion_vfx.core.trigger_scheduler import EffectParams, TriggerCommand
from motion_vfx.effects import (
    KNOWN_PARAMETERS,
    EffectParameterSchema,
    LoggingEffectBackend,
    SocketEffectBackend,
)


def _command():
    return TriggerCommand(
        world_position=np.array([1.0, 2.0, 3.0]),
        intensity=0.4,
        params=EffectParams(scale=1.0, burst_count=10, max_particles=100),
    )


class _EffectServer:
    """Line-based JSON server answering one client."""

    def __init__(self, parameters):
        self.parameters = parameters
        self.messages = []
        self._server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._server.bind(("127.0.0.1", 0))
        self._server.listen(1)
        self.port = self._server.getsockname()[1]
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self):
        client, _ = self._server.accept()
        with client:
            buffer = ""
            while True:
                data = client.recv(4096)
                if not data:
                    break
                buffer += data.decode("utf-8")
                while "\n" in buffer:
                    line, buffer = buffer.split("\n", 1)
                    message = json.loads(line)
                    self.messages.append(message)
                    response = {"status": "success"}
                    if message["action"] == "get_capabilities":
                        response["parameters"] = self.parameters
                    client.sendall((json.dumps(response) + "\n").encode("utf-8"))

    def close(self):
        self._server.close()
        self._thread.join(timeout=2.0)


def test_schema_payload_contains_only_advertised_parameters():
    schema = EffectParameterSchema({"SpawnPosition", "Intensity", "BurstCount", "Color"})

    payload = schema.payload(_command())

    assert payload == {"SpawnPosition": [1.0, 2.0, 3.0], "Intensity": 0.4, "BurstCount": 10}
    assert "Color" not in schema


def test_logging_backend_advertises_every_known_parameter():
    backend = LoggingEffectBackend()
    backend.trigger(_command())

    assert backend.capabilities() == set(KNOWN_PARAMETERS)
    assert backend.trigger_count == 1
    assert set(backend.schema.payload(_command())) == set(KNOWN_PARAMETERS)


def test_socket_backend_sends_trigger_and_stop():
    server = _EffectServer(["TargetPosition", "Scale", "MaxParticles"])
    backend = SocketEffectBackend("127.0.0.1", server.port, timeout=2.0)
    try:
        assert backend.connect()
        assert backend.capabilities() == {"TargetPosition", "Scale", "MaxParticles"}

        backend.trigger(_command())
        backend.stop()
    finally:
        backend.disconnect()
        server.close()

    assert [m["action"] for m in server.messages] == ["get_capabilities", "trigger", "stop"]
    assert server.messages[1]["params"] == {
        "TargetPosition": [1.0, 2.0, 3.0],
        "Scale": 1.0,
        "MaxParticles": 100,
    }


def test_socket_backend_unreachable_server_does_not_raise():
    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()

    backend = SocketEffectBackend("127.0.0.1", port, timeout=0.2)

    assert not backend.connect()
    assert backend.capabilities() == set()
    backend.trigger(_command())
    backend.stop()
    assert not backend.is_connected


def test_trigger_after_server_loss_does_not_block():
    server = _EffectServer(["Position", "Intensity"])
    backend = SocketEffectBackend("127.0.0.1", server.port, timeout=2.0,
                                  auto_reconnect=True, reconnect_backoff=10.0)
    assert backend.connect()
    backend.disconnect()
    server.close()

    started = time.perf_counter()
    for _ in range(5):
        backend.trigger(_command())
    elapsed = time.perf_counter() - started

    assert elapsed < 0.05
    assert not backend.is_connected


def test_reconnects_from_a_later_trigger_once_backoff_passed():
    server = _EffectServer(["Position"])
    backend = SocketEffectBackend("127.0.0.1", server.port, timeout=2.0,
                                  auto_reconnect=True, reconnect_backoff=0.0)
    assert backend.connect()
    backend.disconnect()
    server.close()
    backend.trigger(_command())

    replacement = _EffectServer(["Position"])
    backend.port = replacement.port
    try:
        backend.trigger(_command())
        assert backend.is_connected
    finally:
        backend.disconnect()
        replacement.close()

    # Capabilities are fetched once per backend, not on every reconnect
    assert [m["action"] for m in replacement.messages] == ["trigger"]
    assert replacement.messages[0]["params"] == {"Position": [1.0, 2.0, 3.0]}


def test_never_connected_backend_without_reconnect_drops_triggers():
    backend = SocketEffectBackend("127.0.0.1", 9, timeout=0.2)

    started = time.perf_counter()
    backend.trigger(_command())

    assert time.perf_counter() - started < 0.05
    assert backend.schema is None
