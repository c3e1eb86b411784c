"""
Effect backend speaking newline-delimited JSON over TCP.

Protocol (one JSON object per line, one response line per request):

    -> {"action": "get_capabilities"}
    <- {"status": "success", "parameters": ["TargetPosition", "Intensity", ...]}

    -> {"action": "trigger", "params": {"TargetPosition": [x, y, z], ...}}
    <- {"status": "success"}

    -> {"action": "stop"}
    <- {"status": "success"}

Calls run on the frame loop and never sleep. After a connection loss the
command is dropped; with ``auto_reconnect`` later commands make a single
short connect attempt once the backoff deadline has passed.
"""

import json
import socket
import time
from typing import Any, Dict, Optional, Set

from motion_vfx.core.trigger_scheduler import TriggerCommand
from motion_vfx.effects.base import EffectParameterSchema
from motion_vfx.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PORT = 9999


class SocketEffectBackend:
    """
    Socket client for a remote particle system.

    Usage:
        backend = SocketEffectBackend("192.168.0.100")
        backend.connect()
        backend.trigger(command)
        backend.disconnect()

        # Context manager
        with SocketEffectBackend("192.168.0.100") as backend:
            backend.stop()
    """

    def __init__(self, host: str = "127.0.0.1", port: int = DEFAULT_PORT,
                 timeout: float = 0.1, auto_reconnect: bool = False,
                 max_reconnect_attempts: int = 3, reconnect_backoff: float = 0.5,
                 reconnect_timeout: float = 0.02):
        """
        Args:
            host: Effect server address
            port: Effect server port
            timeout: Socket timeout in seconds for requests (keep short, calls run on the frame loop)
            auto_reconnect: Retry the connection from later commands after a loss
            max_reconnect_attempts: Failed attempts after which the backoff stops growing
            reconnect_backoff: Base wait before the next attempt (linear backoff)
            reconnect_timeout: Connect timeout of a single reconnection attempt
        """
        self.host = host
        self.port = port
        self.timeout = timeout
        self.auto_reconnect = auto_reconnect
        self.max_reconnect_attempts = max_reconnect_attempts
        self.reconnect_backoff = reconnect_backoff
        self.reconnect_timeout = reconnect_timeout

        self.socket: Optional[socket.socket] = None
        self._connected = False
        self._recv_buffer = ""
        self._capabilities: Optional[Set[str]] = None
        self.schema: Optional[EffectParameterSchema] = None
        self._error_logged = False

        self._reconnect_failures = 0
        self._next_reconnect = 0.0

    # --- Connection ---

    def connect(self, connect_timeout: Optional[float] = None) -> bool:
        """
        Connect and fetch the advertised parameters (first connection only).

        Args:
            connect_timeout: Timeout for establishing the connection
                (defaults to the request timeout)

        Returns:
            True if connection successful
        """
        self._close_socket()

        try:
            self.socket = socket.create_connection(
                (self.host, self.port),
                timeout=self.timeout if connect_timeout is None else connect_timeout)
            self.socket.settimeout(self.timeout)
        except OSError as e:
            self._report_error(f"Failed to connect to effect server at {self.host}:{self.port}: {e}")
            self._close_socket()
            return False

        self._connected = True
        self._error_logged = False
        self._reconnect_failures = 0
        logger.info(f"Connected to effect server at {self.host}:{self.port}")

        if self._capabilities is None:
            response = self._exchange({"action": "get_capabilities"})
            if response is None or response.get("status") != "success":
                logger.warning(f"Effect server did not report capabilities: {response}")
                self._capabilities = set()
            else:
                self._capabilities = set(response.get("parameters", []))
            self.schema = EffectParameterSchema.resolve(self)
        return self._connected

    def disconnect(self):
        self._close_socket()
        logger.info("Disconnected from effect server")

    @property
    def is_connected(self) -> bool:
        return self._connected

    def _close_socket(self):
        if self.socket is not None:
            try:
                self.socket.close()
            except OSError as e:
                logger.debug(f"Error closing effect socket: {e}")
            self.socket = None
        self._connected = False
        self._recv_buffer = ""

    def _report_error(self, message: str):
        # First failure at ERROR, repeats at DEBUG until a connection succeeds
        if not self._error_logged:
            logger.error(message)
            self._error_logged = True
        else:
            logger.debug(message)

    def _try_reconnect(self) -> bool:
        """One short connect attempt, only once the backoff deadline has passed."""
        if not self.auto_reconnect:
            return False

        now = time.monotonic()
        if now < self._next_reconnect:
            return False

        logger.debug(f"Reconnection attempt {self._reconnect_failures + 1}")
        if self.connect(connect_timeout=self.reconnect_timeout):
            return True

        self._reconnect_failures += 1
        steps = min(self._reconnect_failures, self.max_reconnect_attempts)
        self._next_reconnect = time.monotonic() + self.reconnect_backoff * steps
        return False

    # --- Messaging ---

    def _exchange(self, message: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Send one request line and read one response line."""
        try:
            self.socket.sendall((json.dumps(message) + "\n").encode("utf-8"))
            while "\n" not in self._recv_buffer:
                data = self.socket.recv(4096)
                if not data:
                    raise ConnectionError("Server closed connection")
                self._recv_buffer += data.decode("utf-8")
            line, self._recv_buffer = self._recv_buffer.split("\n", 1)
            return json.loads(line.strip())
        except (OSError, ValueError) as e:
            self._report_error(f"Effect command '{message.get('action')}' failed: {e}")
            self._close_socket()
            return None

    def _send(self, message: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if not self._connected and not self._try_reconnect():
            self._report_error(f"Not connected to effect server, dropping '{message.get('action')}'")
            return None
        response = self._exchange(message)
        if response is not None and response.get("status") == "error":
            logger.warning(f"Effect server error: {response.get('message')}")
        return response

    # --- EffectBackend ---

    def capabilities(self) -> Set[str]:
        """Parameters advertised on the first successful connection (empty before)."""
        return set(self._capabilities or ())

    def trigger(self, command: TriggerCommand) -> None:
        if self.schema is None:
            # Never connected: the parameter set is unknown until a connection succeeds
            self._try_reconnect()
            if self.schema is None:
                return
        self._send({"action": "trigger", "params": self.schema.payload(command)})

    def stop(self) -> None:
        if self._connected:
            self._send({"action": "stop"})

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
        return False
