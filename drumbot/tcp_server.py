"""TCP listener that feeds received text commands into the command queue."""

from __future__ import annotations

import logging
import socket
import threading
import time
from typing import Optional

from drumbot.common import AppContext, CommandQueue

_log = logging.getLogger(__name__)

_POLL_INTERVAL = 0.1
_QUIT_WAIT = 0.001
_RECV_SIZE = 1023
_BACKLOG = 5


class TcpServer:
    """Accept one client at a time and push each received message as a command.

    After a ``QUIT`` or ``Q`` message no further clients are accepted; the
    server then idles until the shared context stops running.
    """

    def __init__(
        self, ctx: AppContext, port: int, command_queue: CommandQueue, host: str = ""
    ) -> None:
        self._ctx = ctx
        self._host = host
        self.port = port
        self._queue = command_queue
        self._server: Optional[socket.socket] = None
        self._quitting = False
        self.ready = threading.Event()

    def run(self) -> None:
        """Serve until the context stops; clears ``ctx.running`` on exit."""
        try:
            self._serve()
        finally:
            self.ready.set()
            self._ctx.running = False
            _log.info("server thread finished")

    def stop(self) -> None:
        """Close the listening socket."""
        server, self._server = self._server, None
        if server is not None:
            server.close()

    def _open(self) -> socket.socket:
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server.bind((self._host, self.port))
            server.listen(_BACKLOG)
        except OSError:
            server.close()
            raise
        server.settimeout(_POLL_INTERVAL)
        return server

    def _serve(self) -> None:
        self._server = self._open()
        self.port = self._server.getsockname()[1]
        self.ready.set()
        _log.info("listening on port %d", self.port)

        while self._ctx.running:
            if self._quitting:
                time.sleep(_QUIT_WAIT)
                continue
            server = self._server
            if server is None:
                break
            try:
                client, addr = server.accept()
            except socket.timeout:
                continue
            except OSError:
                if self._ctx.running:
                    _log.error("accept() failed")
                break
            _log.info("client connected: %s", addr[0])
            with client:
                self._handle_client(client)

    def _handle_client(self, client: socket.socket) -> None:
        client.settimeout(_POLL_INTERVAL)
        while self._ctx.running:
            try:
                data = client.recv(_RECV_SIZE)
            except socket.timeout:
                continue
            except OSError:
                data = b""
            if not data:
                _log.info("client disconnected")
                return

            text = data.decode("utf-8", errors="replace").split("\0", 1)[0]
            text = text.rstrip(" \r\n")
            _log.info("received: %s", text)
            if text:
                self._queue.push(text)
            if text.upper() in ("QUIT", "Q"):
                self._quitting = True
                return