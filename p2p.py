import logging
import socket
import threading

from session import ChatSession, LogUnavailableError
from utils import TRACE, decode_line, encode_line

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8989
CONNECT_TIMEOUT = 10.0
READ_RETRY_DELAY = 0.1


class PeerConnectionError(ConnectionError):
    """Could not open the chat connection."""


class BindError(PeerConnectionError):
    """The listen port could not be acquired."""


class Connection:
    """One duplex TCP stream: ``reader`` for the receiver, ``send_line`` for the UI."""

    def __init__(self, sock: socket.socket, peer):
        self.sock = sock
        self.peer = peer
        self.reader = sock.makefile('rb')
        self._closed = False
        self._close_lock = threading.Lock()

    def send_line(self, text: str) -> int:
        data = encode_line(text)
        self.sock.sendall(data)
        logger.debug(f"Sent {len(data)} bytes to {self.peer}")
        logger.log(TRACE, f"sent: {data!r}")
        return len(data)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self):
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        try:
            # wakes a receiver blocked in readline
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            logger.debug(f"Shutdown of {self.peer} failed: {e}")
        self.sock.close()
        # the receiver may close it too; a second close is a no-op
        self.reader.close()
        logger.info(f"Connection to {self.peer} closed")

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def connect(address: str, port: int, timeout: float = CONNECT_TIMEOUT) -> Connection:
    """Open the outbound connection (initiator role)."""
    try:
        sock = socket.create_connection((address, port), timeout=timeout)
    except OSError as e:
        logger.error(f"Failed to connect to {address}:{port}: {e}")
        raise PeerConnectionError(f"could not connect to {address}:{port}: {e}") from e

    sock.settimeout(None)
    peer = sock.getpeername()
    logger.info(f"Connected to {peer}")
    return Connection(sock, peer)


def bind_listener(port: int, host: str = "0.0.0.0") -> socket.socket:
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        server.bind((host, port))
        server.listen(1)
    except OSError as e:
        server.close()
        logger.error(f"Failed to bind {host}:{port}: {e}")
        raise BindError(f"could not listen on {host}:{port}: {e}") from e

    logger.info(f"Listening on {server.getsockname()}")
    return server


def accept_one(server: socket.socket, timeout=None) -> Connection:
    """Accept a single peer, then stop listening."""
    with server:
        server.settimeout(timeout)
        try:
            conn, addr = server.accept()
        except OSError as e:
            logger.error(f"Failed to accept a peer: {e}")
            raise PeerConnectionError(f"no peer accepted: {e}") from e

    conn.settimeout(None)
    logger.info(f"New incoming connection from {addr}")
    return Connection(conn, addr)


def listen_and_accept(port: int, host: str = "0.0.0.0", timeout=None) -> Connection:
    """Wait for exactly one inbound peer (responder role)."""
    return accept_one(bind_listener(port, host), timeout=timeout)


class ReceiverTask(threading.Thread):
    """Background reader that moves incoming lines into the session log."""

    def __init__(self, reader, session: ChatSession, on_message=None, retry_delay: float = READ_RETRY_DELAY):
        super().__init__(name="receiver", daemon=True)
        self.reader = reader
        self.session = session
        self.on_message = on_message
        self.retry_delay = retry_delay

    def run(self):
        try:
            while not self.session.terminated.is_set():
                if not self.receive_once():
                    break
        finally:
            self.reader.close()
        logger.debug("Receiver stopped")

    def receive_once(self) -> bool:
        """Handle one read. Returns False once the stream is finished."""
        try:
            record = self.reader.readline()
        except (ConnectionResetError, ValueError) as e:
            # ValueError: the reader was closed under us
            logger.warning(f"Connection lost: {e}")
            self._peer_closed()
            return False
        except OSError as e:
            logger.warning(f"Failed to read data: {e}")
            self.session.terminated.wait(self.retry_delay)
            return True

        if not record:
            self._peer_closed()
            return False

        logger.log(TRACE, f"received data: {record!r}")
        line = decode_line(record)
        try:
            self.session.record(line)
        except LogUnavailableError as e:
            logger.error(f"Dropped incoming line: {e}")
            return True

        if self.on_message is not None:
            self.on_message(line)
        return True

    def _peer_closed(self):
        if self.session.terminated.set():
            logger.warning("Other end closed the connection")
            self.session.redraw.mark()
