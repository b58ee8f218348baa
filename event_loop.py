import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from editor import Action, EditorState, KeyPress, Mode
from session import ChatSession, LogUnavailableError

logger = logging.getLogger(__name__)

POLL_TIMEOUT = 0.2


class ExitReason(Enum):
    QUIT = "quit"
    PEER_CLOSED = "peer_closed"


@dataclass(frozen=True)
class ChatView:
    """Everything one render pass needs."""

    lines: list = field(default_factory=list)
    text: str = ""
    cursor: int = 0
    mode: Mode = Mode.NORMAL
    peer_closed: bool = False


class KeyQueue:
    """Key source filled by the terminal front end and drained by the loop."""

    def __init__(self):
        self._queue = asyncio.Queue()

    def push(self, press: KeyPress):
        self._queue.put_nowait(press)

    async def poll(self, timeout: float) -> Optional[KeyPress]:
        try:
            return await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return None


class EventLoop:
    """Foreground loop: redraw when dirty, wait briefly for a key, dispatch it.

    ``keys`` needs an awaitable ``poll(timeout)``; ``renderer`` needs
    ``visible_rows()`` and ``render(view)``; ``connection`` needs
    ``send_line(text)``.
    """

    def __init__(self, session: ChatSession, connection, keys, renderer,
                 poll_timeout: float = POLL_TIMEOUT, exit_on_close: bool = False,
                 editor: Optional[EditorState] = None):
        self.session = session
        self.connection = connection
        self.keys = keys
        self.renderer = renderer
        self.poll_timeout = poll_timeout
        self.exit_on_close = exit_on_close
        self.editor = editor if editor is not None else EditorState()
        self.renders = 0

    async def run(self) -> ExitReason:
        logger.debug("Event loop started")
        while True:
            self.render_if_dirty()

            if self.exit_on_close and self.session.terminated.is_set():
                logger.info("Peer closed, leaving event loop")
                return ExitReason.PEER_CLOSED

            press = await self.keys.poll(self.poll_timeout)
            if press is None:
                continue

            self.session.redraw.mark()
            if self.dispatch(press) is Action.QUIT:
                logger.info("Closing connection")
                self.session.terminated.set()
                return ExitReason.QUIT

    def render_if_dirty(self) -> bool:
        if not self.session.redraw.test_and_clear():
            return False
        try:
            lines = self.session.log.windowed_snapshot(self.renderer.visible_rows())
        except LogUnavailableError:
            # try again on the next pass
            self.session.redraw.mark()
            return False

        self.renderer.render(self.view(lines))
        self.renders += 1
        return True

    def view(self, lines) -> ChatView:
        return ChatView(
            lines=lines,
            text=self.editor.text,
            cursor=self.editor.cursor,
            mode=self.editor.mode,
            peer_closed=self.session.terminated.is_set(),
        )

    def dispatch(self, press: KeyPress) -> Action:
        action = self.editor.handle_key(press)
        if action is Action.SUBMIT:
            self.submit(self.editor.take_input())
        return action

    def submit(self, text: str) -> bool:
        return submit_line(self.session, self.connection, text)


def submit_line(session: ChatSession, connection, text: str) -> bool:
    """Record ``text`` locally and send it. Returns True if it went out."""
    try:
        session.record(text)
    except LogUnavailableError as e:
        logger.error(f"Message not recorded locally: {e}")

    if session.terminated.is_set():
        logger.info("Peer is gone, message kept locally only")
        return False

    try:
        connection.send_line(text)
    except OSError as e:
        logger.warning(f"Failed to write to remote: {e}")
        return False
    return True
