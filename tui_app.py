import logging

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.widgets import Header, RichLog, Static

from editor import KeyPress, Mode
from event_loop import POLL_TIMEOUT, ChatView, EventLoop, ExitReason, KeyQueue
from p2p import ReceiverTask

logger = logging.getLogger(__name__)

DEFAULT_ROWS = 20


class TerminalError(RuntimeError):
    """The full-screen interface could not run."""


def input_line(view: ChatView) -> Text:
    if view.mode is Mode.NORMAL:
        return Text(view.text, style="dim")
    line = Text("> ")
    line.append(view.text[:view.cursor])
    # cursor cell
    line.append(view.text[view.cursor:view.cursor + 1] or " ", style="reverse")
    line.append(view.text[view.cursor + 1:])
    return line


def status_line(view: ChatView) -> Text:
    if view.peer_closed:
        hint = "Esc, q to quit" if view.mode is Mode.EDITING else "q to quit"
        return Text(f"peer disconnected - {hint}", style="bold red")
    if view.mode is Mode.EDITING:
        return Text("EDITING  Esc: stop editing  Enter: send")
    return Text("NORMAL  i: edit  q: quit")


class ScreenRenderer:
    """Draws a ChatView into the app's widgets."""

    def __init__(self, app: "ChatApp"):
        self.app = app

    def visible_rows(self) -> int:
        height = self.app.query_one("#chat_log").content_size.height
        return height if height > 0 else DEFAULT_ROWS

    def render(self, view: ChatView):
        # RichLog wraps long lines and scrolls to the newest one
        chat_log = self.app.query_one("#chat_log", RichLog)
        chat_log.clear()
        for line in view.lines:
            chat_log.write(Text(line))
        self.app.query_one("#status", Static).update(status_line(view))
        self.app.query_one("#input_line", Static).update(input_line(view))


class ChatApp(App):
    CSS = """
    Screen {
        layout: vertical;
    }
    #chat_log {
        height: 1fr;
        border: solid $accent;
        padding: 0 1;
    }
    #status {
        height: 1;
        background: $panel;
    }
    #input_line {
        height: 3;
        border: solid $accent;
    }
    """

    def __init__(self, session, connection, exit_on_close=False, poll_timeout=POLL_TIMEOUT):
        super().__init__()
        self.session = session
        self.connection = connection
        self.keys = KeyQueue()
        self.engine = EventLoop(session, connection, self.keys, ScreenRenderer(self),
                                poll_timeout=poll_timeout, exit_on_close=exit_on_close)
        self.receiver = ReceiverTask(connection.reader, session)
        self.exit_reason = None

    def compose(self) -> ComposeResult:
        yield Header()
        chat_log = RichLog(id="chat_log", wrap=True, markup=False, highlight=False)
        # arrow keys belong to the editor, not to log scrolling
        chat_log.can_focus = False
        yield chat_log
        yield Static(id="status")
        yield Static(id="input_line")

    def on_mount(self) -> None:
        self.title = "Duplex Chat"
        self.sub_title = str(self.connection.peer)
        # Start network in background
        self.receiver.start()
        self.run_worker(self._run_engine(), exclusive=True)

    async def _run_engine(self):
        self.exit_reason = await self.engine.run()
        self.exit(self.exit_reason)

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        if event.is_printable and event.character:
            self.keys.push(KeyPress(event.key, event.character))
        else:
            self.keys.push(KeyPress.of(event.key))


def run_tui(session, connection, exit_on_close=False) -> ExitReason:
    """Run the interface until quit; the terminal is restored on every path."""
    app = ChatApp(session, connection, exit_on_close=exit_on_close)
    try:
        app.run()
    except Exception as e:
        logger.error(f"Terminal interface failed: {e}")
        raise TerminalError(str(e)) from e

    if app.return_code:
        raise TerminalError(f"interface exited with code {app.return_code}")
    # ctrl+q and similar built-in exits bypass the engine
    return app.exit_reason or ExitReason.QUIT
