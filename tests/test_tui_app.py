"""Headless tests for the textual front end."""
import asyncio

from editor import Mode
from event_loop import ChatView, ExitReason
from tui_app import ChatApp, input_line, status_line


def test_input_line_marks_cursor():
    line = input_line(ChatView(text="héllo", cursor=1, mode=Mode.EDITING))

    assert line.plain == "> héllo"
    assert [span.style for span in line.spans] == ["reverse"]
    assert line.spans[0].start == 3
    assert line.spans[0].end == 4


def test_input_line_cursor_at_end_is_a_blank_cell():
    line = input_line(ChatView(text="ab", cursor=2, mode=Mode.EDITING))

    assert line.plain == "> ab "


def test_status_line_reports_peer_closed():
    assert "disconnected" in status_line(ChatView(peer_closed=True)).plain
    assert status_line(ChatView(mode=Mode.EDITING)).plain.startswith("EDITING")
    assert status_line(ChatView()).plain.startswith("NORMAL")


def test_disconnect_hint_depends_on_mode():
    assert status_line(ChatView(peer_closed=True)).plain.endswith("- q to quit")
    assert "Esc" in status_line(ChatView(peer_closed=True, mode=Mode.EDITING)).plain


def test_newest_line_visible_after_long_lines(socket_pair, session):
    connection, _ = socket_pair
    for i in range(30):
        session.record(f"msg{i:02d} " + "x" * 70)
    session.record("NEWEST")

    async def scenario():
        app = ChatApp(session, connection, poll_timeout=0.02)
        async with app.run_test(size=(40, 20)) as pilot:
            await pilot.pause(0.3)
            screen = app.export_screenshot()
            await pilot.press("q")
            await pilot.pause(0.2)
        return screen

    screen = asyncio.run(scenario())

    assert "NEWEST" in screen
    assert "msg00" not in screen


def test_typing_sends_and_quit_exits(socket_pair, session):
    connection, remote = socket_pair

    async def scenario():
        app = ChatApp(session, connection, poll_timeout=0.02)
        async with app.run_test() as pilot:
            await pilot.press("i", "h", "i", "enter")
            await pilot.pause(0.3)
            assert session.log.snapshot() == ["hi"]

            remote.sendall(b"hey there\n")
            await pilot.pause(0.3)
            assert session.log.snapshot() == ["hi", "hey there"]

            await pilot.press("escape", "q")
            await pilot.pause(0.3)
        return app

    app = asyncio.run(scenario())

    assert remote.recv(64) == b"hi\n"
    assert app.exit_reason is ExitReason.QUIT
    assert session.terminated.is_set()
    assert app.engine.renders >= 3


def test_exit_on_close_leaves_app(socket_pair, session):
    connection, remote = socket_pair

    async def scenario():
        app = ChatApp(session, connection, exit_on_close=True, poll_timeout=0.02)
        async with app.run_test() as pilot:
            remote.close()
            await pilot.pause(0.5)
        return app

    app = asyncio.run(scenario())

    assert app.exit_reason is ExitReason.PEER_CLOSED
