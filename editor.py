from dataclasses import dataclass
from enum import Enum
from typing import Optional

ENTER_EDIT_KEY = "i"
QUIT_KEY = "q"
INTERRUPT_KEY = "ctrl+c"


class Mode(Enum):
    NORMAL = "normal"
    EDITING = "editing"


class Action(Enum):
    NONE = "none"
    SUBMIT = "submit"
    QUIT = "quit"


@dataclass(frozen=True)
class KeyPress:
    """A single key event. ``char`` is set for printable keys only."""

    key: str
    char: Optional[str] = None

    @classmethod
    def of(cls, text: str) -> "KeyPress":
        # single characters are typed text, longer names are special keys
        if len(text) == 1:
            return cls(key=text, char=text)
        return cls(key=text)


@dataclass
class EditorState:
    text: str = ""
    cursor: int = 0
    mode: Mode = Mode.NORMAL

    def insert(self, char: str):
        self.text = self.text[:self.cursor] + char + self.text[self.cursor:]
        self.cursor += len(char)

    def backspace(self):
        if self.cursor == 0:
            return
        self.text = self.text[:self.cursor - 1] + self.text[self.cursor:]
        self.cursor -= 1

    def delete(self):
        if self.cursor >= len(self.text):
            return
        self.text = self.text[:self.cursor] + self.text[self.cursor + 1:]

    def move_left(self):
        self.cursor = max(0, self.cursor - 1)

    def move_right(self):
        self.cursor = min(len(self.text), self.cursor + 1)

    def move_home(self):
        self.cursor = 0

    def move_end(self):
        self.cursor = len(self.text)

    def take_input(self) -> str:
        """Return the buffer and reset it for the next message."""
        text = self.text
        self.text = ""
        self.cursor = 0
        return text

    def handle_key(self, press: KeyPress) -> Action:
        if press.key == INTERRUPT_KEY:
            return Action.QUIT

        if self.mode is Mode.NORMAL:
            if press.key == ENTER_EDIT_KEY:
                self.mode = Mode.EDITING
            elif press.key == QUIT_KEY:
                return Action.QUIT
            return Action.NONE

        if press.key == "escape":
            self.mode = Mode.NORMAL
        elif press.key == "enter":
            return Action.SUBMIT if self.text else Action.NONE
        elif press.key == "backspace":
            self.backspace()
        elif press.key == "delete":
            self.delete()
        elif press.key == "left":
            self.move_left()
        elif press.key == "right":
            self.move_right()
        elif press.key == "home":
            self.move_home()
        elif press.key == "end":
            self.move_end()
        elif press.char and press.char.isprintable():
            self.insert(press.char)
        return Action.NONE
