# pylint: disable=ungrouped-imports

import os
from collections.abc import Mapping
from functools import partial
from types import MappingProxyType
from typing import Any, Optional

import pygments
from prompt_toolkit import PromptSession, print_formatted_text
from prompt_toolkit.application import run_in_terminal
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.formatted_text import PygmentsTokens
from prompt_toolkit.history import FileHistory
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.key_binding.key_processor import KeyPressEvent
from prompt_toolkit.layout.processors import HighlightMatchingBracketProcessor
from prompt_toolkit.lexers import PygmentsLexer
from prompt_toolkit.styles import style_from_pygments_cls
from pygments.lexers.lisp import SchemeLexer
from pygments.styles import get_style_by_name

from tryst.lang import reader as reader
from tryst.lang.combinators import ParseError
from tryst.lang.exception import print_exception

_USER_DATA_HOME = os.getenv("XDG_DATA_HOME", os.path.expanduser("~/.local/share"))
TRYST_USER_DATA = os.path.abspath(os.path.join(_USER_DATA_HOME, "tryst"))

TRYST_REPL_HISTORY_FILE_PATH = os.getenv(
    "TRYST_REPL_HISTORY_FILE_PATH",
    os.path.join(TRYST_USER_DATA, ".tryst_history"),
)
TRYST_REPL_PYGMENTS_STYLE_NAME = os.getenv("TRYST_REPL_PYGMENTS_STYLE_NAME", "emacs")
TRYST_NO_COLOR = os.environ.get("TRYST_NO_COLOR", "false").lower() in {
    "1",
    "true",
}


def is_incomplete(text: str) -> bool:
    """Return True if `text` is not readable as it stands but is the beginning of
    some readable input.

    Lists are the only nested forms and nothing else contains parentheses, so that
    is the case exactly when adding one more symbol and closing every open list
    makes the input readable."""
    depth = 0
    for c in text:
        if c == "(":
            depth += 1
        elif c == ")":
            depth -= 1
            if depth < 0:
                return False

    if depth == 0:
        return False

    try:
        reader.read_str(f"{text} x{')' * depth}", allow_trailing=False)
    except ParseError:
        return False
    return True


class Prompter:
    __slots__ = ()

    def prompt(self, msg: str) -> str:
        """Prompt the user for input with the input string `msg`."""
        return input(msg)

    def print(self, msg: str) -> None:
        """Print the message to standard out."""
        print(msg)


class PromptToolkitPrompter(Prompter):
    """Prompter class which wraps Prompt Toolkit utilities to provide advanced
    line editing functionality."""

    __slots__ = ("_session",)

    def __init__(self):
        history_dir = os.path.dirname(TRYST_REPL_HISTORY_FILE_PATH)
        if history_dir:
            os.makedirs(history_dir, exist_ok=True)

        self._session: PromptSession = PromptSession(
            auto_suggest=AutoSuggestFromHistory(),
            history=FileHistory(TRYST_REPL_HISTORY_FILE_PATH),
            key_bindings=self._get_key_bindings(),
            lexer=self._prompt_toolkit_lexer,
            multiline=True,
            input_processors=[HighlightMatchingBracketProcessor(chars="()")],
            **self._style_settings,
        )

    @staticmethod
    def _get_key_bindings() -> KeyBindings:
        """Return `KeyBindings` which override the builtin `enter` handler to
        allow multi-line input.

        Inputs are read by the reader to determine if they represent complete
        Tryst forms. Incomplete inputs get a new line. Any other `ParseError` is
        printed to the terminal. Blank and complete inputs are submitted."""
        kb = KeyBindings()

        @kb.add("enter")
        def _(event: KeyPressEvent) -> None:
            text = event.current_buffer.text
            if not text.strip():
                event.current_buffer.validate_and_handle()
                return

            try:
                reader.read_str(text, allow_trailing=False)
            except ParseError as e:
                if is_incomplete(text):
                    event.current_buffer.insert_text("\n")
                else:
                    run_in_terminal(
                        partial(print_exception, e, ParseError, e.__traceback__)
                    )
            else:
                event.current_buffer.validate_and_handle()

        return kb

    _prompt_toolkit_lexer: Optional[PygmentsLexer] = None
    _style_settings: Mapping[str, Any] = MappingProxyType({})

    def prompt(self, msg: str) -> str:
        return self._session.prompt(msg)


class StyledPromptToolkitPrompter(PromptToolkitPrompter):
    """Prompter class which adds Pygments based terminal styling to the
    PromptToolKit prompt."""

    _prompt_toolkit_lexer = PygmentsLexer(SchemeLexer)
    _pygments_lexer = SchemeLexer()
    _style_settings = MappingProxyType(
        {
            "style": style_from_pygments_cls(
                get_style_by_name(TRYST_REPL_PYGMENTS_STYLE_NAME)
            ),
            "include_default_pygments_style": False,
        }
    )

    def print(self, msg: str) -> None:
        tokens = list(pygments.lex(msg, lexer=self._pygments_lexer))
        print_formatted_text(PygmentsTokens(tokens), **self._style_settings)


_DEFAULT_PROMPTER: type[Prompter] = (
    PromptToolkitPrompter if TRYST_NO_COLOR else StyledPromptToolkitPrompter
)


def get_prompter() -> Prompter:
    """Return a Prompter instance for reading user input from the REPL.

    Prompter instances may be stateful, so the Prompter instance returned by
    this function can be reused within a single REPL session."""
    return _DEFAULT_PROMPTER()


__all__ = ["Prompter", "get_prompter"]
