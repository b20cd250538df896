import argparse
import importlib.metadata
import os
import sys
import textwrap
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Callable, Optional

from tryst import main as tryst
from tryst.lang import reader as reader
from tryst.lang import runtime as runtime
from tryst.lang.combinators import ParseError, Spanned
from tryst.lang.exception import print_exception
from tryst.lang.form import lrepr
from tryst.lang.utf8 import DecodeError
from tryst.prompt import get_prompter

REPL_PROMPT = "tryst=> "
STDIN_FILE_NAME = "-"

BOOL_TRUE = frozenset({"true", "t", "1", "yes", "y"})
BOOL_FALSE = frozenset({"false", "f", "0", "no", "n"})


def read_target(args: argparse.Namespace) -> Spanned:
    """Read every form from the code string, file or standard input named by the
    command line arguments.

    Input which does not consist entirely of complete forms is an error."""
    target = args.file_or_code
    if args.code:
        return reader.read_str(target, allow_trailing=False)
    elif target == STDIN_FILE_NAME:
        return reader.read_stream(sys.stdin.buffer, allow_trailing=False)
    elif Path(target).exists():
        return reader.read_file(target, allow_trailing=False)
    else:
        raise FileNotFoundError(f"Error: The file {target} does not exist.")


def _to_bool(v: Optional[str]) -> Optional[bool]:
    """Coerce a string argument to a boolean value, if possible."""
    if v is None:
        return v
    elif v.lower() in BOOL_TRUE:
        return True
    elif v.lower() in BOOL_FALSE:
        return False
    else:
        raise argparse.ArgumentTypeError("Unable to coerce flag value to boolean.")


def _set_envvar_action(
    var: str, parent: type[argparse.Action] = argparse.Action
) -> type[argparse.Action]:
    """Return an argparse.Action instance (deriving from `parent`) that sets the value
    as the default value of the environment variable `var`."""

    class EnvVarSetterAction(parent):  # type: ignore
        def __call__(  # pylint: disable=signature-differs
            self,
            parser: argparse.ArgumentParser,
            namespace: argparse.Namespace,
            values: Any,
            option_string: str,
        ):
            os.environ.setdefault(var, str(values))

    return EnvVarSetterAction


def _add_debug_arg_group(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("debug options")
    group.add_argument(
        "--enable-logger",
        action=_set_envvar_action("TRYST_USE_DEV_LOGGER", parent=argparse._StoreAction),
        nargs="?",
        const=True,
        type=_to_bool,
        help=(
            "if true, enable the Tryst root logger "
            "(env: TRYST_USE_DEV_LOGGER; default: false)"
        ),
    )
    group.add_argument(
        "-l",
        "--log-level",
        action=_set_envvar_action("TRYST_LOGGING_LEVEL", parent=argparse._StoreAction),
        type=lambda s: s.upper(),
        default="WARNING",
        help=(
            "the logging level for logs emitted by the Tryst reader "
            "(env: TRYST_LOGGING_LEVEL; default: WARNING)"
        ),
    )


Handler = Callable[[argparse.ArgumentParser, argparse.Namespace], None]


def _subcommand(
    subcommand: str,
    *,
    help: Optional[str] = None,  # pylint: disable=redefined-builtin
    description: Optional[str] = None,
    handler: Handler,
) -> Callable[
    [Callable[[argparse.ArgumentParser], None]],
    Callable[["argparse._SubParsersAction"], None],
]:
    def _wrap_add_subcommand(
        f: Callable[[argparse.ArgumentParser], None],
    ) -> Callable[["argparse._SubParsersAction"], None]:
        def _wrapped_subcommand(subparsers: "argparse._SubParsersAction"):
            parser = subparsers.add_parser(
                subcommand, help=help, description=description
            )
            parser.set_defaults(handler=handler)
            f(parser)

        return _wrapped_subcommand

    return _wrap_add_subcommand


def read(
    _,
    args: argparse.Namespace,
) -> None:
    tryst.init()

    try:
        forms = read_target(args)
    except (ParseError, DecodeError) as e:
        print_exception(e, type(e), e.__traceback__)
        sys.exit(1)

    for form in forms.value:
        if args.spans:
            print(f"{form.span} {lrepr(form)}")
        else:
            print(lrepr(form))


@_subcommand(
    "read",
    help="read Tryst code and print the forms",
    description=textwrap.dedent(
        """Read a Tryst file or a string of code and print each form read.

        If `-c` is provided, read the code as given. If the argument is `-`, read
        UTF-8 encoded code from standard input. Otherwise, read the file relative
        to the current working directory.

        The input must consist only of complete forms separated by whitespace. If
        it does not, the error is printed and the exit status is 1."""
    ),
    handler=read,
)
def _add_read_subcommand(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "file_or_code",
        help="file path to a Tryst file, `-` for standard input or a string of code",
    )
    parser.add_argument(
        "-c",
        "--code",
        action="store_true",
        help="if provided, treat argument as a string of code",
    )
    parser.add_argument(
        "--spans",
        action="store_true",
        help="if provided, print the source span of each form before the form",
    )
    _add_debug_arg_group(parser)


def repl(
    _,
    args: argparse.Namespace,
) -> None:
    tryst.init()
    prompter = get_prompter()

    while True:
        try:
            lsrc = prompter.prompt(REPL_PROMPT)
        except EOFError:
            break
        except KeyboardInterrupt:  # pragma: no cover
            print("")
            continue

        if not lsrc.strip():
            continue

        try:
            result = runtime.rep(lsrc)
        except ParseError as e:
            print_exception(e, ParseError, e.__traceback__)
            continue
        except Exception as e:  # pylint: disable=broad-exception-caught
            print_exception(e, Exception, e.__traceback__)
            continue

        prompter.print(result)


@_subcommand(
    "repl",
    help="start the Tryst REPL",
    description="Start a Tryst REPL which reads each input and prints the forms read.",
    handler=repl,
)
def _add_repl_subcommand(parser: argparse.ArgumentParser) -> None:
    _add_debug_arg_group(parser)


def version(_, __) -> None:
    v = importlib.metadata.version("tryst")
    print(f"Tryst {v}")


@_subcommand("version", help="print the version of Tryst", handler=version)
def _add_version_subcommand(_: argparse.ArgumentParser) -> None:
    pass


def invoke_cli(args: Optional[Sequence[str]] = None) -> None:
    """Entrypoint to run the Tryst CLI."""
    parser = argparse.ArgumentParser(
        description="Tryst reads a small parenthesized Lisp notation."
    )

    subparsers = parser.add_subparsers(help="sub-commands")
    _add_read_subcommand(subparsers)
    _add_repl_subcommand(subparsers)
    _add_version_subcommand(subparsers)

    parsed_args = parser.parse_args(args=args)
    if hasattr(parsed_args, "handler"):
        parsed_args.handler(parser, parsed_args)
    else:
        parser.print_help()


if __name__ == "__main__":
    invoke_cli()
