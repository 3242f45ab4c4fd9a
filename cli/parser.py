"""Command parser for CLI input."""

import shlex
from typing import Optional

from cli.models import (
    CloneCommand,
    CommandRequest,
    DeleteCommand,
    DownloadCommand,
    ListCommand,
    LoginCommand,
    UploadCommand,
)
from common.types import CompressionPolicy, UploadStrategy


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL or joined command-line arguments

    Returns:
        CommandRequest object (one of Login/List/Upload/Download/Delete/Clone)

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0]

    if command_name == "login":
        return _parse_login(tokens[1:])
    elif command_name == "list":
        return _parse_list(tokens[1:])
    elif command_name == "upload":
        return _parse_upload(tokens[1:])
    elif command_name == "download":
        return _parse_download(tokens[1:])
    elif command_name in ("delete", "remove"):
        return _parse_delete(tokens[1:])
    elif command_name == "clone":
        return _parse_clone(tokens[1:])
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _take_value(args: list[str], index: int, flag: str) -> str:
    if index + 1 >= len(args):
        raise ParseError(f"{flag} requires a value")
    return args[index + 1]


def _parse_compression(value: str) -> CompressionPolicy:
    try:
        return CompressionPolicy(value.lower())
    except ValueError:
        choices = ", ".join(p.value for p in CompressionPolicy)
        raise ParseError(f"Unknown compression '{value}' (choose from {choices})")


def _parse_sheet_size(value: str) -> int:
    if not value.isdigit() or int(value) <= 0:
        raise ParseError(f"Sheet size must be a positive number of bytes, got '{value}'")
    return int(value)


def _split_options(args: list[str], value_flags: dict[str, str], bool_flags: dict[str, str]) -> tuple[list[str], dict]:
    """Separate positional arguments from flags.

    Args:
        args: Tokens after the command name
        value_flags: Flag spelling -> option name, for flags taking a value
        bool_flags: Flag spelling -> option name, for switches

    Returns:
        Tuple of (positional arguments, options dictionary)
    """
    positional = []
    options: dict = {}
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in value_flags:
            options[value_flags[arg]] = _take_value(args, i, arg)
            i += 2
            continue
        if arg in bool_flags:
            options[bool_flags[arg]] = True
            i += 1
            continue
        if arg.startswith("-") and len(arg) > 1:
            raise ParseError(f"Unknown option: {arg}")
        positional.append(arg)
        i += 1
    return positional, options


def _parse_login(args: list[str]) -> LoginCommand:
    """Parse 'login <access_token>' command."""
    if len(args) != 1:
        raise ParseError("login requires exactly 1 argument: <access_token>")
    return LoginCommand(access_token=args[0])


def _parse_list(args: list[str]) -> ListCommand:
    """Parse 'list' command."""
    if args:
        raise ParseError("list takes no arguments")
    return ListCommand()


def _parse_upload(args: list[str]) -> UploadCommand:
    """Parse 'upload file... [options]' command."""
    files, options = _split_options(
        args,
        {"-c": "compress", "--compress": "compress", "-m": "sheet_size", "--sheet-size": "sheet_size",
         "-p": "path", "--path": "path"},
        {"--direct": "direct"},
    )
    if not files:
        raise ParseError("upload requires at least one file")

    sheet_size: Optional[int] = None
    if "sheet_size" in options:
        sheet_size = _parse_sheet_size(options["sheet_size"])

    return UploadCommand(
        file_list=tuple(files),
        compression=_parse_compression(options.get("compress", "none")),
        sheet_size=sheet_size,
        base_path=options.get("path", "/"),
        strategy=UploadStrategy.DIRECT if options.get("direct") else UploadStrategy.MULTIPART,
    )


def _parse_download(args: list[str]) -> DownloadCommand:
    """Parse 'download id/name... [-o dir]' command."""
    targets, options = _split_options(args, {"-o": "output", "--output": "output"}, {})
    if not targets:
        raise ParseError("download requires at least one id or name")
    return DownloadCommand(targets=tuple(targets), output_dir=options.get("output"))


def _parse_delete(args: list[str]) -> DeleteCommand:
    """Parse 'delete id/name...' command."""
    if not args:
        raise ParseError("delete requires at least one id or name")
    return DeleteCommand(targets=tuple(args))


def _parse_clone(args: list[str]) -> CloneCommand:
    """Parse 'clone id/name... [options]' command."""
    targets, options = _split_options(
        args,
        {"-c": "compress", "--compress": "compress", "-m": "sheet_size", "--sheet-size": "sheet_size"},
        {},
    )
    if not targets:
        raise ParseError("clone requires at least one id or name")

    sheet_size: Optional[int] = None
    if "sheet_size" in options:
        sheet_size = _parse_sheet_size(options["sheet_size"])

    return CloneCommand(
        targets=tuple(targets),
        compression=_parse_compression(options.get("compress", "none")),
        sheet_size=sheet_size,
    )
