"""Custom completer for SheetStore CLI with local file autocompletion."""

from pathlib import Path
from typing import Iterable

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from cli.constants import COMMANDS


class SheetStoreCompleter(Completer):
    """
    Custom completer that provides:
    - Command name completion for the first token
    - Local file path completion for the 'upload' command
    """

    def get_completions(
        self, document: Document, complete_event
    ) -> Iterable[Completion]:
        """
        Generate completions based on cursor position and context.

        For the first token, completes command names.
        For 'upload' command arguments, completes paths relative to the
        working directory.
        """
        text = document.text_before_cursor
        tokens = text.split()

        is_typing_new_token = text.endswith(" ") or not tokens

        if not tokens or (len(tokens) == 1 and not is_typing_new_token):
            yield from self._complete_commands(tokens[0] if tokens else "")
            return

        command = tokens[0].lower()
        if command != "upload":
            return

        current_word = "" if is_typing_new_token else tokens[-1]
        if current_word.startswith("-"):
            return

        already_typed_files = set(tokens[1:])
        if not is_typing_new_token:
            already_typed_files.discard(current_word)

        yield from self._complete_local_files(current_word, already_typed_files)

    def _complete_commands(self, partial: str) -> Iterable[Completion]:
        """Complete command names matching the partial input."""
        partial_lower = partial.lower()
        for cmd in COMMANDS:
            if cmd.startswith(partial_lower):
                yield Completion(cmd, start_position=-len(partial))

    def _complete_local_files(
        self, partial: str, exclude_files: set
    ) -> Iterable[Completion]:
        """
        Complete paths inside the directory part of the partial input.

        Directories are offered with a trailing slash so completion can
        continue into them.
        """
        directory, _, prefix = partial.rpartition("/")
        base = Path.cwd() / directory if directory else Path.cwd()
        if not base.is_dir():
            return

        for item in sorted(base.iterdir()):
            if not item.name.startswith(prefix) or item.name.startswith("."):
                continue
            candidate = f"{directory}/{item.name}" if directory else item.name
            if item.is_dir():
                candidate += "/"
            elif candidate in exclude_files:
                continue
            yield Completion(candidate, start_position=-len(partial))
