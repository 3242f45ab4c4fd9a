"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = ["login", "list", "upload", "download", "delete", "clone", "clear", "exit", "help"]

STYLE = Style.from_dict(
    {
        "prompt": "#34A853 bold",
        "command": "#0088ff bold",
    }
)

SHEET_GREEN = "\033[38;2;52;168;83m"
GREEN = "\033[32m"
RESET = "\033[0m"

LOGO = f"""{SHEET_GREEN}
 ____  _               _   ____  _
/ ___|| |__   ___  ___| |_/ ___|| |_ ___  _ __ ___
\\___ \\| '_ \\ / _ \\/ _ \\ __\\___ \\| __/ _ \\| '__/ _ \\
 ___) | | | |  __/  __/ |_ ___) | || (_) | | |  __/
|____/|_| |_|\\___|\\___|\\__|____/ \\__\\___/|_|  \\___|
{RESET}"""

WELCOME_TITLE = "SheetStore CLI - Files stored as Google Sheets"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "sheetstore> "

HELP_TEXT = """Available commands:
  login <access_token>                          Save a Drive OAuth access token
  list                                          List uploaded files
  upload <file>... [-c|--compress zip|zstd]     Upload local files
         [-m|--sheet-size BYTES] [-p|--path PATH] [--direct]
  download <id/name>... [-o|--output DIR]       Download remote files
  delete <id/name>...                           Permanently remove remote files
  clone <id/name>... [-c|--compress zip|zstd]   Clone a remote file or Drive document
        [-m|--sheet-size BYTES]
  clear                                         Clear screen and redisplay welcome message
  help                                          Show this help
  exit                                          Exit REPL

Names are matched against stored file names; anything made only of
letters, digits, '-' and '_' is tried as an id first.
Examples:
  upload report.pdf photos.zip --compress zip
  list
  download report
  download 1AbCdEf_gHiJ -o downloads
  delete report.pdf
  clone 1AbCdEf_gHiJ --sheet-size 5000000"""

DATE_FORMAT = "%m-%d-%Y"
