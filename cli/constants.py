"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = [
    "list", "refresh", "search", "upload", "delete", "pin", "unpin", "promote",
    "status", "notifications", "token", "clear", "help", "exit",
]

STORAGE_CLASS_NAMES = ("local-only", "local-with-remote", "remote-only")

STYLE = Style.from_dict(
    {
        "prompt": "#2E9BF4 bold",
        "command": "#0088ff bold",
    }
)

BLUE = "\033[38;2;46;155;244m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
RED = "\033[31m"
RESET = "\033[0m"

LOGO = f"""{BLUE}
 ██████╗ ███████╗██╗      █████╗ ██╗   ██╗███████╗██╗   ██╗███╗   ██╗ ██████╗
 ██╔══██╗██╔════╝██║     ██╔══██╗╚██╗ ██╔╝██╔════╝╚██╗ ██╔╝████╗  ██║██╔════╝
 ██████╔╝█████╗  ██║     ███████║ ╚████╔╝ ███████╗ ╚████╔╝ ██╔██╗ ██║██║
 ██╔══██╗██╔══╝  ██║     ██╔══██║  ╚██╔╝  ╚════██║  ╚██╔╝  ██║╚██╗██║██║
 ██║  ██║███████╗███████╗██║  ██║   ██║   ███████║   ██║   ██║ ╚████║╚██████╗
 ╚═╝  ╚═╝╚══════╝╚══════╝╚═╝  ╚═╝   ╚═╝   ╚══════╝   ╚═╝   ╚═╝  ╚═══╝ ╚═════╝
{RESET}"""

WELCOME_TITLE = "RelaySync - file sync and dedup client"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "relaysync> "

HELP_TEXT = """Available commands:
  list [storage-class]                List cached files (local-only, local-with-remote, remote-only)
  refresh                             Reload the file list from the relay
  search key=value ...                Search files on the relay (e.g. name=report)
  upload <path>... [--name NAME]      Upload files (--name only with a single file)
  delete <id>...                      Delete files by id
  pin <id>                            Pin a file on the remote network
  unpin <id>                          Unpin a file from the remote network
  promote <id>                        Add a local-only file to the remote network
  status                              Check the relay connection and show cache stats
  notifications                       Show active notifications
  token <value>                       Store the bearer token (use 'token --clear' to remove)
  clear                               Clear screen and redisplay welcome message
  help                                Show this help
  exit                                Exit REPL

Examples:
  upload report.pdf
  upload notes.txt --name "meeting notes.txt"
  list remote-only
  search name=report mimetype=application/pdf
  delete 42 43"""
