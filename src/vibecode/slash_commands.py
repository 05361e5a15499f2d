"""Slash command system for the REPL."""

from typing import TYPE_CHECKING, Callable

from prompt_toolkit.completion import Completer, Completion
from rich.table import Table

from vibecode.llm import LLMClient, TransportError
from vibecode.renderer import Renderer

if TYPE_CHECKING:
    from vibecode.agent import Agent


class SlashCommand:
    """Represents a slash command."""

    def __init__(self, name: str, handler: Callable, help_text: str, arg_required: bool = False):
        self.name = name
        self.handler = handler
        self.help_text = help_text
        self.arg_required = arg_required


def cmd_help(args: str, agent: "Agent", renderer: Renderer) -> bool:
    """Show help message."""
    table = Table(title="Available Commands", show_header=True, header_style="bold cyan")
    table.add_column("Command", style="cyan")
    table.add_column("Description")

    for cmd in COMMANDS.values():
        name = f"/{cmd.name}"
        if cmd.arg_required:
            name += " <arg>"
        table.add_row(name, cmd.help_text)
    table.add_row("exit, quit", "Leave the session (Ctrl+D works too)")

    renderer.console.print(table)
    return True


def cmd_model(args: str, agent: "Agent", renderer: Renderer) -> bool:
    """Show or switch the active model for this session."""
    model_name = args.strip()
    if not model_name:
        renderer.print_info(f"Current model: {agent.config.model}")
        return True

    candidate = agent.config.model_copy(update={"model": model_name})
    try:
        LLMClient(candidate).verify_connection()
    except TransportError as e:
        renderer.print_error(f"Model '{model_name}' is not available.")
        renderer.print_info(str(e))
        return True

    agent.set_model(model_name)
    renderer.print_success(f"Switched to model: {model_name}")
    return True


def cmd_tree(args: str, agent: "Agent", renderer: Renderer) -> bool:
    """Show the workspace file tree the model sees."""
    renderer.print_info(str(agent.workspace.root))
    renderer.show(agent.workspace.tree(agent.config.tree_max_depth))
    return True


def cmd_history(args: str, agent: "Agent", renderer: Renderer) -> bool:
    """Show the conversation so far."""
    if not len(agent.conversation):
        renderer.print_info("No conversation yet.")
        return True
    renderer.show(agent.conversation.transcript())
    return True


def cmd_exit(args: str, agent: "Agent", renderer: Renderer) -> bool:
    """Exit the session."""
    renderer.print_info("Goodbye!")
    return False


COMMANDS: dict[str, SlashCommand] = {
    "help": SlashCommand("help", cmd_help, "Show help message", False),
    "model": SlashCommand("model", cmd_model, "Show or switch the active model", False),
    "tree": SlashCommand("tree", cmd_tree, "Show the workspace file tree", False),
    "history": SlashCommand("history", cmd_history, "Show the conversation so far", False),
    "exit": SlashCommand("exit", cmd_exit, "Exit the session", False),
}


class SlashCommandCompleter(Completer):
    """Autocomplete for slash commands in prompt-toolkit."""

    def get_completions(self, document, complete_event):
        """Yield completions when input starts with '/'."""
        text = document.text_before_cursor

        if not text.startswith("/"):
            return

        partial = text[1:]

        for name, cmd in COMMANDS.items():
            if name.startswith(partial):
                yield Completion(
                    name,
                    start_position=-len(partial),
                    display_meta=cmd.help_text,
                )


def is_slash_command(text: str) -> bool:
    """Check if input is a slash command."""
    return text.strip().startswith("/")


def parse_command(text: str) -> tuple[str, str]:
    """Parse command name and arguments from input.

    Returns:
        Tuple of (command_name, arguments)
    """
    text = text.strip()
    if not text.startswith("/"):
        return "", ""

    parts = text[1:].split(maxsplit=1)
    if not parts:
        return "", ""
    command = parts[0].lower()
    args = parts[1] if len(parts) > 1 else ""

    return command, args


def execute_command(text: str, agent: "Agent", renderer: Renderer) -> bool | None:
    """Execute a slash command if the input is one.

    Returns:
        True if command executed and session should continue
        False if command executed and session should exit
        None if input is not a slash command
    """
    if not is_slash_command(text):
        return None

    command_name, args = parse_command(text)

    if command_name not in COMMANDS:
        renderer.print_error(f"Unknown command: /{command_name}. Type /help for available commands.")
        return True

    cmd = COMMANDS[command_name]

    if cmd.arg_required and not args:
        renderer.print_error(f"Command /{command_name} requires an argument.")
        return True

    return cmd.handler(args, agent, renderer)
