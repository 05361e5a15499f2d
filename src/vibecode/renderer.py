"""Rich terminal output helpers for the CLI."""

import contextlib
import io

from rich.align import Align
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.status import Status
from rich.syntax import Syntax
from rich.text import Text

MAX_DIFF_LINES = 80


class Renderer:
    """Render markdown and styled status/error output in terminal."""

    def __init__(self, output_file: io.TextIOBase | None = None) -> None:
        self._output_file = output_file
        if output_file is not None:
            self.console = Console(file=output_file, force_terminal=False, highlight=False)
        else:
            self.console = Console()

    def show(self, text: str) -> None:
        """Print plain text verbatim."""
        self.console.print(text, markup=False, highlight=False)

    def render_markdown(self, text: str) -> None:
        """Render markdown content with Rich formatting."""
        self.console.print(Markdown(text))

    def print_error(self, message: str) -> None:
        """Print a styled error message."""
        self.console.print(Text(message, style="red"), highlight=False)

    def print_info(self, message: str) -> None:
        """Print a styled informational message."""
        self.console.print(Text(message, style="dim"), highlight=False)

    def print_warning(self, message: str) -> None:
        """Print a styled warning message."""
        self.console.print(Text(message, style="yellow"), highlight=False)

    def print_success(self, message: str) -> None:
        """Print a styled success message."""
        self.console.print(Text(message, style="green"), highlight=False)

    def status_spinner(self, message: str) -> "Status | contextlib.AbstractContextManager":
        """Return a spinner context manager, or a no-op one when output is redirected."""
        if self._output_file is not None or not self.console.is_terminal:
            return contextlib.nullcontext()
        return self.console.status(message)

    def render_separator(self) -> None:
        """Render a dim horizontal rule as a separator."""
        self.console.print(Rule(style="dim"))

    def render_banner(self, version: str) -> None:
        """Render the application banner.

        Args:
            version: Application version string.
        """
        content = Text.assemble(
            ("vibecode", "bold cyan"),
            ("  v" + version, "dim"),
        )
        self.console.print(Panel(
            Align.left(content),
            border_style="cyan dim",
            expand=False,
            padding=(0, 2),
        ))

    def render_config(self, config_items: dict) -> None:
        """Render configuration items one per line, left-aligned."""
        for key, value in config_items.items():
            line = Text.assemble(
                (f"{key}: ", "dim"),
                (str(value), "#888888"),
            )
            self.console.print(line, highlight=False)

    def render_plan(self, plan: str) -> None:
        """Render the model's own reasoning."""
        self.console.print()
        self.console.print(Text("🧠 Plan:", style="bold cyan"))
        self.console.print(plan, markup=False, highlight=False)

    def render_action_plan(self, actions: list[str]) -> None:
        """Render the list of actions awaiting approval."""
        self.console.print()
        self.console.print(Text("Proposed actions:", style="bold"))
        for action in actions:
            self.console.print(Text.assemble(("  • ", "cyan"), (action, "")), highlight=False)

    def render_diff(self, diff_text: str, file_path: str = "") -> None:
        """Render a unified diff, truncated for very large changes.

        Args:
            diff_text: Unified diff text (may be empty)
            file_path: File path used in the header line
        """
        self.console.print()
        self.console.print(Text(f"Proposed changes to {file_path}:", style="yellow"))
        if not diff_text:
            self.print_info("(No changes)")
            return
        lines = diff_text.splitlines()
        shown = "\n".join(lines[:MAX_DIFF_LINES])
        if len(lines) > MAX_DIFF_LINES:
            shown += f"\n  ... ({len(lines) - MAX_DIFF_LINES} more lines)"
        self.console.print(Syntax(shown, "diff", theme="ansi_dark"))

    def render_response(self, text: str) -> None:
        """Render the assistant's final answer."""
        self.console.print()
        self.render_markdown(text)
