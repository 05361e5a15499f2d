"""Approval prompts for consequential actions."""

from collections.abc import Callable

YES_ANSWERS = ("y", "yes")


class ApprovalGate:
    """Asks the operator a yes/no question. Only an explicit yes approves."""

    def __init__(self, renderer=None, prompt_callback: Callable[[str], bool] | None = None):
        """Initialize the gate.

        Args:
            renderer: Optional renderer for console output
            prompt_callback: Optional replacement for the terminal prompt,
                called with the question and returning the decision
        """
        self.renderer = renderer
        self._prompt_callback = prompt_callback
        self.history: list[tuple[str, bool]] = []

    def confirm(self, prompt: str) -> bool:
        """Ask a yes/no question.

        Args:
            prompt: The question to show

        Returns:
            True only for an explicit yes. Empty input, EOF and Ctrl+C decline.
        """
        if self._prompt_callback:
            approved = bool(self._prompt_callback(prompt))
        else:
            approved = self._ask(prompt)
        self.history.append((prompt, approved))
        return approved

    def _ask(self, prompt: str) -> bool:
        try:
            response = input(f"{prompt} [y/N]: ").strip().lower()
        except (EOFError, KeyboardInterrupt):
            if self.renderer:
                self.renderer.print_info("")
            return False
        return response in YES_ANSWERS
