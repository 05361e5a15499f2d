"""vibecode CLI entry point."""

import logging
import os
import shutil
import sys
from pathlib import Path

import click
import litellm
from prompt_toolkit import PromptSession

from vibecode import __version__
from vibecode.agent import Agent
from vibecode.config import (
    ConfigError,
    apply_cli_overrides,
    ensure_config,
    load_config,
    save_config,
)
from vibecode.llm import LLMClient, TransportError
from vibecode.permissions import ApprovalGate
from vibecode.renderer import Renderer
from vibecode.sandbox import get_language
from vibecode.slash_commands import SlashCommandCompleter, execute_command

litellm.suppress_debug_info = True

USER_PROMPT = "You   > "
EXIT_WORDS = ("exit", "quit")


def _apply_proxy(proxy: str | None) -> None:
    if proxy:
        os.environ["HTTPS_PROXY"] = proxy
        os.environ["HTTP_PROXY"] = proxy


def run_doctor(config, renderer: Renderer) -> bool:
    """Check the external programs and the model server. Returns True if all pass."""
    language = get_language(config.script_language)
    checks = [
        (f"{config.vcs_program} on PATH", shutil.which(config.vcs_program) is not None, ""),
        (
            f"{language.interpreter} on PATH",
            shutil.which(language.interpreter) is not None,
            "",
        ),
    ]
    try:
        LLMClient(config).verify_connection()
        checks.append((f"model server reachable ({config.model})", True, ""))
    except TransportError as e:
        checks.append((f"model server reachable ({config.model})", False, str(e)))

    for label, passed, detail in checks:
        if passed:
            renderer.print_success(f"✓ {label}")
        else:
            renderer.print_error(f"✗ {label}")
            if detail:
                renderer.print_info(detail)
    return all(passed for _, passed, _ in checks)


def show_models(config, renderer: Renderer) -> bool:
    """Print the installed models, marking the configured one. Returns False on failure."""
    try:
        names = LLMClient(config).list_models()
    except TransportError as e:
        renderer.print_error(str(e))
        return False
    if not names:
        renderer.print_info("No models installed. Try: ollama pull <model>")
        return True
    active = config.model.split("/", 1)[-1]
    for name in names:
        if name == active:
            renderer.print_success(f"* {name} (active)")
        else:
            renderer.print_info(f"  {name}")
    return True


def repl(agent: Agent, renderer: Renderer) -> None:
    """Read user messages until exit, running one round per message."""
    session = PromptSession(completer=SlashCommandCompleter())

    while True:
        try:
            text = session.prompt(USER_PROMPT)
        except KeyboardInterrupt:
            click.echo("\nUse Ctrl+D or type 'exit' to quit.")
            continue
        except EOFError:
            break

        text = text.strip()
        if not text:
            continue
        if text.lower() in EXIT_WORDS:
            renderer.print_info("Goodbye!")
            break

        should_continue = execute_command(text, agent, renderer)
        if should_continue is False:
            break
        if should_continue is True:
            continue

        try:
            agent.run(text)
        except KeyboardInterrupt:
            renderer.print_warning("\nInterrupted.")
        renderer.render_separator()


@click.command()
@click.option("--model", default=None, help="Override LLM model (e.g., ollama_chat/qwen3-coder:latest)")
@click.option("--api-base", default=None, help="Override LiteLLM API base URL")
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project directory the agent may read and write (default: current directory)",
)
@click.option(
    "--language",
    type=click.Choice(["ruby", "python"]),
    default=None,
    help="Language for generated scripts",
)
@click.option("--use", "use_model", default=None, metavar="MODEL", help="Save MODEL as the default and exit")
@click.option("--list", "list_models", is_flag=True, help="List the models installed on the Ollama server and exit")
@click.option("--doctor", is_flag=True, help="Check git, the interpreter and the model server, then exit")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: ~/.vibecode/config.yaml)",
)
def main(
    model: str | None,
    api_base: str | None,
    root: Path | None,
    language: str | None,
    use_model: str | None,
    list_models: bool,
    doctor: bool,
    debug: bool,
    config_path: Path | None,
) -> None:
    """Local-first AI coding assistant that asks before it touches anything."""
    if debug:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s %(levelname)s: %(message)s")

    renderer = Renderer()

    try:
        path = ensure_config(config_path)
        config = load_config(path)
        if use_model:
            config = apply_cli_overrides(config, model=use_model, api_base=api_base)
            save_config(config, path)
            renderer.print_success(f"Default model set to {config.model}")
            return
        config = apply_cli_overrides(
            config, model=model, api_base=api_base, script_language=language
        )
    except ConfigError as e:
        click.echo(str(e), err=True)
        sys.exit(1)

    _apply_proxy(config.https_proxy)

    if doctor:
        sys.exit(0 if run_doctor(config, renderer) else 1)

    if list_models:
        sys.exit(0 if show_models(config, renderer) else 1)

    renderer.render_banner(__version__)
    renderer.render_config({
        "Model": config.model,
        "API": config.api_base,
        "Root": str((root or Path.cwd()).resolve()),
        "Language": config.script_language,
    })

    llm_client = LLMClient(config)
    try:
        llm_client.verify_connection()
    except TransportError as e:
        click.echo(str(e), err=True)
        sys.exit(1)

    agent = Agent(
        config,
        llm_client,
        renderer,
        approvals=ApprovalGate(renderer),
        workspace_root=str(root) if root else None,
    )
    click.echo(click.style("Type 'exit' to quit, /help for commands.\n", fg="green"))
    repl(agent, renderer)
