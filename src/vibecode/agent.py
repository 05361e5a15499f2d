"""Agent - bounded round orchestrator.

A round is one user message carried through to a final answer:

    AWAITING_MODEL -> PARSED_INTENT
        -> [AWAITING_MODEL_AFTER_READS -> PARSED_INTENT_FINAL]
        -> PLANNING -> AWAITING_APPROVAL -> EXECUTING
        -> [AWAITING_MODEL_AFTER_EXECUTION] -> REPORTING -> IDLE

The model is asked at most twice while exploring (once more after file reads)
and once to narrate execution results. Nothing is written, run or committed
before the operator approves the whole batch.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath

from vibecode.config import AgentConfig
from vibecode.conversation import ConversationManager
from vibecode.execution_result import ExecutionResult
from vibecode.git import GitRunner, mentions_program
from vibecode.permissions import ApprovalGate
from vibecode.protocol import FileWriteRequest, Intent, parse_response
from vibecode.sandbox import ScriptSandbox, get_language
from vibecode.system_prompt import REPORT_PROMPT, build_system_prompt
from vibecode.workspace import AccessError, NotFoundError, Workspace, WriteError

_log = logging.getLogger(__name__)

DECLINED_NOTE = "Proposed actions were declined."


def truncate_output(text: str, limit: int) -> str:
    """Cap text fed back to the model, noting how much was kept."""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}\n\n[Output truncated - showing first {limit} characters]"


class TurnState(Enum):
    AWAITING_MODEL = "awaiting_model"
    PARSED_INTENT = "parsed_intent"
    AWAITING_MODEL_AFTER_READS = "awaiting_model_after_reads"
    PARSED_INTENT_FINAL = "parsed_intent_final"
    PLANNING = "planning"
    AWAITING_APPROVAL = "awaiting_approval"
    EXECUTING = "executing"
    AWAITING_MODEL_AFTER_EXECUTION = "awaiting_model_after_execution"
    REPORTING = "reporting"
    IDLE = "idle"


@dataclass
class ResolvedWrite:
    """A write request checked against the real tree."""

    requested_path: str
    path: str
    content: str
    exists: bool
    diff: str
    runnable: bool = False

    @property
    def action(self) -> str:
        return "update" if self.exists else "create"


@dataclass
class RoundOutcome:
    """Everything one call to Agent.run() did."""

    response: str = ""
    intent: Intent | None = None
    states: list[TurnState] = field(default_factory=list)
    writes: list[ResolvedWrite] = field(default_factory=list)
    written: list[str] = field(default_factory=list)
    results: list[ExecutionResult] = field(default_factory=list)
    approved: bool | None = None
    model_queries: int = 0


class Agent:
    """Turns one user message into approved reads, writes, script runs and git commands."""

    def __init__(
        self,
        config: AgentConfig,
        llm_client,
        renderer,
        approvals: ApprovalGate | None = None,
        workspace_root: str | None = None,
        workspace: Workspace | None = None,
        sandbox: ScriptSandbox | None = None,
        git: GitRunner | None = None,
        conversation: ConversationManager | None = None,
    ) -> None:
        """Initialize the agent.

        Args:
            config: AgentConfig carrying the active model and execution settings
            llm_client: Gateway exposing chat(model_id, system_prompt, context)
            renderer: Renderer for output
            approvals: Gate used for the batch approval and git confirmations
            workspace_root: Root directory for file access (defaults to cwd)
            workspace: Pre-built Workspace (optional)
            sandbox: Pre-built ScriptSandbox (optional)
            git: Pre-built GitRunner (optional)
            conversation: Existing ConversationManager (optional)
        """
        self.config = config
        self.llm_client = llm_client
        self.renderer = renderer
        self.approvals = approvals or ApprovalGate(renderer)
        self.language = get_language(config.script_language)
        self.workspace = workspace or Workspace(
            workspace_root or os.getcwd(), self.language.extension
        )
        self.sandbox = sandbox or ScriptSandbox(
            self.workspace.root, self.language, config.command_timeout
        )
        self.git = git or GitRunner(
            self.workspace.root,
            self.approvals,
            renderer,
            program=config.vcs_program,
            timeout=config.command_timeout,
        )
        self.conversation = conversation or ConversationManager()
        self.system_prompt = build_system_prompt(self.language.name, self.language.extension)

    def set_model(self, model: str) -> None:
        """Switch the active model for subsequent rounds."""
        self.config = self.config.model_copy(update={"model": model})

    # ── Round ────────────────────────────────────────────────────────────────

    def run(self, user_input: str) -> RoundOutcome:
        """Run one round for a user message.

        Args:
            user_input: The user's message

        Returns:
            A RoundOutcome describing what happened. Never raises for model,
            file or execution failures.
        """
        outcome = RoundOutcome()
        try:
            self._run_round(user_input, outcome)
        finally:
            self._enter(outcome, TurnState.IDLE)
        return outcome

    def _run_round(self, user_input: str, outcome: RoundOutcome) -> None:
        self._enter(outcome, TurnState.AWAITING_MODEL)
        self.conversation.add_message("user", user_input)

        raw = self._ask_model(outcome)
        if raw is None:
            self.renderer.print_warning("No response from model.")
            return
        intent = self._parse(raw, outcome, TurnState.PARSED_INTENT)

        suggestions: dict[str, str] = {}
        taken: set[str] = set()
        if intent.read_requests:
            self._perform_reads(intent.read_requests, user_input, suggestions, taken)
            self._enter(outcome, TurnState.AWAITING_MODEL_AFTER_READS)
            raw = self._ask_model(outcome)
            if raw is None:
                self.renderer.print_warning("No response from model.")
                return
            intent = self._parse(raw, outcome, TurnState.PARSED_INTENT_FINAL)
            if intent.read_requests:
                self.renderer.print_info("  Ignoring further file read requests this round.")
        outcome.intent = intent

        if intent.plan:
            self.renderer.render_plan(intent.plan)

        if intent.is_empty:
            # Unlabelled reply, e.g. a transport error description.
            self._respond(raw.strip(), outcome)
            return

        if not (intent.write_requests or intent.commands):
            self._respond(intent.response, outcome)
            return

        self._enter(outcome, TurnState.PLANNING)
        wants_git = mentions_program(user_input, self.config.vcs_program)
        commands = list(intent.commands or []) if wants_git else []
        if intent.commands and not wants_git:
            self.renderer.print_info(
                f"  Ignoring proposed commands: the request did not mention {self.config.vcs_program}."
            )
        writes = self._resolve_writes(intent.write_requests or [], user_input, suggestions, taken)
        outcome.writes = writes
        actions = self._build_plan(writes, commands)

        if actions:
            self._enter(outcome, TurnState.AWAITING_APPROVAL)
            self.renderer.render_action_plan(actions)
            for write in writes:
                self.renderer.render_diff(write.diff, write.path)
            outcome.approved = self.approvals.confirm("Apply these changes?")
            if not outcome.approved:
                self.renderer.print_warning("Cancelled. Nothing was changed.")
                self.conversation.add_message("user", DECLINED_NOTE)
                return

        self._enter(outcome, TurnState.EXECUTING)
        outcome.written = self._apply_writes(writes)
        outcome.results = self._run_scripts(outcome.written)
        for command in commands:
            self.renderer.print_info(f"\n⚙️  {command}")
            outcome.results.append(self.git.run(command))

        if any(not result.skipped for result in outcome.results):
            self._enter(outcome, TurnState.AWAITING_MODEL_AFTER_EXECUTION)
            self._report(intent, outcome)
        else:
            self._respond(intent.response, outcome)

    def _enter(self, outcome: RoundOutcome, state: TurnState) -> None:
        _log.debug("round state -> %s", state.value)
        outcome.states.append(state)

    # ── Model interaction ────────────────────────────────────────────────────

    def _build_context(self, closing: str) -> str:
        return (
            f"Conversation so far:\n{self.conversation.transcript()}\n\n"
            f"Project file tree:\n{self.workspace.tree(self.config.tree_max_depth)}\n\n"
            f"{closing}\n"
        )

    def _ask_model(self, outcome: RoundOutcome, report: bool = False) -> str | None:
        system_prompt = REPORT_PROMPT if report else self.system_prompt
        closing = (
            "Respond with a RESPONSE section only."
            if report
            else "Respond using the required structured format."
        )
        context = self._build_context(closing)
        with self.renderer.status_spinner("[dim]Thinking...[/dim]"):
            raw = self.llm_client.chat(self.config.model, system_prompt, context)
        outcome.model_queries += 1
        if raw is None or not raw.strip():
            return None
        return raw

    def _parse(self, raw: str, outcome: RoundOutcome, state: TurnState) -> Intent:
        intent = parse_response(raw)
        self._enter(outcome, state)
        for warning in intent.warnings:
            self.renderer.print_warning(f"  {warning}")
        return intent

    # ── Reads ────────────────────────────────────────────────────────────────

    def _perform_reads(
        self,
        paths: list[str],
        user_input: str,
        suggestions: dict[str, str],
        taken: set[str],
    ) -> None:
        for path in paths:
            try:
                content = self.workspace.read(path)
            except AccessError as e:
                self.renderer.print_error(f"  {e}")
                self.conversation.add_message("user", f"ACCESS DENIED ({path}): {e}")
                continue
            except NotFoundError:
                suggestion = self.workspace.suggest_filename(
                    user_input, directory=_parent(path), taken=taken
                )
                suggestions[path] = suggestion
                taken.add(suggestion)
                self.renderer.print_warning(f"  {path} not found; suggested new file: {suggestion}")
                self.conversation.add_message(
                    "user",
                    f"FILE NOT FOUND ({path}). Suggested path for a new file: {suggestion}",
                )
                continue

            self.renderer.print_info(f"📖 Reading {path}...")
            self.conversation.add_message(
                "user",
                f"FILE CONTENT ({path}):\n{truncate_output(content, self.config.max_file_chars)}",
            )

    # ── Planning ─────────────────────────────────────────────────────────────

    def _resolve_writes(
        self,
        requests: list[FileWriteRequest],
        user_input: str,
        suggestions: dict[str, str],
        taken: set[str],
    ) -> list[ResolvedWrite]:
        """Validate write paths and give new scripts collision-free names."""
        resolved: dict[str, ResolvedWrite] = {}
        suggested_names = set(suggestions.values())

        for request in requests:
            try:
                rel = self.workspace.relative(request.path)
                exists = self.workspace.exists(rel)
            except AccessError as e:
                self.renderer.print_error(f"  Refused write to {request.path}: {e}")
                continue

            path = rel
            if exists:
                if rel in resolved:
                    _log.debug("Later FILE block for %s replaces the earlier one", rel)
            elif self.sandbox.is_candidate(rel):
                if rel in suggested_names and rel not in resolved:
                    path = rel
                elif request.path in suggestions or rel in suggestions:
                    path = suggestions.pop(request.path, None) or suggestions.pop(rel)
                else:
                    path = self.workspace.suggest_filename(
                        user_input, directory=_parent(rel), taken=taken | set(resolved)
                    )
            elif rel in resolved:
                path = self.workspace.unique_name(rel, taken | set(resolved))

            if path != rel:
                self.renderer.print_info(f"  {request.path} → {path}")
            taken.add(path)
            resolved[path] = ResolvedWrite(
                requested_path=request.path,
                path=path,
                content=request.content,
                exists=exists,
                diff=self.workspace.diff(path, request.content),
                runnable=self.sandbox.is_candidate(path) and self.sandbox.is_executable(request.content),
            )
        return list(resolved.values())

    def _build_plan(self, writes: list[ResolvedWrite], commands: list[str]) -> list[str]:
        actions = []
        for write in writes:
            actions.append(f"{write.action} file {write.path}")
            if write.runnable:
                actions.append(f"run {self.sandbox.command_for(write.path)}")
        if commands and not writes:
            actions.append(f"execute {self.config.vcs_program} commands: " + "; ".join(commands))
        return actions

    # ── Execution ────────────────────────────────────────────────────────────

    def _apply_writes(self, writes: list[ResolvedWrite]) -> list[str]:
        written = []
        for write in writes:
            try:
                self.workspace.write(write.path, write.content)
            except (WriteError, AccessError) as e:
                self.renderer.print_error(f"  {e}")
                continue
            verb = "Updated" if write.exists else "Created"
            self.renderer.print_success(f"  {verb} {write.path}")
            written.append(write.path)
        return written

    def _run_scripts(self, written: list[str]) -> list[ExecutionResult]:
        results = []
        for path in written:
            if not self.sandbox.is_candidate(path):
                continue
            result = self.sandbox.run(path, written)
            if result.skipped:
                _log.debug("Not running %s: %s", path, result.reason)
            else:
                self._show_result(result)
            results.append(result)
        return results

    def _show_result(self, result: ExecutionResult) -> None:
        self.renderer.print_info(f"\n▶ {result.command}")
        if result.stdout.strip():
            self.renderer.show(result.stdout.rstrip())
        if result.exit_status is None:
            self.renderer.print_error(f"  did not complete: {result.reason}")
        elif result.exit_status != 0:
            if result.stderr.strip():
                self.renderer.print_error(result.stderr.rstrip())
            self.renderer.print_error(f"  exited with status {result.exit_status}")

    # ── Reporting ────────────────────────────────────────────────────────────

    def _report(self, intent: Intent, outcome: RoundOutcome) -> None:
        summary = "\n\n".join(
            truncate_output(result.summary(), self.config.max_file_chars)
            for result in outcome.results
        )
        self.conversation.add_message("user", f"EXECUTION RESULTS:\n\n{summary}")

        raw = self._ask_model(outcome, report=True)
        narration = None
        if raw is not None:
            report = parse_response(raw)
            if report.has_actions:
                self.renderer.print_info("  Ignoring actions requested in the report.")
            narration = report.response or (raw.strip() if report.is_empty else None)
        self._respond(narration or intent.response, outcome)

    def _respond(self, text: str | None, outcome: RoundOutcome) -> None:
        self._enter(outcome, TurnState.REPORTING)
        if not text:
            return
        self.renderer.render_response(text)
        self.conversation.add_message("assistant", text)
        outcome.response = text


def _parent(path: str) -> str:
    parent = PurePosixPath(path).parent.as_posix()
    return "" if parent == "." else parent
