"""LangGraph repair loop: run, detect failure, request fix, apply, retry.

Edge topology:
  START -> determine_command_node -> {run_node, abandon_node}
  run_node -> {success_node, fix_node}
  fix_node -> {run_node, exhausted_node, abort_node}
  success_node / exhausted_node / abandon_node / abort_node -> END
"""

import logging
from typing import Callable

from langgraph.graph import END, START, StateGraph

from autofix_bot.agents.action_parser import ActionProtocolParser
from autofix_bot.agents.completion import Completer
from autofix_bot.agents.exceptions import ParseEmpty, ProviderFailure
from autofix_bot.models import RepairAttempt, RepairOutcome, RepairResult, RepairStatus
from autofix_bot.orchestrator.exceptions import GraphBuildError
from autofix_bot.orchestrator.prompts import (
    MAX_ERROR_CHARS,
    MAX_PROMPT_FILES,
    build_repair_prompt,
    truncate,
)
from autofix_bot.orchestrator.run_commands import determine_run_command
from autofix_bot.orchestrator.state import MAX_ATTEMPTS, RepairState, make_initial_state
from autofix_bot.runtime.command_runner import CommandRunner
from autofix_bot.storage import ContentStore, ContentStoreError, NotFound

logger = logging.getLogger(__name__)

# Constants
REPAIR_RUN_TIMEOUT = 15
MAX_REPLY_PREVIEW = 500
NO_COMMAND_MESSAGE = (
    "Could not determine how to run your project. Please specify a run command."
)


def make_determine_command_node(store: ContentStore) -> Callable[[RepairState], dict]:
    """Factory: returns a node that picks a run command when none was given.

    On a missing project or no matching rule: returns {"message": ...} with
    command left as None, which routes to abandon_node.
    """

    def determine_command_node(state: RepairState) -> dict:
        if state["command"]:
            return {}
        try:
            files = store.list_project_files(state["project"])
        except NotFound as exc:
            return {"message": str(exc)}

        command = determine_run_command(files)
        if command is None:
            return {"message": NO_COMMAND_MESSAGE}
        logger.info("Using run command '%s' for %s", command, state["project"])
        return {"command": command}

    return determine_command_node


def make_run_node(
    runner: CommandRunner,
    store: ContentStore,
    timeout: float = REPAIR_RUN_TIMEOUT,
) -> Callable[[RepairState], dict]:
    """Factory: returns a node that starts the next attempt and runs the command.

    Verification runs are always synchronous and bounded by ``timeout``;
    timeouts and spawn failures come back as failed RunResults.
    """

    def run_node(state: RepairState) -> dict:
        index = state["attempt_index"] + 1
        project = state["project"]
        logger.info("Repair attempt %d/%d for %s", index, state["max_attempts"], project)
        result = runner.run(
            state["command"],
            working_directory=store.workspace_path(project),
            timeout=timeout,
            key=project,
            allow_background=False,
        )
        return {"attempt_index": index, "last_run": result, "fix_found": False}

    return run_node


def _read_prompt_files(store: ContentStore, project: str) -> dict[str, str]:
    try:
        names = store.list_project_files(project)
    except NotFound:
        return {}
    files: dict[str, str] = {}
    for name in names[:MAX_PROMPT_FILES]:
        try:
            files[name] = store.read_file(project, name)
        except ContentStoreError as exc:
            logger.debug("Skipping %s in repair prompt: %s", name, exc)
    return files


def make_fix_node(
    provider: Completer,
    store: ContentStore,
    parser: ActionProtocolParser,
) -> Callable[[RepairState], dict]:
    """Factory: returns a node that records the failure and applies a fix.

    The closure:
    1. Records an ERROR_DETECTED attempt with the truncated output
    2. Builds the repair prompt and calls the provider
    3. Parses FILE blocks and writes each through the content store
    4. Records FIX_APPLIED, or NO_FIX_FOUND when nothing was written

    On ProviderFailure: returns {"error": ...}, which routes to abort_node.
    """

    def fix_node(state: RepairState) -> dict:
        index = state["attempt_index"]
        project = state["project"]
        run = state["last_run"]
        error_output = truncate(run.combined_output or run.output, MAX_ERROR_CHARS)
        detected = RepairAttempt(
            index=index,
            outcome=RepairOutcome.ERROR_DETECTED,
            command_output=error_output,
        )

        prompt = build_repair_prompt(
            _read_prompt_files(store, project), state["command"], error_output
        )
        try:
            reply = provider.complete(prompt)
        except ProviderFailure as exc:
            logger.error("Completion provider failed during repair: %s", exc)
            return {"attempts": [detected], "error": str(exc)}

        no_fix = RepairAttempt(
            index=index,
            outcome=RepairOutcome.NO_FIX_FOUND,
            command_output=truncate(reply, MAX_REPLY_PREVIEW),
        )
        try:
            directive = parser.parse_required(reply)
        except ParseEmpty:
            return {"attempts": [detected, no_fix], "fix_found": False}

        applied: list[str] = []
        for path, content in directive.effective_files().items():
            try:
                store.write_file(project, path, content)
            except ContentStoreError as exc:
                logger.error("Error writing fix to %s: %s", path, exc)
                continue
            applied.append(path)

        if not applied:
            return {"attempts": [detected, no_fix], "fix_found": False}

        logger.info("Applied fix to %s", ", ".join(applied))
        fixed = RepairAttempt(
            index=index,
            outcome=RepairOutcome.FIX_APPLIED,
            applied_files=applied,
            explanation=directive.explanation or "Fixed the error",
        )
        return {"attempts": [detected, fixed], "fix_found": True}

    return fix_node


def success_node(state: RepairState) -> dict:
    """Record the successful attempt and finish."""
    run = state["last_run"]
    index = state["attempt_index"]
    fixes = sum(
        1 for attempt in state["attempts"] if attempt.outcome == RepairOutcome.FIX_APPLIED
    )
    summary = f"after {fixes} fix(es)" if fixes else "with no fixes needed"
    return {
        "attempts": [
            RepairAttempt(
                index=index,
                outcome=RepairOutcome.SUCCESS,
                command_output=truncate(run.output, MAX_ERROR_CHARS),
            )
        ],
        "status": RepairStatus.SUCCESS,
        "message": f"Success! Your code runs without errors {summary}.",
        "final_output": run.output,
    }


def exhausted_node(state: RepairState) -> dict:
    attempts = state["attempts"]
    if attempts and attempts[-1].outcome == RepairOutcome.NO_FIX_FOUND:
        message = (
            f"The AI could not generate a fix on attempt {state['attempt_index']}. "
            "Review the errors above."
        )
    else:
        message = (
            f"Could not fix all errors after {state['max_attempts']} attempts. "
            "Review the fixes and errors above."
        )
    return {"status": RepairStatus.EXHAUSTED, "message": message}


def abandon_node(state: RepairState) -> dict:
    return {
        "status": RepairStatus.ABANDONED,
        "message": state["message"] or NO_COMMAND_MESSAGE,
    }


def abort_node(state: RepairState) -> dict:
    return {
        "status": RepairStatus.ABORTED,
        "message": f"Auto-fix aborted: completion provider failed: {state['error']}",
    }


def route_after_determine(state: RepairState) -> str:
    return "run" if state["command"] else "abandon"


def route_after_run(state: RepairState) -> str:
    run = state["last_run"]
    return "fix" if run is None or run.exit_failed else "success"


def route_after_fix(state: RepairState) -> str:
    """abort on provider failure; exhausted on no fix or spent budget; else run."""
    if state["error"]:
        return "abort"
    if not state["fix_found"]:
        return "exhausted"
    if state["attempt_index"] >= state["max_attempts"]:
        return "exhausted"
    return "run"


def build_graph(
    runner: CommandRunner,
    store: ContentStore,
    provider: Completer,
    parser: ActionProtocolParser | None = None,
    run_timeout: float = REPAIR_RUN_TIMEOUT,
):
    """Build and compile the repair StateGraph.

    Args:
        runner: CommandRunner used for verification runs.
        store: Content store that receives every fix before the next run.
        provider: Completion provider asked for fixes.
        parser: Strict FILE-block parser (fallback grammars disabled by default).
        run_timeout: Wall-clock bound for each verification run.

    Returns:
        CompiledStateGraph ready to invoke.

    Raises:
        GraphBuildError: If graph construction fails.
    """
    parser = parser or ActionProtocolParser(allow_fallbacks=False)
    try:
        graph = StateGraph(RepairState)

        graph.add_node("determine_command_node", make_determine_command_node(store))
        graph.add_node("run_node", make_run_node(runner, store, run_timeout))
        graph.add_node("fix_node", make_fix_node(provider, store, parser))
        graph.add_node("success_node", success_node)
        graph.add_node("exhausted_node", exhausted_node)
        graph.add_node("abandon_node", abandon_node)
        graph.add_node("abort_node", abort_node)

        graph.add_edge(START, "determine_command_node")
        graph.add_conditional_edges(
            "determine_command_node",
            route_after_determine,
            {"run": "run_node", "abandon": "abandon_node"},
        )
        graph.add_conditional_edges(
            "run_node",
            route_after_run,
            {"success": "success_node", "fix": "fix_node"},
        )
        graph.add_conditional_edges(
            "fix_node",
            route_after_fix,
            {"run": "run_node", "exhausted": "exhausted_node", "abort": "abort_node"},
        )
        for terminal in ("success_node", "exhausted_node", "abandon_node", "abort_node"):
            graph.add_edge(terminal, END)

        return graph.compile()

    except Exception as exc:
        raise GraphBuildError(f"Failed to build repair graph: {exc}") from exc


class AutoRepairController:
    """Runs a project's program and repairs it until it runs or the budget is spent.

    Example:
        >>> controller = AutoRepairController(runner, store, provider)
        >>> result = controller.repair("my-project")
        >>> result.status
        <RepairStatus.SUCCESS: 'success'>
    """

    def __init__(
        self,
        runner: CommandRunner,
        store: ContentStore,
        provider: Completer,
        max_attempts: int = MAX_ATTEMPTS,
        parser: ActionProtocolParser | None = None,
        run_timeout: float = REPAIR_RUN_TIMEOUT,
    ) -> None:
        self.max_attempts = max_attempts
        self._graph = build_graph(runner, store, provider, parser, run_timeout)

    def repair(self, project: str, command: str | None = None) -> RepairResult:
        state = make_initial_state(project, command, self.max_attempts)
        # Each attempt visits at most two nodes, plus entry and terminal
        limit = 4 * state["max_attempts"] + 10
        final = self._graph.invoke(state, config={"recursion_limit": limit})
        status = final["status"]
        # ABANDONED stops before the first run, so it has no attempts to report
        return RepairResult(
            success=status == RepairStatus.SUCCESS,
            status=status,
            message=final["message"],
            command=final["command"],
            attempts=[] if status == RepairStatus.ABANDONED else final["attempts"],
            final_output=final["final_output"],
            error=final["error"],
        )
