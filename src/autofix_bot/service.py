"""Workspace service: the command-execution and chat surface for one store."""

import logging

from autofix_bot.agents.chat_dispatcher import ChatActionDispatcher
from autofix_bot.agents.code_assist import CodeAssistant
from autofix_bot.agents.completion import Completer
from autofix_bot.agents.exceptions import AgentError
from autofix_bot.models import (
    ChatAction,
    ChatOutcome,
    KillResult,
    PreviewResult,
    ProcessInfo,
    RepairResult,
    RunResult,
)
from autofix_bot.orchestrator.graph import AutoRepairController
from autofix_bot.orchestrator.state import MAX_ATTEMPTS
from autofix_bot.runtime import (
    DEFAULT_KEY,
    CommandRunner,
    PreviewServerRegistry,
    PreviewUnavailable,
    ProcessRegistry,
)
from autofix_bot.storage import ContentStore, ContentStoreError, NotFound

logger = logging.getLogger(__name__)

PREVIEW_UNAVAILABLE_MESSAGE = (
    "Host preview is not available for this project: its files are not kept on disk."
)


class WorkspaceService:
    """Wires the registry, runner, repair loop and dispatcher around a store.

    One instance owns one ProcessRegistry and one PreviewServerRegistry;
    call shutdown() to stop everything it started.
    """

    def __init__(
        self,
        store: ContentStore,
        provider: Completer | None = None,
        registry: ProcessRegistry | None = None,
        runner: CommandRunner | None = None,
        previews: PreviewServerRegistry | None = None,
        max_attempts: int = MAX_ATTEMPTS,
    ) -> None:
        self.store = store
        self.provider = provider
        self.registry = registry or ProcessRegistry()
        self.runner = runner or CommandRunner(self.registry)
        self.previews = previews or PreviewServerRegistry()
        self.controller: AutoRepairController | None = None
        self.dispatcher: ChatActionDispatcher | None = None
        self.assistant: CodeAssistant | None = None
        if provider is not None:
            self.controller = AutoRepairController(
                self.runner, store, provider, max_attempts=max_attempts
            )
            self.dispatcher = ChatActionDispatcher(store, provider)
            self.assistant = CodeAssistant(provider)

    def run_command(self, command: str, project: str | None = None) -> RunResult:
        """Run ``command`` in the project's workspace (if it has one)."""
        try:
            cwd = self.store.workspace_path(project) if project else None
        except ContentStoreError as exc:
            return RunResult(stderr=str(exc), exit_failed=True)
        return self.runner.run(command, working_directory=cwd, key=project or DEFAULT_KEY)

    def start_auto_repair(self, project: str, command: str | None = None) -> RepairResult:
        if self.controller is None:
            raise AgentError("Auto-repair needs a completion provider")
        logger.info("Auto-repair requested for %s", project)
        return self.controller.repair(project, command)

    def kill_process(self, pid: int) -> KillResult:
        return self.registry.kill(pid)

    def list_processes(self) -> list[ProcessInfo]:
        processes = [
            ProcessInfo(pid=record.pid, name=f"Background process ({record.key})")
            for record in self.registry.list_all()
        ]
        processes.extend(
            ProcessInfo(
                pid=None,
                name=f"Preview server: {record.project} (port {record.port})",
            )
            for record in self.previews.list_all()
        )
        return processes

    def host_preview(self, project: str, port: int | None = None) -> PreviewResult:
        try:
            directory = self.store.workspace_path(project)
        except ContentStoreError as exc:
            return PreviewResult(success=False, message=str(exc))
        if directory is None:
            return PreviewResult(success=False, message=PREVIEW_UNAVAILABLE_MESSAGE)

        try:
            record, created = self.previews.host_project(project, directory, port)
        except PreviewUnavailable as exc:
            return PreviewResult(success=False, message=str(exc))

        message = "Project hosted successfully" if created else "Project already hosted"
        return PreviewResult(success=True, message=message, url=record.url)

    def stop_preview(self, project: str) -> PreviewResult:
        if self.previews.stop(project) is None:
            return PreviewResult(success=False, message="Project not hosted")
        return PreviewResult(success=True, message="Hosting stopped")

    def chat(
        self,
        instruction: str,
        project: str | None = None,
        open_file: str | None = None,
        open_code: str | None = None,
        image: str | None = None,
    ) -> ChatOutcome:
        """Dispatch a chat instruction; read intents come back with content.

        Raises:
            AgentError: If no completion provider is configured.
            ProviderFailure: If the completion provider fails.
        """
        if self.dispatcher is None:
            raise AgentError("Chat needs a completion provider")
        outcome = self.dispatcher.dispatch(instruction, project, open_file, open_code, image)
        if outcome.action != ChatAction.READ_FILE:
            return outcome

        try:
            outcome.content = self.store.read_file(project, outcome.path)
        except NotFound:
            return ChatOutcome(
                action=ChatAction.PLAIN_RESPONSE,
                response=f"File `{outcome.path}` was not found in the project.",
            )
        except ContentStoreError as exc:
            return ChatOutcome(
                action=ChatAction.PLAIN_RESPONSE,
                response=f"Could not read `{outcome.path}`: {exc}",
            )
        return outcome

    def analyze_code(self, code: str, filename: str | None = None) -> str:
        """Issues and suggestions for ``code``.

        Raises:
            AgentError: If no completion provider is configured.
            ProviderFailure: If the completion provider fails.
        """
        return self._require_assistant().analyze(code, filename)

    def explain_code(self, code: str, filename: str | None = None) -> str:
        return self._require_assistant().explain(code, filename)

    def generate_code(self, prompt: str) -> str:
        return self._require_assistant().generate(prompt)

    def _require_assistant(self) -> CodeAssistant:
        if self.assistant is None:
            raise AgentError("Code assistance needs a completion provider")
        return self.assistant

    def shutdown(self) -> None:
        """Kill every tracked process and stop every preview server."""
        for result in self.registry.kill_all():
            if not result.success:
                logger.warning("%s", result.error)
        self.previews.stop_all()
