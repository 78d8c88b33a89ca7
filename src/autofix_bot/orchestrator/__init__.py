"""LangGraph orchestrator package for the auto-repair loop."""

from autofix_bot.orchestrator.exceptions import GraphBuildError, OrchestratorError
from autofix_bot.orchestrator.graph import AutoRepairController, build_graph
from autofix_bot.orchestrator.run_commands import determine_run_command
from autofix_bot.orchestrator.state import RepairState, make_initial_state

__all__ = [
    "AutoRepairController",
    "GraphBuildError",
    "OrchestratorError",
    "RepairState",
    "build_graph",
    "determine_run_command",
    "make_initial_state",
]
