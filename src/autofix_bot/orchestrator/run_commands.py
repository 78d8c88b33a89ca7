"""Ordered rules that pick a run command from a project's file names.

Rules are evaluated in priority order; the first whose predicate holds
supplies the command. Adding a language means adding a rule.
"""

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Callable

PYTHON_ENTRY_FILES = ("main.py", "app.py")


@dataclass(frozen=True)
class RunCommandRule:
    name: str
    applies: Callable[[list[str]], bool]
    build: Callable[[list[str]], str]


def _with_suffix(files: list[str], suffix: str) -> list[str]:
    return [name for name in files if name.endswith(suffix)]


def _python_command(files: list[str]) -> str:
    sources = _with_suffix(files, ".py")
    entry = next(
        (name for name in sources if PurePosixPath(name).name in PYTHON_ENTRY_FILES),
        sources[0],
    )
    return f"python {entry}"


def _is_node_server(name: str) -> bool:
    return name.endswith(".js") and "server" in PurePosixPath(name).name


def _node_command(files: list[str]) -> str:
    return f"node {next(name for name in files if _is_node_server(name))}"


def _java_command(files: list[str]) -> str:
    main = next(
        (name for name in files if PurePosixPath(name).name == "Main.java"), None
    )
    if main is None:
        return "javac *.java && java Main"
    path = PurePosixPath(main)
    return f"javac {main} && java -cp {path.parent} {path.stem}"


RUN_COMMAND_RULES: tuple[RunCommandRule, ...] = (
    RunCommandRule("python", lambda files: bool(_with_suffix(files, ".py")), _python_command),
    RunCommandRule("go", lambda files: bool(_with_suffix(files, ".go")), lambda _files: "go run ."),
    RunCommandRule("node-server", lambda files: any(map(_is_node_server, files)), _node_command),
    RunCommandRule("java", lambda files: bool(_with_suffix(files, ".java")), _java_command),
)


def determine_run_command(file_names: list[str] | set[str]) -> str | None:
    """Pick a run command, or None when no rule applies.

    Deterministic in the set of names: input order does not matter.
    """
    files = sorted(file_names)
    for rule in RUN_COMMAND_RULES:
        if rule.applies(files):
            return rule.build(files)
    return None
