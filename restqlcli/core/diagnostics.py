from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence


@dataclass
class Diagnostic:
    code: str
    message: str
    severity: str = "ERROR"
    location: Optional[str] = None
    hints: List[str] = field(default_factory=list)


class RestqlCliError(Exception):
    """Base class for every failure surfaced by the build and dev pipelines."""


class InputError(RestqlCliError):
    pass


class WorkspaceError(RestqlCliError):
    pass


class ResolutionError(RestqlCliError):
    def __init__(self, module: str, message: str):
        super().__init__(f"{module}: {message}" if module else message)
        self.module = module


class ProcessError(RestqlCliError):
    def __init__(self, cmd: Sequence[str], returncode: Optional[int], message: Optional[str] = None):
        if message is None:
            message = f"command {list(cmd)} exited with status {returncode}"
        super().__init__(message)
        self.cmd = list(cmd)
        self.returncode = returncode


class CommandCancelled(RestqlCliError):
    def __init__(self, message: str = "operation cancelled"):
        super().__init__(message)


class DeadlineExceeded(CommandCancelled):
    def __init__(self, message: str = "deadline exceeded"):
        super().__init__(message)


class SettingsError(RestqlCliError):
    def __init__(self, diagnostic: Diagnostic, diagnostics: Optional["Diagnostics"] = None):
        super().__init__(diagnostic.message)
        self.diagnostic = diagnostic
        self.diagnostics = diagnostics


class Diagnostics:
    def __init__(self) -> None:
        self.items: List[Diagnostic] = []

    def add(self, diagnostic: Diagnostic) -> None:
        self.items.append(diagnostic)

    def has_errors(self) -> bool:
        return any(d.severity == "ERROR" for d in self.items)

    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.items if d.severity == "WARNING"]

    def raise_for_errors(self) -> None:
        if self.has_errors():
            first = next(d for d in self.items if d.severity == "ERROR")
            raise SettingsError(first, self)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Any:
        return iter(self.items)
