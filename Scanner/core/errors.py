"""Typed failures surfaced to the command boundary."""

from __future__ import annotations

from typing import Any, List, Optional


class ScannerError(Exception):
    """Base class for scanner failures.

    Subclasses define ``message_template``; the formatted message is what the
    CLI prints.
    """

    message_template = "{detail}"

    def __init__(self, detail: str = "", *, path: Optional[str] = None) -> None:
        self.detail = detail
        self.path = path
        super().__init__(self.message_template.format(detail=detail, path=path))


class InvalidPathError(ScannerError):
    """A supplied rule path does not exist on disk."""

    message_template = "Failed to find any file or directory with path: {path}"

    def __init__(self, path: str) -> None:
        super().__init__(path, path=path)


class UnreadablePathError(ScannerError):
    message_template = "Failed to list rule directory {path}: {detail}"


class RegistryReadError(ScannerError):
    """Reading the custom rule path file failed for a reason other than absence."""

    message_template = "Failed to read custom rule path file {path}: {detail}"


class RegistryWriteError(ScannerError):
    message_template = "Failed to write to custom rule path file {path}: {detail}"


class MalformedRegistryError(ScannerError):
    message_template = "Custom rule path file {path} is malformed: {detail}"


class EngineExecutionError(ScannerError):
    """A wrapped engine failed.

    ``partial_results`` holds whatever earlier engines produced before the
    failure; the run stops here either way.
    """

    message_template = "Engine {engine} failed: {detail}"

    def __init__(
        self,
        engine: str,
        detail: str,
        partial_results: Optional[List[Any]] = None,
    ) -> None:
        self.engine = engine
        self.partial_results: List[Any] = list(partial_results or [])
        self.detail = detail
        self.path = None
        Exception.__init__(self, self.message_template.format(engine=engine, detail=detail))


__all__ = [
    "ScannerError",
    "InvalidPathError",
    "UnreadablePathError",
    "RegistryReadError",
    "RegistryWriteError",
    "MalformedRegistryError",
    "EngineExecutionError",
]
