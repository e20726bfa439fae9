"""Context objects and the base class shared by pdfguard tools."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ...core.utils import resolve_path


@dataclass
class ToolContext:
    """Holds shared execution state for a tool invocation."""

    input_path: Path | None = None
    output_path: Path | None = None
    resources: dict[str, Any] = field(default_factory=dict)
    config: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.input_path is not None:
            self.input_path = resolve_path(self.input_path)
        if self.output_path is not None:
            self.output_path = resolve_path(self.output_path)

    def require_paths(self, *, output: bool = True) -> tuple[Path, Path | None]:
        if self.input_path is None:
            raise ValueError("Tool requires an input path")
        if output and self.output_path is None:
            raise ValueError("Tool requires an output path")
        return self.input_path, self.output_path


class BaseTool:
    """Base class for all pluggable pdfguard tools."""

    name: str

    def __init__(self, context: ToolContext) -> None:
        self.context = context

    def run(self) -> Any:  # pragma: no cover - to be implemented by subclasses
        raise NotImplementedError

