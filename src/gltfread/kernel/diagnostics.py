"""Diagnostics accumulator and per-read context shared by every property reader."""

from typing import List, Optional

from gltfread.kernel.extension_dispatch import JsonReaderOptions


class Diagnostics:
    """Ordered error and warning messages collected during a read."""

    def __init__(self):
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def error(self, message: str) -> None:
        self.errors.append(message)

    def warning(self, message: str) -> None:
        self.warnings.append(message)

    def merge(self, other: "Diagnostics", prefix: str = "") -> None:
        self.errors.extend(f"{prefix}{m}" for m in other.errors)
        self.warnings.extend(f"{prefix}{m}" for m in other.warnings)

    def __bool__(self) -> bool:
        return bool(self.errors or self.warnings)


class ReadContext:
    """Options snapshot and diagnostics for one read."""

    def __init__(self, options: JsonReaderOptions, diagnostics: Optional[Diagnostics] = None):
        self.options = options
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()

    def with_diagnostics(self, diagnostics: Diagnostics) -> "ReadContext":
        return ReadContext(self.options, diagnostics)
