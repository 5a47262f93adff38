"""The ``apply`` command: reconcile running clusters and registries with config files."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import IO, Any, Optional, TextIO

from clusterctl.api import Cluster, Registry
from clusterctl.printers import to_printer
from clusterctl.visitor import decode_all, from_strings


@dataclass
class ApplyOptions:
    """Options and behaviour of the ``apply`` command."""

    filenames: list[str] = field(default_factory=list)
    output: str = ""
    stdin: IO[Any] = field(default_factory=lambda: sys.stdin)
    out: TextIO = field(default_factory=lambda: sys.stdout)
    err_out: TextIO = field(default_factory=lambda: sys.stderr)
    cluster_controller: Optional[Any] = None
    registry_controller: Optional[Any] = None

    def run(self) -> None:
        """Apply every resource in the files; registries before clusters."""
        if not self.filenames:
            raise ValueError("Expected source files with -f")

        printer = to_printer(self.output, "created")
        objects = decode_all(from_strings(self.filenames, self.stdin))

        for obj in objects:
            if isinstance(obj, Registry):
                if self.registry_controller is None:
                    raise RuntimeError("no registry controller configured")
                printer.print_obj(self.registry_controller.apply(obj), self.out)

        for obj in objects:
            if isinstance(obj, Cluster):
                if self.cluster_controller is None:
                    raise RuntimeError("no cluster controller configured")
                printer.print_obj(self.cluster_controller.apply(obj), self.out)
            elif not isinstance(obj, Registry):
                raise TypeError(f"unrecognized type: {type(obj).__name__}")