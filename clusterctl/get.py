"""Reading clusters and registries and printing them as tables or documents."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Sequence, TextIO

from clusterctl.api import Cluster, ClusterList, NotFoundError, Registry, RegistryList
from clusterctl.normalize import normalized_get
from clusterctl.printers import to_printer
from clusterctl.registry import ListOptions


def short_human_duration(seconds: float) -> str:
    """Format a duration in seconds the short way, e.g. ``5m`` or ``3y``."""
    whole = int(seconds)
    if whole < -1:
        return "<invalid>"
    if whole < 0:
        return "0s"
    if whole < 60:
        return f"{whole}s"
    minutes = int(seconds / 60)
    if minutes < 60:
        return f"{minutes}m"
    hours = int(seconds / 3600)
    if hours < 24:
        return f"{hours}h"
    if hours < 24 * 365:
        return f"{hours // 24}d"
    return f"{int(seconds / 3600 / 24 / 365)}y"


@dataclass
class Table:
    """Rows of cells under named columns."""

    columns: list[tuple[str, str]] = field(default_factory=list)
    rows: list[list[Any]] = field(default_factory=list)

    def render(self) -> str:
        """Render as aligned text with upper-case headers; empty if no rows."""
        if not self.rows:
            return ""
        lines = [[name.upper() for name, _ in self.columns]]
        lines.extend([str(cell) for cell in row] for row in self.rows)
        widths = [max(map(len, column)) for column in zip(*lines)]
        rendered = []
        for line in lines:
            padded = "".join(cell.ljust(width + 3) for cell, width in zip(line[:-1], widths))
            rendered.append(padded + line[-1])
        return "\n".join(rendered) + "\n"


class _TablePrinter:
    def print_obj(self, obj: Any, out: TextIO) -> None:
        if not isinstance(obj, Table):
            raise TypeError(f"cannot print {type(obj).__name__} as a table")
        out.write(obj.render())


def _age(start: datetime, created: Optional[datetime]) -> str:
    if created is None:
        return "unknown"
    return short_human_duration((start - created).total_seconds())


@dataclass
class GetOptions:
    """Options and behaviour of the ``get`` command."""

    output: str = ""
    ignore_not_found: bool = False
    field_selector: str = ""
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    out: TextIO = field(default_factory=lambda: sys.stdout)
    err_out: TextIO = field(default_factory=lambda: sys.stderr)
    cluster_controller: Any = None
    registry_controller: Any = None

    @property
    def output_flag_specified(self) -> bool:
        return bool(self.output)

    def _printer(self) -> Any:
        if not self.output_flag_specified:
            return _TablePrinter()
        return to_printer(self.output, "")

    def run(self, args: Sequence[str] = ()) -> int:
        """Run the command and return its exit status."""
        args = list(args)
        if len(args) > 2:
            self.err_out.write(f"accepts at most 2 arg(s), received {len(args)}\n")
            return 1

        kind = args[0] if args else "cluster"
        if kind in ("registry", "registries"):
            controller, label, getter = self.registry_controller, "registries", None
        elif kind in ("cluster", "clusters"):
            controller, label, getter = self.cluster_controller, "clusters", normalized_get
        else:
            self.err_out.write(
                f"Unrecognized type: {kind}. Possible values: cluster, registry.\n"
            )
            return 1

        if controller is None:
            self.err_out.write(f"Loading controller: no controller configured for {label}\n")
            return 1

        if len(args) >= 2:
            try:
                resource = getter(controller, args[1]) if getter else controller.get(args[1])
            except NotFoundError as err:
                if self.ignore_not_found:
                    return 0
                self.err_out.write(f"{err}\n")
                return 1
            except Exception as err:
                self.err_out.write(f"{err}\n")
                return 1
        else:
            try:
                resource = controller.list(ListOptions(field_selector=self.field_selector))
            except Exception as err:
                self.err_out.write(f"List {label}: {err}\n")
                return 1

        try:
            self.print(resource)
        except (TypeError, ValueError, OSError) as err:
            self.err_out.write(f"Error: {err}\n")
            return 1
        return 0

    def print(self, obj: Any) -> None:
        """Print obj in the chosen output format, as a table by default."""
        if obj is None:
            self.out.write("No resources found\n")
            return
        self._printer().print_obj(self.transform_for_output(obj), self.out)

    def transform_for_output(self, obj: Any) -> Any:
        """Turn resources into a table unless an output format was chosen."""
        if self.output_flag_specified:
            return obj
        if isinstance(obj, Registry):
            return self.registries_as_table([obj])
        if isinstance(obj, RegistryList):
            return self.registries_as_table(obj.items)
        if isinstance(obj, Cluster):
            return self.clusters_as_table([obj])
        if isinstance(obj, ClusterList):
            return self.clusters_as_table(obj.items)
        return obj

    def clusters_as_table(self, clusters: Iterable[Cluster]) -> Table:
        """Tabulate clusters: current marker, name, product, age, registry."""
        table = Table(
            columns=[
                ("Current", "string"),
                ("Name", "string"),
                ("Product", "string"),
                ("Age", "string"),
                ("Registry", "string"),
            ]
        )
        for cluster in clusters:
            hosting = cluster.status.local_registry_hosting
            registry_host = (hosting.host if hosting else "") or "none"
            table.rows.append(
                [
                    "*" if cluster.status.current else "",
                    cluster.name,
                    cluster.product,
                    _age(self.start_time, cluster.status.creation_timestamp),
                    registry_host,
                ]
            )
        return table

    def registries_as_table(self, registries: Iterable[Registry]) -> Table:
        """Tabulate registries newest first, as ``docker ps`` does."""
        table = Table(
            columns=[
                ("Name", "string"),
                ("Host Address", "int"),
                ("Container Address", "string"),
                ("Age", "string"),
            ]
        )

        def created(registry: Registry) -> float:
            ts = registry.status.creation_timestamp
            return ts.timestamp() if ts is not None else float("-inf")

        for registry in sorted(registries, key=created, reverse=True):
            status = registry.status
            host_address = (
                f"{status.listen_address}:{status.host_port}" if status.host_port else "none"
            )
            container_address = (
                f"{status.ip_address}:{status.container_port}"
                if status.container_port and status.ip_address
                else "none"
            )
            table.rows.append(
                [
                    registry.name,
                    host_address,
                    container_address,
                    _age(self.start_time, status.creation_timestamp),
                ]
            )
        return table