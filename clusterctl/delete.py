"""The ``delete`` command: remove clusters and registries by name or from files."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import IO, Any, Optional, Protocol, Sequence, TextIO

from clusterctl.api import Cluster, NotFoundError, Registry
from clusterctl.normalize import fill_cluster_defaults, normalized_get
from clusterctl.printers import to_printer
from clusterctl.registry import fill_defaults as fill_registry_defaults
from clusterctl.visitor import decode_all, from_strings

_CASCADE_MODES = ("", "true", "false")


class Deleter(Protocol):
    def delete(self, name: str) -> None: ...


class ClusterController(Deleter, Protocol):
    def get(self, name: str) -> Cluster: ...


@dataclass
class DeleteOptions:
    """Options and behaviour of the ``delete`` command."""

    output: str = ""
    ignore_not_found: bool = False
    filenames: list[str] = field(default_factory=list)
    # Only "true" and "false" for now; more modes may follow.
    cascade: str = "false"
    stdin: IO[Any] = field(default_factory=lambda: sys.stdin)
    out: TextIO = field(default_factory=lambda: sys.stdout)
    err_out: TextIO = field(default_factory=lambda: sys.stderr)
    cluster_controller: Optional[ClusterController] = None
    registry_deleter: Optional[Deleter] = None

    def run(self, args: Sequence[str] = ()) -> None:
        """Delete the resources named by args or by the files option."""
        self.validate_cascade()
        resources = self.parse_explicit_resources(args)
        resources = self.cascade_resources(resources)
        printer = to_printer(self.output, "deleted")

        for resource in resources:
            if isinstance(resource, Cluster):
                controller = self._get_cluster_controller()
                fill_cluster_defaults(resource)
                name = resource.name
                # So that 'delete cluster kind' finds 'kind-kind'.
                try:
                    name = normalized_get(controller, name).name
                except Exception:
                    pass
                try:
                    controller.delete(name)
                except NotFoundError:
                    if self.ignore_not_found:
                        continue
                    raise
                printer.print_obj(resource, self.out)
            elif isinstance(resource, Registry):
                deleter = self._get_registry_deleter()
                fill_registry_defaults(resource)
                try:
                    deleter.delete(resource.name)
                except NotFoundError:
                    if self.ignore_not_found:
                        continue
                    raise
                printer.print_obj(resource, self.out)
            else:
                raise TypeError(f"cannot delete: {type(resource).__name__}")

    def parse_explicit_resources(self, args: Sequence[str]) -> list[Any]:
        """Build the resources named on the command line or read from files."""
        has_files = bool(self.filenames)
        has_names = len(args) >= 2
        if not (has_files or has_names):
            raise ValueError(
                "Expected resources, specified as files ('ctlptl delete -f') "
                "or names ('ctlptl delete cluster foo`)"
            )
        if has_files and has_names:
            raise ValueError("Can only specify one of {files, resource names}")

        if has_files:
            return decode_all(from_strings(self.filenames, self.stdin))

        kind, names = args[0], args[1:]
        if kind in ("cluster", "clusters"):
            return [Cluster(name=name) for name in names]
        if kind in ("registry", "registries"):
            return [Registry(name=name) for name in names]
        raise ValueError(f"Unrecognized type: {kind}")

    def cascade_resources(self, resources: Sequence[Any]) -> list[Any]:
        """Under cascade, put each cluster's registry before the cluster."""
        if self.cascade != "true":
            return list(resources)

        result: list[Any] = []
        registry_names: set[str] = set()
        for resource in resources:
            if isinstance(resource, Cluster):
                registry_name = resource.registry
                if not registry_name:
                    controller = self._get_cluster_controller()
                    try:
                        registry_name = normalized_get(controller, resource.name).registry
                    except NotFoundError:
                        pass
                if registry_name and registry_name not in registry_names:
                    result.append(Registry(name=registry_name))
                    registry_names.add(registry_name)
            elif isinstance(resource, Registry):
                if resource.name not in registry_names:
                    registry_names.add(resource.name)
                    continue
            result.append(resource)
        return result

    def validate_cascade(self) -> None:
        """Raise ValueError if the cascade mode is not recognised."""
        if self.cascade not in _CASCADE_MODES:
            raise ValueError(f"Invalid cascade: {self.cascade}. Valid values: true, false.")

    def _get_cluster_controller(self) -> ClusterController:
        if self.cluster_controller is None:
            raise RuntimeError("no cluster controller configured")
        return self.cluster_controller

    def _get_registry_deleter(self) -> Deleter:
        if self.registry_deleter is None:
            raise RuntimeError("no registry controller configured")
        return self.registry_deleter