"""The ``create cluster`` and ``create registry`` commands."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Protocol, TextIO

from clusterctl.api import Cluster, MinikubeCluster, NotFoundError, Registry
from clusterctl.normalize import fill_cluster_defaults
from clusterctl.printers import to_printer
from clusterctl.registry import DEFAULT_REGISTRY_IMAGE_REF
from clusterctl.registry import fill_defaults as fill_registry_defaults

_MINIKUBE = "minikube"


class ClusterCreator(Protocol):
    def apply(self, cluster: Cluster) -> Cluster: ...

    def get(self, name: str) -> Cluster: ...


class RegistryCreator(Protocol):
    def apply(self, registry: Registry) -> Registry: ...

    def get(self, name: str) -> Registry: ...


def _ensure_absent(controller: object, name: str, what: str) -> None:
    try:
        controller.get(name)  # type: ignore[attr-defined]
    except NotFoundError:
        return
    except Exception as err:
        raise RuntimeError(f"Cannot check {what}: {err}") from err
    raise RuntimeError(f"Cannot create {what}: already exists")


@dataclass
class CreateClusterOptions:
    """Options and behaviour of the ``create cluster`` command."""

    cluster: Cluster = field(default_factory=lambda: Cluster(minikube=MinikubeCluster()))
    output: str = ""
    out: TextIO = field(default_factory=lambda: sys.stdout)
    err_out: TextIO = field(default_factory=lambda: sys.stderr)

    def run(self, controller: ClusterCreator, product: str) -> None:
        """Create a cluster of the given product; fail if it already exists."""
        self.cluster.product = product

        # Minikube settings only apply to minikube clusters.
        if product != _MINIKUBE or self.cluster.minikube == MinikubeCluster():
            self.cluster.minikube = None

        fill_cluster_defaults(self.cluster)
        _ensure_absent(controller, self.cluster.name, "cluster")

        applied = controller.apply(self.cluster)
        to_printer(self.output, "created").print_obj(applied, self.out)


@dataclass
class CreateRegistryOptions:
    """Options and behaviour of the ``create registry`` command."""

    registry: Registry = field(default_factory=lambda: Registry(image=DEFAULT_REGISTRY_IMAGE_REF))
    output: str = ""
    out: TextIO = field(default_factory=lambda: sys.stdout)
    err_out: TextIO = field(default_factory=lambda: sys.stderr)

    def run(self, controller: RegistryCreator, name: str) -> None:
        """Create the named registry; fail if it already exists."""
        self.registry.name = name
        fill_registry_defaults(self.registry)
        _ensure_absent(controller, self.registry.name, "registry")

        applied = controller.apply(self.registry)
        to_printer(self.output, "created").print_obj(applied, self.out)