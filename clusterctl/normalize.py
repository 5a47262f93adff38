"""Cluster name defaults and lookup by product name."""

from __future__ import annotations

from typing import Protocol

from clusterctl.api import Cluster, NotFoundError

# Products whose default cluster name differs from the product name.
_DEFAULT_CLUSTER_NAMES = {
    "kind": "kind-kind",
    "k3d": "k3d-k3s-default",
}


class ClusterGetter(Protocol):
    def get(self, name: str) -> Cluster: ...


def default_cluster_name(product: str) -> str:
    """The name a product gives its cluster when none is chosen."""
    return _DEFAULT_CLUSTER_NAMES.get(product, product)


def fill_cluster_defaults(cluster: Cluster) -> None:
    """Give the cluster its product's default name if it has none."""
    if not cluster.name:
        cluster.name = default_cluster_name(cluster.product)


def normalized_get(controller: ClusterGetter, name: str) -> Cluster:
    """Get a cluster by name, retrying with the product's default name.

    ``kind`` finds ``kind-kind``, for example. If the retry fails too, the
    original NotFoundError is raised.
    """
    try:
        return controller.get(name)
    except NotFoundError as err:
        original = err

    retry_name = _DEFAULT_CLUSTER_NAMES.get(name)
    if retry_name is None:
        raise original

    try:
        return controller.get(retry_name)
    except Exception:
        raise original from None