import io
from datetime import datetime, timezone

import pytest

from clusterctl.api import (
    GROUP,
    Cluster,
    ClusterList,
    ClusterStatus,
    LocalRegistryHosting,
    NotFoundError,
    Registry,
    RegistryList,
    RegistryStatus,
)
from clusterctl.get import GetOptions, Table, short_human_duration

CREATE_TIME = datetime.fromtimestamp(1500000000, tz=timezone.utc)
START_TIME = datetime.fromtimestamp(1600000000, tz=timezone.utc)


def cluster_list():
    return ClusterList(
        items=[
            Cluster(
                name="microk8s",
                product="microk8s",
                status=ClusterStatus(creation_timestamp=CREATE_TIME, current=True),
            ),
            Cluster(
                name="kind-kind",
                product="KIND",
                status=ClusterStatus(
                    creation_timestamp=CREATE_TIME,
                    local_registry_hosting=LocalRegistryHosting(host="localhost:5000"),
                ),
            ),
        ]
    )


def registry_list():
    return RegistryList(
        items=[
            Registry(
                name="ctlptl-registry",
                listen_address="127.0.0.1",
                port=5001,
                status=RegistryStatus(
                    creation_timestamp=CREATE_TIME,
                    ip_address="172.17.0.2",
                    listen_address="0.0.0.0",
                    container_port=5000,
                    host_port=5001,
                ),
            ),
            Registry(
                name="ctlptl-registry-loopback",
                listen_address="127.0.0.1",
                port=5002,
                status=RegistryStatus(
                    creation_timestamp=CREATE_TIME,
                    ip_address="172.17.0.3",
                    listen_address="127.0.0.1",
                    container_port=5000,
                    host_port=5002,
                ),
            ),
        ]
    )


class FakeClusterController:
    def __init__(self, clusters=None):
        self.clusters = clusters or {}
        self.last_options = None

    def get(self, name):
        try:
            return self.clusters[name]
        except KeyError:
            raise NotFoundError(GROUP, "clusters", name) from None

    def list(self, options):
        self.last_options = options
        return ClusterList(items=list(self.clusters.values()))


class FakeRegistryController:
    def __init__(self, registries=None):
        self.registries = registries or []

    def get(self, name):
        for registry in self.registries:
            if registry.name == name:
                return registry
        raise NotFoundError(GROUP, "registries", name)

    def list(self, options):
        return RegistryList(items=list(self.registries))


def make_options(**kwargs):
    out, err = io.StringIO(), io.StringIO()
    o = GetOptions(out=out, err_out=err, start_time=START_TIME, **kwargs)
    return o, out, err


def test_default_print():
    o, out, _ = make_options()
    o.print(o.transform_for_output(cluster_list()))
    assert out.getvalue() == (
        "CURRENT   NAME        PRODUCT    AGE   REGISTRY\n"
        "*         microk8s    microk8s   3y    none\n"
        "          kind-kind   KIND       3y    localhost:5000\n"
    )


def test_yaml():
    o, out, _ = make_options(output="yaml")
    o.print(o.transform_for_output(cluster_list()))
    assert out.getvalue() == """apiVersion: ctlptl.dev/v1alpha1
items:
- apiVersion: ctlptl.dev/v1alpha1
  kind: Cluster
  name: microk8s
  product: microk8s
  status:
    creationTimestamp: "2017-07-14T02:40:00Z"
    current: true
- apiVersion: ctlptl.dev/v1alpha1
  kind: Cluster
  name: kind-kind
  product: KIND
  status:
    creationTimestamp: "2017-07-14T02:40:00Z"
    localRegistryHosting:
      host: localhost:5000
kind: ClusterList
"""


def test_registry_print():
    o, out, _ = make_options()
    o.print(o.transform_for_output(registry_list()))
    assert out.getvalue() == (
        "NAME                       HOST ADDRESS     CONTAINER ADDRESS   AGE\n"
        "ctlptl-registry            0.0.0.0:5001     172.17.0.2:5000     3y\n"
        "ctlptl-registry-loopback   127.0.0.1:5002   172.17.0.3:5000     3y\n"
    )


def test_short_human_duration_years():
    assert short_human_duration(100000000) == "3y"


@pytest.mark.parametrize("seconds", [0, 59, 3600, 86400 * 30])
def test_short_human_duration_non_negative_not_invalid(seconds):
    result = short_human_duration(seconds)
    assert result[-1] in "smhdy"
    assert result != "<invalid>"


def test_short_human_duration_far_future_is_invalid():
    assert short_human_duration(-10) == "<invalid>"


def test_registries_sorted_newest_first():
    o, _, _ = make_options()
    older = Registry(name="older", status=RegistryStatus(creation_timestamp=CREATE_TIME))
    newer = Registry(name="newer", status=RegistryStatus(creation_timestamp=START_TIME))
    table = o.registries_as_table([older, newer])
    assert [row[0] for row in table.rows] == ["newer", "older"]


def test_registry_without_ports_shows_none_and_unknown_age():
    o, _, _ = make_options()
    table = o.registries_as_table([Registry(name="bare")])
    assert table.rows == [["bare", "none", "none", "unknown"]]


def test_empty_table_renders_nothing():
    assert Table(columns=[("Name", "string")]).render() == ""


def test_transform_keeps_object_when_output_specified():
    o, _, _ = make_options(output="json")
    lst = cluster_list()
    assert o.transform_for_output(lst) is lst


def test_print_none():
    o, out, _ = make_options()
    o.print(None)
    assert out.getvalue() == "No resources found\n"


def test_run_unrecognized_type():
    o, _, err = make_options()
    assert o.run(["foo"]) == 1
    assert err.getvalue() == "Unrecognized type: foo. Possible values: cluster, registry.\n"


def test_run_get_cluster_by_product_name():
    controller = FakeClusterController({"kind-kind": Cluster(name="kind-kind", product="kind")})
    o, out, _ = make_options(cluster_controller=controller)
    assert o.run(["cluster", "kind"]) == 0
    assert "kind-kind" in out.getvalue()
    assert "unknown" in out.getvalue()


def test_run_not_found_reports_error():
    o, _, err = make_options(cluster_controller=FakeClusterController())
    assert o.run(["cluster", "garbage"]) == 1
    assert 'clusters.ctlptl.dev "garbage" not found' in err.getvalue()


def test_run_not_found_ignored():
    o, out, _ = make_options(cluster_controller=FakeClusterController(), ignore_not_found=True)
    assert o.run(["cluster", "garbage"]) == 0
    assert out.getvalue() == ""


def test_run_lists_clusters_by_default_with_selector():
    controller = FakeClusterController(
        {c.name: c for c in cluster_list().items}
    )
    o, out, _ = make_options(cluster_controller=controller, field_selector="name=microk8s")
    assert o.run([]) == 0
    assert controller.last_options.field_selector == "name=microk8s"
    assert out.getvalue().startswith("CURRENT   NAME")


def test_run_lists_registries():
    o, out, _ = make_options(registry_controller=FakeRegistryController(registry_list().items))
    assert o.run(["registries"]) == 0
    assert "ctlptl-registry-loopback   127.0.0.1:5002" in out.getvalue()


def test_run_get_registry_name_output():
    o, out, _ = make_options(
        output="name", registry_controller=FakeRegistryController(registry_list().items)
    )
    assert o.run(["registry", "ctlptl-registry"]) == 0
    assert out.getvalue() == "registry.ctlptl.dev/ctlptl-registry\n"


def test_run_bad_output_format():
    o, _, err = make_options(
        output="xml", registry_controller=FakeRegistryController(registry_list().items)
    )
    assert o.run(["registry"]) == 1
    assert err.getvalue().startswith("Error: ")


def test_run_too_many_args():
    o, _, err = make_options()
    assert o.run(["cluster", "a", "b"]) == 1
    assert "at most 2" in err.getvalue()