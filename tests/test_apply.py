import io

import pytest
import yaml

from clusterctl.apply import ApplyOptions

CONFIG = """\
apiVersion: ctlptl.dev/v1alpha1
kind: Cluster
name: kind-kind
product: kind
registry: my-registry
---
apiVersion: ctlptl.dev/v1alpha1
kind: Registry
name: my-registry
port: 5002
"""


class Recorder:
    def __init__(self, log):
        self.log = log

    def apply(self, obj):
        self.log.append((obj.kind, obj.name))
        return obj


def make_options(text="", **kwargs):
    return ApplyOptions(stdin=io.StringIO(text), out=io.StringIO(), err_out=io.StringIO(), **kwargs)


def test_apply_registries_before_clusters():
    log = []
    o = make_options(
        CONFIG, filenames=["-"], cluster_controller=Recorder(log), registry_controller=Recorder(log)
    )
    o.run()
    assert log == [("Registry", "my-registry"), ("Cluster", "kind-kind")]
    assert o.out.getvalue() == (
        "registry.ctlptl.dev/my-registry created\n"
        "cluster.ctlptl.dev/kind-kind created\n"
    )


def test_apply_requires_filenames():
    o = make_options()
    with pytest.raises(ValueError, match="Expected source files with -f"):
        o.run()


def test_apply_from_file(tmp_path):
    path = tmp_path / "cluster.yaml"
    path.write_text("apiVersion: ctlptl.dev/v1alpha1\nkind: Cluster\nname: microk8s\n")
    log = []
    o = make_options(filenames=[str(path)], cluster_controller=Recorder(log))
    o.run()
    assert log == [("Cluster", "microk8s")]


def test_apply_without_cluster_controller():
    o = make_options(CONFIG, filenames=["-"], registry_controller=Recorder([]))
    with pytest.raises(RuntimeError, match="no cluster controller configured"):
        o.run()


def test_apply_yaml_output_round_trips():
    log = []
    o = make_options(
        CONFIG,
        filenames=["-"],
        output="yaml",
        cluster_controller=Recorder(log),
        registry_controller=Recorder(log),
    )
    o.run()
    documents = [doc for doc in o.out.getvalue().split("apiVersion") if doc]
    assert len(documents) == 2
    first = yaml.safe_load("apiVersion" + documents[0])
    assert first["kind"] == "Registry"
    assert first["port"] == 5002


def test_apply_bad_output_format():
    o = make_options(CONFIG, filenames=["-"], output="xml")
    with pytest.raises(ValueError, match="unable to match a printer"):
        o.run()