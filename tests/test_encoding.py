import io

import pytest

from clusterctl.api import Cluster, Registry, TypeMeta
from clusterctl.encoding import DecodeError, determine_object, parse_stream


def test_parse():
    text = """
apiVersion: ctlptl.dev/v1alpha1
kind: Cluster
name: microk8s
product: microk8s
---
apiVersion: ctlptl.dev/v1alpha1
kind: Cluster
name: kind-kind
product: KIND
"""
    data = parse_stream(io.StringIO(text))
    assert len(data) == 2
    assert data[0].name == "microk8s"
    assert data[1].name == "kind-kind"
    assert data[1].product == "KIND"


def test_parse_typo():
    text = """
apiVersion: ctlptl.dev/v1alpha1
kind: Cluster
nameTypo: microk8s
product: microk8s
"""
    with pytest.raises(DecodeError) as excinfo:
        parse_stream(io.StringIO(text))
    assert (
        "decoding {Cluster ctlptl.dev/v1alpha1}: yaml: unmarshal errors:\n"
        "  line 4: field nameTypo not found in type api.Cluster"
    ) in str(excinfo.value)


def test_parse_typo_second_object():
    text = """
apiVersion: ctlptl.dev/v1alpha1
kind: Cluster
name: microk8s
product: microk8s
---
apiVersion: ctlptl.dev/v1alpha1
kind: Cluster
nameTypo: microk8s
product: microk8s
"""
    with pytest.raises(DecodeError) as excinfo:
        parse_stream(io.StringIO(text))
    assert (
        "decoding {Cluster ctlptl.dev/v1alpha1}: yaml: unmarshal errors:\n"
        "  line 9: field nameTypo not found in type api.Cluster"
    ) in str(excinfo.value)


def test_parse_nested_typo():
    text = "apiVersion: ctlptl.dev/v1alpha1\nkind: Cluster\nstatus:\n  bogus: 1\n"
    with pytest.raises(DecodeError) as excinfo:
        parse_stream(text)
    assert "line 4: field bogus not found in type api.ClusterStatus" in str(excinfo.value)


def test_parse_registry():
    text = "apiVersion: ctlptl.dev/v1alpha1\nkind: Registry\nport: 5002\n"
    data = parse_stream(io.BytesIO(text.encode()))
    assert data == [Registry(port=5002)]


def test_parse_wrong_api_version():
    with pytest.raises(DecodeError, match="apiVersion: ctlptl.dev/v1alpha1"):
        parse_stream("apiVersion: v1\nkind: Cluster\n")


def test_parse_wrong_kind():
    with pytest.raises(DecodeError, match="`kind: Cluster` or `kind: Registry`"):
        parse_stream("apiVersion: ctlptl.dev/v1alpha1\nkind: Pod\n")


def test_parse_bad_value_type():
    with pytest.raises(DecodeError, match=r"decoding \{Registry ctlptl.dev/v1alpha1\}"):
        parse_stream("apiVersion: ctlptl.dev/v1alpha1\nkind: Registry\nport: [1, 2]\n")


def test_parse_empty_stream():
    assert parse_stream(io.StringIO("")) == []


def test_determine_object():
    assert determine_object(TypeMeta("ctlptl.dev/v1alpha1", "Cluster")) is Cluster
    assert determine_object(TypeMeta("ctlptl.dev/v1alpha1", "Registry")) is Registry
    with pytest.raises(DecodeError):
        determine_object(TypeMeta())