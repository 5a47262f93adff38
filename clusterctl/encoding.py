"""Parsing of YAML streams into cluster and registry resources."""

from __future__ import annotations

from dataclasses import fields
from typing import IO, Any, Iterator, Union

import yaml

from clusterctl.api import API_VERSION, Cluster, Registry, TypeMeta


class DecodeError(ValueError):
    """Raised when a config stream cannot be decoded into resources."""


def determine_object(type_meta: TypeMeta) -> type:
    """Return the resource class for the given type meta."""
    if type_meta.api_version != API_VERSION:
        raise DecodeError(f"ctlptl config must contain: `apiVersion: {API_VERSION}`")
    if type_meta.kind == "Cluster":
        return Cluster
    if type_meta.kind == "Registry":
        return Registry
    raise DecodeError("ctlptl config must contain: `kind: Cluster` or `kind: Registry`")


def _type_meta_of(document: Any) -> TypeMeta:
    if not isinstance(document, dict):
        return TypeMeta()

    def scalar(key: str) -> str:
        value = document.get(key)
        if value is None or isinstance(value, (dict, list)):
            return ""
        return str(value)

    return TypeMeta(api_version=scalar("apiVersion"), kind=scalar("kind"))


def _unknown_fields(node: yaml.Node, cls: type) -> Iterator[tuple[int, str]]:
    if not isinstance(node, yaml.MappingNode):
        return
    known = {f.metadata["key"]: f for f in fields(cls) if "key" in f.metadata}
    for key_node, value_node in node.value:
        key = key_node.value
        f = known.get(key)
        if f is None:
            yield key_node.start_mark.line + 1, f"field {key} not found in type api.{cls.__name__}"
        elif f.metadata.get("nested") is not None:
            yield from _unknown_fields(value_node, f.metadata["nested"])


def parse_stream(stream: Union[str, bytes, IO[Any]]) -> list[Any]:
    """Parse a multi-document YAML stream into Cluster and Registry objects."""
    text = stream.read() if hasattr(stream, "read") else stream
    try:
        nodes = list(yaml.compose_all(text, Loader=yaml.SafeLoader))
        documents = list(yaml.safe_load_all(text))
    except yaml.YAMLError as err:
        raise DecodeError(f"yaml: {err}") from err

    result = []
    for node, document in zip(nodes, documents):
        if document is None:
            continue
        type_meta = _type_meta_of(document)
        cls = determine_object(type_meta)

        problems = list(_unknown_fields(node, cls))
        if problems:
            details = "\n".join(f"  line {line}: {message}" for line, message in problems)
            raise DecodeError(f"decoding {type_meta}: yaml: unmarshal errors:\n{details}")

        try:
            result.append(cls.from_dict(document))
        except (TypeError, ValueError) as err:
            raise DecodeError(f"decoding {type_meta}: {err}") from err
    return result