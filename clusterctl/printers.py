"""Printers that write resources as names, YAML or JSON."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable, TextIO, Union

import yaml

from clusterctl.api import ClusterList, RegistryList

Printer = Union["NamePrinter", "YamlPrinter", "JsonPrinter"]

_ALLOWED_FORMATS = ("json", "name", "yaml")


def _items(obj: Any) -> Iterable[Any]:
    if isinstance(obj, (ClusterList, RegistryList)):
        return obj.items
    return [obj]


def _to_data(obj: Any) -> Any:
    to_dict = getattr(obj, "to_dict", None)
    if to_dict is None:
        raise TypeError(f"cannot print object of type {type(obj).__name__}")
    return to_dict()


class _YamlDumper(yaml.SafeDumper):
    """Quotes strings with double quotes where quoting is needed."""

    def choose_scalar_style(self) -> str:
        style = super().choose_scalar_style()
        return '"' if style == "'" else style


@dataclass
class NamePrinter:
    """Prints ``kind.group/name operation`` for each resource."""

    short_output: bool = False
    operation: str = ""

    def print_obj(self, obj: Any, out: TextIO) -> None:
        """Write one line per resource in obj."""
        for item in _items(obj):
            kind = getattr(item, "kind", None)
            name = getattr(item, "name", None)
            if kind is None or name is None:
                raise TypeError(f"cannot print name of {type(item).__name__}")
            api_version = getattr(item, "api_version", "")
            group = api_version.split("/", 1)[0] if "/" in api_version else ""
            resource = f"{kind.lower()}.{group}" if group else kind.lower()
            line = f"{resource}/{name}"
            if self.operation and not self.short_output:
                line += f" {self.operation}"
            out.write(line + "\n")


@dataclass
class YamlPrinter:
    """Prints resources as YAML with sorted keys."""

    def print_obj(self, obj: Any, out: TextIO) -> None:
        """Write obj as a YAML document."""
        out.write(
            yaml.dump(
                _to_data(obj),
                Dumper=_YamlDumper,
                default_flow_style=False,
                sort_keys=True,
                allow_unicode=True,
                width=1 << 30,
            )
        )


@dataclass
class JsonPrinter:
    """Prints resources as indented JSON."""

    def print_obj(self, obj: Any, out: TextIO) -> None:
        """Write obj as a JSON document."""
        out.write(json.dumps(_to_data(obj), indent=4) + "\n")


def to_printer(output: str = "", operation: str = "") -> Printer:
    """Return the printer for an output format; an empty format prints names."""
    if output in ("", "name"):
        return NamePrinter(operation=operation)
    if output == "yaml":
        return YamlPrinter()
    if output == "json":
        return JsonPrinter()
    raise ValueError(
        f'unable to match a printer suitable for the output format "{output}", '
        f"allowed formats are: {','.join(_ALLOWED_FORMATS)}"
    )