"""Resource types for clusters and registries, with their YAML/JSON field mapping."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Callable, Optional

API_VERSION = "ctlptl.dev/v1alpha1"
GROUP = "ctlptl.dev"


@dataclass(frozen=True)
class TypeMeta:
    """The (apiVersion, kind) pair that identifies a resource type."""

    api_version: str = ""
    kind: str = ""

    def __str__(self) -> str:
        return f"{{{self.kind} {self.api_version}}}"


class NotFoundError(LookupError):
    """Raised when a named cluster or registry does not exist."""

    def __init__(self, group: str, resource: str, name: str) -> None:
        self.group = group
        self.resource = resource
        self.name = name
        qualified = f"{resource}.{group}" if group else resource
        super().__init__(f'{qualified} "{name}" not found')


def _to_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        raise TypeError(f"cannot unmarshal {type(value).__name__} into string")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _to_int(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"cannot unmarshal {value!r} into int")
    return value


def _to_bool(value: Any) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise TypeError(f"cannot unmarshal {value!r} into bool")
    return value


def _to_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"cannot unmarshal {value!r} into a list of strings")
    return [_to_str(item) for item in value]


def _to_str_map(value: Any) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise TypeError(f"cannot unmarshal {value!r} into a map of strings")
    return {_to_str(k): _to_str(v) for k, v in value.items()}


def _to_time(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            value = datetime.fromisoformat(text)
        except ValueError as err:
            raise ValueError(f"cannot parse time {value!r}") from err
    if not isinstance(value, datetime):
        raise TypeError(f"cannot unmarshal {value!r} into a timestamp")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _format_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _scalar(key: str, convert: Callable[[Any], Any], **kwargs: Any) -> Any:
    return field(metadata={"key": key, "convert": convert}, **kwargs)


def _nested(key: str, cls: type, **kwargs: Any) -> Any:
    return field(metadata={"key": key, "nested": cls}, **kwargs)


def _encode(obj: Any) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for f in fields(obj):
        key = f.metadata.get("key")
        if key is None:
            continue
        value = getattr(obj, f.name)
        if value is None:
            continue
        if "nested" in f.metadata:
            result[key] = _encode(value)
        elif isinstance(value, datetime):
            result[key] = _format_time(value)
        elif value:
            if isinstance(value, list):
                value = list(value)
            elif isinstance(value, dict):
                value = dict(value)
            result[key] = value
    return result


def _decode(cls: type, data: Any) -> Any:
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise TypeError(f"cannot unmarshal {type(data).__name__} into api.{cls.__name__}")
    by_key = {f.metadata["key"]: f for f in fields(cls) if "key" in f.metadata}
    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        f = by_key.get(key)
        if f is None:
            raise ValueError(f"field {key} not found in type api.{cls.__name__}")
        if value is None:
            continue
        nested = f.metadata.get("nested")
        kwargs[f.name] = _decode(nested, value) if nested else f.metadata["convert"](value)
    return cls(**kwargs)


class _Serializable:
    def to_dict(self) -> dict[str, Any]:
        """Return the resource as plain data, leaving out empty fields."""
        return _encode(self)

    @classmethod
    def from_dict(cls, data: Any) -> Any:
        """Build the resource from plain data; unknown fields are rejected."""
        return _decode(cls, data)


@dataclass
class LocalRegistryHosting(_Serializable):
    host: str = _scalar("host", _to_str, default="")
    host_from_cluster_network: str = _scalar("hostFromClusterNetwork", _to_str, default="")
    host_from_container_runtime: str = _scalar("hostFromContainerRuntime", _to_str, default="")
    help: str = _scalar("help", _to_str, default="")


@dataclass
class MinikubeCluster(_Serializable):
    container_runtime: str = _scalar("containerRuntime", _to_str, default="")
    start_flags: list[str] = _scalar("startFlags", _to_str_list, default_factory=list)
    extra_configs: list[str] = _scalar("extraConfigs", _to_str_list, default_factory=list)


@dataclass
class ClusterStatus(_Serializable):
    creation_timestamp: Optional[datetime] = _scalar("creationTimestamp", _to_time, default=None)
    current: bool = _scalar("current", _to_bool, default=False)
    local_registry_hosting: Optional[LocalRegistryHosting] = _nested(
        "localRegistryHosting", LocalRegistryHosting, default=None
    )


@dataclass
class Cluster(_Serializable):
    api_version: str = _scalar("apiVersion", _to_str, default=API_VERSION)
    kind: str = _scalar("kind", _to_str, default="Cluster")
    name: str = _scalar("name", _to_str, default="")
    product: str = _scalar("product", _to_str, default="")
    registry: str = _scalar("registry", _to_str, default="")
    min_cpus: int = _scalar("minCPUs", _to_int, default=0)
    kubernetes_version: str = _scalar("kubernetesVersion", _to_str, default="")
    minikube: Optional[MinikubeCluster] = _nested("minikube", MinikubeCluster, default=None)
    status: ClusterStatus = _nested("status", ClusterStatus, default_factory=ClusterStatus)

    @property
    def type_meta(self) -> TypeMeta:
        return TypeMeta(self.api_version, self.kind)

    def to_dict(self) -> dict[str, Any]:
        """Return the cluster as plain data, leaving out empty fields."""
        return _encode(self)

    @classmethod
    def from_dict(cls, data: Any) -> "Cluster":
        """Build a cluster from plain data; unknown fields are rejected."""
        return _decode(cls, data)


@dataclass
class ClusterList:
    api_version: str = API_VERSION
    kind: str = "ClusterList"
    items: list[Cluster] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the list as plain data."""
        return {
            "apiVersion": self.api_version,
            "items": [item.to_dict() for item in self.items],
            "kind": self.kind,
        }


@dataclass
class RegistryStatus(_Serializable):
    creation_timestamp: Optional[datetime] = _scalar("creationTimestamp", _to_time, default=None)
    container_id: str = _scalar("containerId", _to_str, default="")
    ip_address: str = _scalar("ipAddress", _to_str, default="")
    host_port: int = _scalar("hostPort", _to_int, default=0)
    listen_address: str = _scalar("listenAddress", _to_str, default="")
    container_port: int = _scalar("containerPort", _to_int, default=0)
    networks: list[str] = _scalar("networks", _to_str_list, default_factory=list)
    state: str = _scalar("state", _to_str, default="")
    labels: dict[str, str] = _scalar("labels", _to_str_map, default_factory=dict)
    image: str = _scalar("image", _to_str, default="")


@dataclass
class Registry(_Serializable):
    api_version: str = _scalar("apiVersion", _to_str, default=API_VERSION)
    kind: str = _scalar("kind", _to_str, default="Registry")
    name: str = _scalar("name", _to_str, default="")
    port: int = _scalar("port", _to_int, default=0)
    listen_address: str = _scalar("listenAddress", _to_str, default="")
    image: str = _scalar("image", _to_str, default="")
    labels: dict[str, str] = _scalar("labels", _to_str_map, default_factory=dict)
    status: RegistryStatus = _nested("status", RegistryStatus, default_factory=RegistryStatus)

    @property
    def type_meta(self) -> TypeMeta:
        return TypeMeta(self.api_version, self.kind)

    def to_dict(self) -> dict[str, Any]:
        """Return the registry as plain data, leaving out empty fields."""
        return _encode(self)

    @classmethod
    def from_dict(cls, data: Any) -> "Registry":
        """Build a registry from plain data; unknown fields are rejected."""
        return _decode(cls, data)


@dataclass
class RegistryList:
    api_version: str = API_VERSION
    kind: str = "RegistryList"
    items: list[Registry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the list as plain data."""
        return {
            "apiVersion": self.api_version,
            "items": [item.to_dict() for item in self.items],
            "kind": self.kind,
        }