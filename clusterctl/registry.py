"""Local image registries running as Docker containers."""

from __future__ import annotations

import copy
import json
import re
import socket
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Mapping, Optional, Protocol, TextIO

from clusterctl.api import (
    API_VERSION,
    GROUP,
    NotFoundError,
    Registry,
    RegistryList,
    RegistryStatus,
    TypeMeta,
)
from clusterctl.docker import CONTAINER_LABEL_ROLE, is_local_host

DEFAULT_REGISTRY_IMAGE_REF = "docker.io/library/registry:2"
DEFAULT_REGISTRY_NAME = "ctlptl-registry"
REGISTRY_CONTAINER_PORT = 5000

_CONTAINER_STATE_RUNNING = "running"
_RESOURCE = "registries"

# Applied to every registry container this tool creates. They are not compared
# when deciding whether a registry is up to date, so registries managed by
# other tools are left alone.
_CTLPTL_LABELS = {CONTAINER_LABEL_ROLE: "registry"}

_TYPE_META = TypeMeta(API_VERSION, "Registry")
_LIST_TYPE_META = TypeMeta(API_VERSION, "RegistryList")


def type_meta() -> TypeMeta:
    """The type meta of a single registry."""
    return _TYPE_META


def list_type_meta() -> TypeMeta:
    """The type meta of a registry list."""
    return _LIST_TYPE_META


def fill_defaults(registry: Registry) -> None:
    """Fill in the default name and image where they are missing."""
    if not registry.name:
        registry.name = DEFAULT_REGISTRY_NAME
    if not registry.image:
        registry.image = DEFAULT_REGISTRY_IMAGE_REF


# --- image references -------------------------------------------------------

_DEFAULT_DOMAIN = "docker.io"
_LEGACY_DEFAULT_DOMAIN = "index.docker.io"
_OFFICIAL_REPO_PREFIX = "library/"
_NAME_TOTAL_LENGTH_MAX = 255

_DOMAIN_COMPONENT = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"
_DOMAIN = rf"{_DOMAIN_COMPONENT}(?:\.{_DOMAIN_COMPONENT})*(?::[0-9]+)?"
_PATH_COMPONENT = r"[a-z0-9]+(?:(?:[._]|__|[-]*)[a-z0-9]+)*"
_NAME = rf"(?:{_DOMAIN}/)?{_PATH_COMPONENT}(?:/{_PATH_COMPONENT})*"
_TAG = r"[\w][\w.-]{0,127}"
_DIGEST = r"[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}"
_REFERENCE_RE = re.compile(rf"^({_NAME})(?::({_TAG}))?(?:@({_DIGEST}))?$")
_IDENTIFIER_RE = re.compile(r"^[a-f0-9]{64}$")


def _split_docker_domain(name: str) -> tuple[str, str]:
    slash = name.find("/")
    if slash == -1 or (
        not any(ch in name[:slash] for ch in ".:") and name[:slash] != "localhost"
    ):
        domain, remainder = _DEFAULT_DOMAIN, name
    else:
        domain, remainder = name[:slash], name[slash + 1 :]
    if domain == _LEGACY_DEFAULT_DOMAIN:
        domain = _DEFAULT_DOMAIN
    if domain == _DEFAULT_DOMAIN and "/" not in remainder:
        remainder = _OFFICIAL_REPO_PREFIX + remainder
    return domain, remainder


def normalize_image_ref(ref: str) -> str:
    """Return the fully qualified form of an image reference.

    Raises ValueError for references that are not valid.
    """
    if _IDENTIFIER_RE.match(ref):
        raise ValueError(
            f"invalid repository name ({ref}), cannot specify 64-byte hexadecimal strings"
        )
    domain, remainder = _split_docker_domain(ref)
    remote_name = remainder.split(":", 1)[0]
    if remote_name.lower() != remote_name:
        raise ValueError("invalid reference format: repository name must be lowercase")

    full = f"{domain}/{remainder}"
    match = _REFERENCE_RE.match(full)
    if match is None:
        raise ValueError("invalid reference format")
    if len(match.group(1)) > _NAME_TOTAL_LENGTH_MAX:
        raise ValueError(
            f"repository name must not be more than {_NAME_TOTAL_LENGTH_MAX} characters"
        )
    return full


def image_refs_equal(a: str, b: str) -> bool:
    """Whether two image references are equal once normalized.

    Returns False if either of them is invalid.
    """
    try:
        return normalize_image_ref(a) == normalize_image_ref(b)
    except ValueError:
        return False


# --- field selectors ---------------------------------------------------------

_OPERATORS = ("!=", "==", "=")


def _split_terms(selector: str) -> list[str]:
    terms: list[str] = []
    current: list[str] = []
    escaped = False
    for ch in selector:
        if escaped:
            current.append(ch)
            escaped = False
        elif ch == "\\":
            current.append(ch)
            escaped = True
        elif ch == ",":
            terms.append("".join(current))
            current = []
        else:
            current.append(ch)
    terms.append("".join(current))
    return terms


def _split_term(term: str) -> Optional[tuple[str, str, str]]:
    for i in range(len(term)):
        remaining = term[i:]
        for op in _OPERATORS:
            if remaining.startswith(op):
                return term[:i], op, term[i + len(op) :]
    return None


def _unescape(value: str) -> str:
    out: list[str] = []
    escaped = False
    for ch in value:
        if escaped:
            if ch not in "\\,=":
                raise ValueError(f"invalid field selector: invalid escape sequence: \\{ch}")
            out.append(ch)
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch in ",=":
            raise ValueError(f"invalid field selector: unescaped {ch} in value: {value}")
        else:
            out.append(ch)
    if escaped:
        raise ValueError(f"invalid field selector: invalid escape sequence at end of: {value}")
    return "".join(out)


@dataclass(frozen=True)
class FieldSelector:
    """A parsed field query such as ``name=foo,port!=5000``."""

    terms: tuple[tuple[str, str, str], ...] = ()

    @classmethod
    def parse(cls, selector: str) -> "FieldSelector":
        """Parse a selector; an empty selector matches everything."""
        terms = []
        for term in _split_terms(selector):
            if not term:
                continue
            parts = _split_term(term)
            if parts is None:
                raise ValueError(f"invalid selector: '{selector}'; can't understand '{term}'")
            lhs, op, rhs = parts
            terms.append((lhs, "!=" if op == "!=" else "=", _unescape(rhs)))
        return cls(tuple(terms))

    def matches(self, fields: Mapping[str, str]) -> bool:
        """Whether every term holds for the given field values."""
        for key, op, value in self.terms:
            equal = fields.get(key, "") == value
            if equal != (op == "="):
                return False
        return True


def _registry_fields(registry: Registry) -> dict[str, str]:
    return {"name": registry.name, "port": str(registry.port)}


@dataclass
class ListOptions:
    field_selector: str = ""


# --- docker model ------------------------------------------------------------


@dataclass
class ContainerPort:
    ip: str = ""
    private_port: int = 0
    public_port: int = 0
    type: str = "tcp"


@dataclass
class Container:
    """A container as reported by a container listing."""

    id: str = ""
    names: list[str] = field(default_factory=list)
    image: str = ""
    created: int = 0
    labels: dict[str, str] = field(default_factory=dict)
    ports: list[ContainerPort] = field(default_factory=list)
    state: str = ""
    # Network name -> IP address of the container on that network.
    networks: Optional[dict[str, str]] = None


@dataclass
class ContainerConfig:
    hostname: str = ""
    image: str = ""
    exposed_ports: set[str] = field(default_factory=set)
    labels: dict[str, str] = field(default_factory=dict)


@dataclass
class HostConfig:
    restart_policy: str = "always"
    # Container port -> list of (host IP, host port) bindings.
    port_bindings: dict[str, list[tuple[str, str]]] = field(default_factory=dict)


class DockerClient(Protocol):
    """The Docker operations the registry controller needs."""

    def daemon_host(self) -> str: ...

    def container_list(self, filters: Mapping[str, str]) -> list[Container]:
        """List all containers, running or not, that match the filters
        (``label`` as ``key=value``, ``ancestor`` as an image reference)."""
        ...

    def container_inspect(self, container_id: str) -> Optional[Container]:
        """Return the container with that ID or name, or None."""
        ...

    def container_remove(self, container_id: str, force: bool) -> None: ...

    def image_pull(self, image: str) -> None: ...

    def container_create(
        self, name: str, config: ContainerConfig, host_config: HostConfig
    ) -> str: ...

    def container_start(self, container_id: str) -> None: ...


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("localhost", 0))
        return sock.getsockname()[1]


# --- controller --------------------------------------------------------------


class RegistryController:
    """Reads and reconciles registries backed by Docker containers."""

    def __init__(
        self,
        docker_client: DockerClient,
        err_out: Optional[TextIO] = None,
        forwarder: Optional[Callable[[int], None]] = None,
    ) -> None:
        self._docker = docker_client
        self._err_out = err_out
        self._forwarder = forwarder

    @property
    def _err(self) -> TextIO:
        return self._err_out if self._err_out is not None else sys.stderr

    def get(self, name: str) -> Registry:
        """Return the registry with the given name, or raise NotFoundError."""
        result = self.list(ListOptions(field_selector=f"name={name}"))
        if not result.items:
            raise NotFoundError(GROUP, _RESOURCE, name)
        return result.items[0]

    def list(self, options: Optional[ListOptions] = None) -> RegistryList:
        """List registries that match the options' field selector."""
        options = options or ListOptions()
        selector = FieldSelector.parse(options.field_selector)

        items = []
        for container in self._registry_containers():
            if not container.names:
                continue
            name = container.names[0].removeprefix("/")
            networks = container.networks or {}
            listen_address, host_port, container_port = self._ip_and_ports(container.ports)
            registry = Registry(
                api_version=_TYPE_META.api_version,
                kind=_TYPE_META.kind,
                name=name,
                port=host_port,
                status=RegistryStatus(
                    creation_timestamp=datetime.fromtimestamp(container.created, tz=timezone.utc),
                    container_id=container.id,
                    ip_address=networks.get("bridge", ""),
                    host_port=host_port,
                    listen_address=listen_address,
                    container_port=container_port,
                    networks=sorted(networks),
                    state=container.state,
                    labels=dict(container.labels),
                    image=container.image,
                ),
            )
            if selector.matches(_registry_fields(registry)):
                items.append(registry)
        return RegistryList(
            api_version=_LIST_TYPE_META.api_version, kind=_LIST_TYPE_META.kind, items=items
        )

    @staticmethod
    def _ip_and_ports(ports: list[ContainerPort]) -> tuple[str, int, int]:
        for port in ports:
            if port.private_port == REGISTRY_CONTAINER_PORT:
                return port.ip, port.public_port, port.private_port
        return "unknown", 0, 0

    def apply(self, desired: Registry) -> Registry:
        """Bring the running registry in line with the desired one."""
        fill_defaults(desired)
        try:
            existing = self.get(desired.name)
        except NotFoundError:
            existing = Registry()

        needs_delete = False
        if existing.port and desired.port and existing.port != desired.port:
            needs_delete = True
        if not image_refs_equal(existing.status.image, desired.image):
            needs_delete = True
        if existing.status.state != _CONTAINER_STATE_RUNNING:
            needs_delete = True
        if any(existing.status.labels.get(k, "") != v for k, v in desired.labels.items()):
            # New labels can only be added by re-creating the container.
            needs_delete = True

        if needs_delete and existing.name:
            self.delete(existing.name)
            existing = copy.deepcopy(existing)
            existing.status.container_id = ""

        if existing.status.container_id:
            return existing

        self._err.write(f"Creating registry {json.dumps(desired.name)}...\n")

        self._remove_if_necessary(desired.name)
        exposed_ports, port_bindings, host_port = self._port_configs(existing, desired)
        self._run(
            desired.name,
            ContainerConfig(
                hostname=desired.name,
                image=desired.image,
                exposed_ports=exposed_ports,
                labels=self._label_configs(existing, desired),
            ),
            HostConfig(restart_policy="always", port_bindings=port_bindings),
        )
        self._maybe_create_forwarder(host_port)
        return self.get(desired.name)

    def _remove_if_necessary(self, name: str) -> None:
        container = self._docker.container_inspect(name)
        if container is not None:
            self._docker.container_remove(container.id or name, force=True)

    def _run(self, name: str, config: ContainerConfig, host_config: HostConfig) -> None:
        self._docker.image_pull(config.image)
        container_id = self._docker.container_create(name, config, host_config)
        self._docker.container_start(container_id or name)

    @staticmethod
    def _port_configs(
        existing: Registry, desired: Registry
    ) -> tuple[set[str], dict[str, list[tuple[str, str]]], int]:
        host_port = desired.port or existing.status.host_port
        listen_address = desired.listen_address or existing.status.listen_address
        if not host_port:
            try:
                host_port = _free_port()
            except OSError as err:
                raise OSError(f"creating registry: {err}") from err
        if not listen_address:
            # Bind IPv4 explicitly; IPv6-enabled networks break the port forward.
            listen_address = "127.0.0.1"
        port = f"{REGISTRY_CONTAINER_PORT}/tcp"
        return {port}, {port: [(listen_address, str(host_port))]}, host_port

    @staticmethod
    def _label_configs(existing: Registry, desired: Registry) -> dict[str, str]:
        return {**existing.status.labels, **desired.labels, **_CTLPTL_LABELS}

    def _maybe_create_forwarder(self, port: int) -> None:
        if is_local_host(self._docker.daemon_host()):
            return
        self._err.write(
            " 🎮 Env DOCKER_HOST set. Assuming remote Docker and "
            f"forwarding registry to localhost:{port}\n"
        )
        if self._forwarder is None:
            raise RuntimeError(f"no port forwarder configured for remote registry port {port}")
        self._forwarder(port)

    def _registry_containers(self) -> list[Container]:
        by_id: dict[str, Container] = {}
        for container in self._docker.container_list({"label": f"{CONTAINER_LABEL_ROLE}=registry"}):
            by_id[container.id] = container
        for container in self._docker.container_list({"ancestor": DEFAULT_REGISTRY_IMAGE_REF}):
            by_id[container.id] = container
        return sorted(by_id.values(), key=lambda c: c.id)

    def delete(self, name: str) -> None:
        """Remove the container behind the named registry."""
        registry = self.get(name)
        if not registry.status.container_id:
            raise RuntimeError(f"container not running registry: {name}")
        self._docker.container_remove(registry.status.container_id, force=True)