# clusterctl

`clusterctl` describes local Kubernetes clusters and the image registries
that sit next to them as plain YAML documents, reads those documents
strictly, and reconciles registry descriptions against the containers a
Docker daemon is running.

It is a library. The pieces are:

- `clusterctl.api` – data classes `Cluster`, `Registry`, `ClusterList`,
  `RegistryList` (with their status classes) that convert to and from plain
  dictionaries, and `NotFoundError`;
- `clusterctl.encoding` – `parse_stream`, a strict multi-document YAML
  reader that rejects unknown fields, versions and kinds with `DecodeError`;
- `clusterctl.visitor` – configuration sources (`StdinVisitor`,
  `FileVisitor`, `UrlVisitor`), `from_strings`, `decode` and `decode_all`;
- `clusterctl.registry` – `RegistryController`, which lists, applies and
  deletes registry containers through a Docker client you supply, plus
  field selectors and image-reference normalisation;
- `clusterctl.docker` – classification of `DOCKER_HOST` values;
- `clusterctl.printers` – name, YAML and JSON printers;
- `clusterctl.normalize` – default cluster names per product and lookup by
  product name;
- `clusterctl.get`, `clusterctl.create`, `clusterctl.delete`,
  `clusterctl.apply` – the operations behind `get`, `create`, `delete` and
  `apply`, as option objects with a `run` method.

## Installation

```
pip install .
```

Python 3.10 or later is required. The only dependency is PyYAML.

## Configuration format

Every document carries `apiVersion: ctlptl.dev/v1alpha1` and a `kind` of
either `Cluster` or `Registry`. Several documents may share one stream,
separated by `---`:

```yaml
apiVersion: ctlptl.dev/v1alpha1
kind: Registry
name: ctlptl-registry
port: 5005
---
apiVersion: ctlptl.dev/v1alpha1
kind: Cluster
product: kind
registry: ctlptl-registry
```

## Reading configuration

```python
import io
from clusterctl.encoding import parse_stream, DecodeError

text = """
apiVersion: ctlptl.dev/v1alpha1
kind: Cluster
name: kind-kind
product: kind
"""
objects = parse_stream(io.StringIO(text))
print(objects[0].name)  # kind-kind
```

A misspelt field raises `DecodeError` with a message such as
`decoding {Cluster ctlptl.dev/v1alpha1}: yaml: unmarshal errors:` followed
by `line 4: field nameTypo not found in type api.Cluster`. A wrong
`apiVersion` or `kind` raises `DecodeError` as well.

To read from several places at once, build visitors from file names, `-`
for a given input stream, or `http://`/`https://` URLs:

```python
import sys
from clusterctl.visitor import from_strings, decode_all

objects = decode_all(from_strings(["cluster.yaml", "-"], sys.stdin))
```

A URL that does not answer with status 200 raises `FetchError`; parse
errors are prefixed with `visiting <name>:`.

## Registries

```python
from clusterctl.api import Registry
from clusterctl.registry import fill_defaults, image_refs_equal, normalize_image_ref

registry = Registry.from_dict({"apiVersion": "ctlptl.dev/v1alpha1", "kind": "Registry"})
fill_defaults(registry)
print(registry.name)   # ctlptl-registry
print(registry.image)  # docker.io/library/registry:2

normalize_image_ref("registry:2")                          # 'docker.io/library/registry:2'
image_refs_equal("registry:2", "docker.io/library/registry:2")  # True
```

`RegistryController(docker_client, err_out=None, forwarder=None)` works
against any object with the methods of the `DockerClient` protocol:
`daemon_host`, `container_list`, `container_inspect`, `container_remove`,
`image_pull`, `container_create` and `container_start`.

- `list(ListOptions(field_selector="name=foo"))` finds registry containers
  by the `dev.tilt.ctlptl.role=registry` label or the default registry
  image, sorted by container ID, and returns a `RegistryList`. Selectors
  support `=`, `==` and `!=` on `name` and `port` (see `FieldSelector`).
- `get(name)` returns one registry or raises `NotFoundError`.
- `apply(desired)` re-creates the container when the port, image, requested
  labels or running state no longer match, picking a free host port and
  binding to `127.0.0.1` when none is given. If the daemon is not local, the
  `forwarder` callable is called with the host port; without one, a
  `RuntimeError` is raised.
- `delete(name)` force-removes the registry's container.

## Docker host detection

```python
from clusterctl.docker import is_local_host, is_local_docker_desktop

is_local_host("tcp://localhost:2375")                             # True
is_local_docker_desktop("unix:///var/run/docker.sock", "darwin")  # True
is_local_docker_desktop("unix:///var/run/docker.sock", "linux")   # False
```

## Clusters by product name

`default_cluster_name("kind")` is `kind-kind` and
`default_cluster_name("k3d")` is `k3d-k3s-default`; other products keep
their own name. `normalized_get(controller, "kind")` asks the controller for
`kind`, then for `kind-kind`, and raises the first `NotFoundError` if both
are missing.

## Output

`to_printer(output, operation)` returns a `NamePrinter` for `""` or
`"name"`, a `YamlPrinter` for `"yaml"` and a `JsonPrinter` for `"json"`;
any other format raises `ValueError`. The name printer writes lines such as
`cluster.ctlptl.dev/kind-kind created`.

`GetOptions` renders clusters and registries as aligned tables when no
output format is set (registries newest first):

```
CURRENT   NAME        PRODUCT    AGE   REGISTRY
*         microk8s    microk8s   3y    none
          kind-kind   KIND       3y    localhost:5000
```

## Operations

Each operation takes its controllers and streams as fields:

- `GetOptions(cluster_controller=..., registry_controller=...).run(["cluster", "kind"])`
  prints and returns an exit status (0 or 1), writing errors to `err_out`.
- `CreateClusterOptions().run(controller, "kind")` and
  `CreateRegistryOptions().run(controller, "my-registry")` fail with
  `RuntimeError` if the resource already exists, then apply and print it.
- `DeleteOptions(cluster_controller=..., registry_deleter=...).run(["cluster", "kind-kind"])`
  deletes by name or, with `filenames`, from documents; `cascade="true"`
  deletes a cluster's registry first, and `ignore_not_found=True` skips
  missing resources.
- `ApplyOptions(filenames=[...], cluster_controller=..., registry_controller=...).run()`
  applies registries first, then clusters.

## What this package does not do

- It has no command-line program; the operations are called from Python.
- It contains no cluster controller: creating, inspecting or deleting
  kind, k3d, minikube or Docker Desktop clusters is left to the controller
  object you pass in.
- It contains no Docker client; `RegistryController` needs an object
  implementing `DockerClient`.
- It does not forward ports to a remote Docker daemon itself; supply a
  `forwarder` callable for that.

## Running the tests

```
pip install -e ".[test]"
pytest
```