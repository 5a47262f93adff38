"""Classification of Docker daemon host addresses."""

CONTAINER_LABEL_ROLE = "dev.tilt.ctlptl.role"

_LOCAL_PREFIXES = ("tcp://localhost:", "tcp://127.0.0.1:", "npipe:", "unix:")
_DESKTOP_LINUX_SOCKET = "/.docker/desktop/docker.sock"


def is_local_host(docker_host: str) -> bool:
    """Whether the Docker daemon runs on this machine."""
    return docker_host == "" or docker_host.startswith(_LOCAL_PREFIXES)


def is_local_docker_engine_host(docker_host: str) -> bool:
    """Whether DOCKER_HOST looks like a local Docker Engine."""
    if docker_host.startswith("unix:"):
        # Other tools listen on their own sockets while posing as Docker Desktop.
        return "/var/run/docker.sock" in docker_host or docker_host.endswith(_DESKTOP_LINUX_SOCKET)
    return is_local_host(docker_host)


def is_local_docker_desktop(docker_host: str, os_name: str) -> bool:
    """Whether DOCKER_HOST looks like a local Docker Desktop on the given OS."""
    if os_name in ("darwin", "windows"):
        return is_local_docker_engine_host(docker_host)
    return docker_host.startswith("unix:") and docker_host.endswith(_DESKTOP_LINUX_SOCKET)