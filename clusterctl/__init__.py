"""Descriptions of local Kubernetes clusters and image registries, strict YAML
reading, a Docker-backed registry controller and the get/create/delete/apply
operations."""

__version__ = "0.1.0"