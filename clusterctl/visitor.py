"""Sources of config documents: standard input, local files and URLs."""

from __future__ import annotations

import contextlib
import json
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass, field
from typing import IO, Any, Callable, ContextManager, Iterable, Protocol, Union

from clusterctl.encoding import DecodeError, parse_stream


class FetchError(OSError):
    """Raised when a URL source does not answer with status 200."""

    def __init__(self, url: str, status: int) -> None:
        self.url = url
        self.status = status
        super().__init__(f"fetch({json.dumps(url)}) failed with status code {status}")


class Visitor(Protocol):
    @property
    def name(self) -> str: ...

    def open(self) -> ContextManager[Any]: ...


@dataclass(frozen=True)
class StdinVisitor:
    """Reads documents from an already open stream, which it leaves open."""

    reader: IO[Any]

    @property
    def name(self) -> str:
        return "stdin"

    def open(self) -> ContextManager[IO[Any]]:
        return contextlib.nullcontext(self.reader)


@dataclass(frozen=True)
class FileVisitor:
    """Reads documents from a local file."""

    path: str

    @property
    def name(self) -> str:
        return self.path

    def open(self) -> ContextManager[IO[Any]]:
        return open(self.path, encoding="utf-8")


@dataclass(frozen=True)
class UrlVisitor:
    """Reads documents from an HTTP(S) URL."""

    url: str
    opener: Callable[[str], Any] = field(default=urllib.request.urlopen, repr=False, compare=False)

    @property
    def name(self) -> str:
        return self.url

    def open(self) -> Any:
        try:
            response = self.opener(self.url)
        except urllib.error.HTTPError as err:
            raise FetchError(self.url, err.code) from None
        if response.status != 200:
            response.close()
            raise FetchError(self.url, response.status)
        return response


AnyVisitor = Union[StdinVisitor, FileVisitor, UrlVisitor]


def from_strings(filenames: Iterable[str], stdin: IO[Any]) -> list[AnyVisitor]:
    """Turn command-line file arguments into visitors."""
    result: list[AnyVisitor] = []
    for filename in filenames:
        if filename == "-":
            result.append(StdinVisitor(stdin))
        elif filename.startswith(("http://", "https://")):
            try:
                urllib.parse.urlsplit(filename)
            except ValueError as err:
                raise ValueError(f"invalid URL {filename}: {err}") from err
            result.append(UrlVisitor(filename))
        else:
            result.append(FileVisitor(filename))
    return result


def decode(visitor: Visitor) -> list[Any]:
    """Read and parse every resource from one visitor."""
    with visitor.open() as reader:
        try:
            return parse_stream(reader)
        except DecodeError as err:
            raise DecodeError(f"visiting {visitor.name}: {err}") from err


def decode_all(visitors: Iterable[Visitor]) -> list[Any]:
    """Read and parse the resources of all visitors, in order."""
    return [obj for visitor in visitors for obj in decode(visitor)]