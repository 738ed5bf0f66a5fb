"""Build context helpers.

The dependency walk is "greedy": it asks the Go toolchain about packages as they
would be built for a fixed deployment platform (``linux/amd64`` by default), not
for the host running gobundle. This module turns user-supplied knobs into the
exact environment handed to ``go list``.
"""

from dataclasses import dataclass
import os
import re


class ContextResolutionError(ValueError):
    """Raised when build context arguments cannot be resolved."""


@dataclass(frozen=True, slots=True)
class BuildContext:
    """Build context used when querying package metadata.

    :ivar goos: Target operating system (``GOOS``).
    :ivar goarch: Target architecture (``GOARCH``).
    :ivar tags: Extra build tags.
    :ivar cgo_enabled: Whether cgo files take part in import discovery.
    :ivar go_binary: Go toolchain executable.
    """

    goos: str
    goarch: str
    tags: tuple[str, ...]
    cgo_enabled: bool
    go_binary: str

    def environ(self, base: dict[str, str] | None = None) -> dict[str, str]:
        """Build the child-process environment for toolchain invocations.

        :param base: Base environment (defaults to ``os.environ``).
        :returns: New environment mapping.
        """

        env: dict[str, str] = dict(os.environ if base is None else base)
        env["GOOS"] = self.goos
        env["GOARCH"] = self.goarch
        env["CGO_ENABLED"] = "1" if self.cgo_enabled is True else "0"
        if len(self.tags) > 0:
            goflags: str = env.get("GOFLAGS", "").strip()
            tag_flag: str = "-tags=" + ",".join(self.tags)
            env["GOFLAGS"] = f"{goflags} {tag_flag}".strip()
        return env


DEFAULT_GOOS: str = "linux"
DEFAULT_GOARCH: str = "amd64"

_KNOWN_GOOS: frozenset[str] = frozenset(
    {
        "aix",
        "android",
        "darwin",
        "dragonfly",
        "freebsd",
        "hurd",
        "illumos",
        "ios",
        "js",
        "linux",
        "netbsd",
        "openbsd",
        "plan9",
        "solaris",
        "wasip1",
        "windows",
        "zos",
    }
)

_KNOWN_GOARCH: frozenset[str] = frozenset(
    {
        "386",
        "amd64",
        "arm",
        "arm64",
        "loong64",
        "mips",
        "mips64",
        "mips64le",
        "mipsle",
        "ppc64",
        "ppc64le",
        "riscv64",
        "s390x",
        "wasm",
    }
)

_TAG_RE: re.Pattern[str] = re.compile(r"^[A-Za-z0-9_.]+$")


def resolve_build_context(
    *,
    goos: str | None,
    goarch: str | None,
    tags: str | None,
    go_binary: str | None,
    cgo_enabled: bool = True,
) -> BuildContext:
    """Resolve user-supplied arguments into a :class:`~BuildContext`.

    :param goos: Optional ``GOOS`` override (defaults to ``linux``).
    :param goarch: Optional ``GOARCH`` override (defaults to ``amd64``).
    :param tags: Optional comma- or space-separated build tags.
    :param go_binary: Optional path to the ``go`` executable.
    :param cgo_enabled: Whether cgo files take part in import discovery.
    :returns: Resolved build context.
    :raises ContextResolutionError: If a value is not recognized.
    """

    resolved_goos: str = DEFAULT_GOOS if goos is None else goos.strip().lower()
    if resolved_goos not in _KNOWN_GOOS:
        raise ContextResolutionError(f"Unrecognized --goos {goos!r}.")

    resolved_goarch: str = DEFAULT_GOARCH if goarch is None else goarch.strip().lower()
    if resolved_goarch not in _KNOWN_GOARCH:
        raise ContextResolutionError(f"Unrecognized --goarch {goarch!r}.")

    binary: str = "go" if go_binary is None else go_binary
    if len(binary.strip()) == 0:
        raise ContextResolutionError("--go must not be empty.")

    return BuildContext(
        goos=resolved_goos,
        goarch=resolved_goarch,
        tags=_parse_tags(tags),
        cgo_enabled=cgo_enabled,
        go_binary=binary,
    )


def _parse_tags(tags: str | None) -> tuple[str, ...]:
    """Split a tag list the way ``go build -tags`` accepts it.

    :param tags: Comma- or space-separated tags, or ``None``.
    :returns: Tags in the given order, without duplicates.
    :raises ContextResolutionError: If a tag contains invalid characters.
    """

    if tags is None:
        return ()

    out: list[str] = []
    for tag in re.split(r"[,\s]+", tags.strip()):
        if tag == "":
            continue
        if _TAG_RE.match(tag) is None:
            raise ContextResolutionError(f"Invalid build tag {tag!r}.")
        if tag not in out:
            out.append(tag)
    return tuple(out)
