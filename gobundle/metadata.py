"""Package metadata lookups.

Every lookup answers with one of three results:

- :class:`Resolved`: the package was found on disk.
- :class:`Unresolved`: the toolchain answered but has no directory for it (for
  example, every file is excluded by build constraints).
- :class:`LookupFailed`: the toolchain could not be queried at all.

Callers decide how to treat the last two; the closure walk treats them the same.
"""

from dataclasses import dataclass
import json
import logging
import subprocess
from typing import Protocol, Union

from gobundle.context import BuildContext

# cgo pseudo-package; never a real directory.
FOREIGN_IMPORT: str = "C"


@dataclass(frozen=True, slots=True)
class BuildUnit:
    """A package directory as seen by the Go toolchain.

    :ivar resolved_path: Absolute package directory (``""`` if unknown).
    :ivar import_identifier: Import path the package was looked up under.
    :ivar is_platform_provided: ``True`` for packages shipped with the Go distribution.
    :ivar declared_imports: Import paths referenced by the package's files, in order.
    """

    resolved_path: str
    import_identifier: str
    is_platform_provided: bool
    declared_imports: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class Resolved:
    unit: BuildUnit


@dataclass(frozen=True, slots=True)
class Unresolved:
    identifier: str
    origin: str


@dataclass(frozen=True, slots=True)
class LookupFailed:
    identifier: str
    origin: str
    detail: str


LookupResult = Union[Resolved, Unresolved, LookupFailed]


class MetadataProvider(Protocol):
    """Source of package metadata used by the closure walk."""

    def load_dir(self, directory: str) -> LookupResult:
        """Describe the package rooted at ``directory``."""
        ...

    def load_import(self, identifier: str, origin_dir: str) -> LookupResult:
        """Describe the package ``identifier`` as imported from ``origin_dir``."""
        ...


class GoListProvider:
    """Metadata provider backed by ``go list -e -json``."""

    def __init__(self, *, context: BuildContext, logger: logging.Logger | None = None) -> None:
        """Create a provider.

        :param context: Build context (platform, tags, toolchain binary).
        :param logger: Optional logger for debug output.
        """

        self._context: BuildContext = context
        self._env: dict[str, str] = context.environ()
        self._logger: logging.Logger = logger if logger is not None else logging.getLogger("gobundle")

    def load_dir(self, directory: str) -> LookupResult:
        return self._go_list(pattern=".", identifier=".", cwd=directory)

    def load_import(self, identifier: str, origin_dir: str) -> LookupResult:
        return self._go_list(pattern=identifier, identifier=identifier, cwd=origin_dir)

    def _go_list(self, *, pattern: str, identifier: str, cwd: str) -> LookupResult:
        """Run ``go list`` for one package and map its answer to a lookup result.

        :param pattern: Package pattern passed to ``go list``.
        :param identifier: Import identifier recorded on the result.
        :param cwd: Directory the lookup is relative to.
        :returns: Lookup result.
        """

        cmd: list[str] = [self._context.go_binary, "list", "-e", "-json", pattern]
        if self._logger.isEnabledFor(logging.DEBUG) is True:
            self._logger.debug(f"gobundle: running {' '.join(cmd)} (cwd={cwd})")

        try:
            proc = subprocess.run(
                cmd,
                cwd=cwd,
                env=self._env,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                check=False,
            )
        except OSError as e:
            return LookupFailed(identifier=identifier, origin=cwd, detail=f"unable to run {cmd[0]!r}: {e}")

        if proc.returncode != 0:
            detail: str = proc.stderr.strip() or f"exit={proc.returncode}"
            return LookupFailed(identifier=identifier, origin=cwd, detail=detail)

        try:
            payload = json.loads(proc.stdout)
        except json.JSONDecodeError as e:
            return LookupFailed(identifier=identifier, origin=cwd, detail=f"unreadable go list output: {e}")

        return parse_go_list_package(payload, identifier=identifier, origin=cwd, logger=self._logger)


def parse_go_list_package(
    payload: object,
    *,
    identifier: str,
    origin: str,
    logger: logging.Logger | None = None,
) -> LookupResult:
    """Map one decoded ``go list -json`` package object to a lookup result.

    :param payload: Decoded JSON object.
    :param identifier: Import identifier the lookup was made for.
    :param origin: Directory the lookup was relative to.
    :param logger: Optional logger for debug output.
    :returns: Lookup result.
    """

    if not isinstance(payload, dict):
        return LookupFailed(identifier=identifier, origin=origin, detail="go list did not return an object")

    directory: str = payload.get("Dir") or ""
    err = payload.get("Error")
    if err is not None and logger is not None and logger.isEnabledFor(logging.DEBUG) is True:
        message: str = err.get("Err", "") if isinstance(err, dict) else str(err)
        logger.debug(f"gobundle: go list reported {identifier!r} (from {origin!r}): {message}")

    if directory == "":
        return Unresolved(identifier=identifier, origin=origin)

    imports: tuple[str, ...] = tuple(payload.get("Imports") or ())
    return Resolved(
        unit=BuildUnit(
            resolved_path=directory,
            import_identifier=identifier,
            is_platform_provided=bool(payload.get("Goroot")) or bool(payload.get("Standard")),
            declared_imports=imports,
        )
    )
