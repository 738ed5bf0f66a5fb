"""Dependency closure walk.

Starting from the program directory, imports are followed breadth-first. The
visited set is keyed by ``(import path, importing directory)`` rather than by
package directory: two importers of the same package each resolve it once, so a
package whose resolution depends on the importer (vendor directories, build tags)
is still seen from every side.
"""

from collections import deque
from dataclasses import dataclass
import logging
import os

from gobundle.errors import ResolutionError
from gobundle.metadata import (
    FOREIGN_IMPORT,
    LookupFailed,
    LookupResult,
    MetadataProvider,
    Resolved,
    Unresolved,
)


@dataclass(frozen=True, slots=True)
class DiscoveryEdge:
    """An import path as referenced from one directory.

    :ivar identifier: Import path.
    :ivar origin: Directory of the importing package.
    """

    identifier: str
    origin: str


def resolve_closure(
    *,
    root_dir: str,
    provider: MetadataProvider,
    logger: logging.Logger | None = None,
) -> dict[str, str]:
    """Collect every non-standard package the program transitively imports.

    :param root_dir: Program directory.
    :param provider: Package metadata source.
    :param logger: Optional logger for progress output.
    :returns: Map of package directory to the import path it was first found under.
        The program directory itself is never part of the map.
    :raises ResolutionError: If an importing directory has no absolute form.
    """

    if logger is None:
        logger = logging.getLogger("gobundle")

    try:
        abs_root: str = os.path.abspath(root_dir)
    except OSError as e:
        raise ResolutionError(f"unable to get absolute directory of {root_dir!r}: {e}") from e

    closure: dict[str, str] = {}
    vendored_from: dict[str, str] = {}

    root_imports: tuple[str, ...] = _imports_of(provider.load_dir(root_dir), logger=logger)
    queue: deque[DiscoveryEdge] = deque(DiscoveryEdge(identifier=i, origin=root_dir) for i in root_imports)
    visited: set[DiscoveryEdge] = set()

    while len(queue) > 0:
        edge: DiscoveryEdge = queue.popleft()
        if edge.identifier == FOREIGN_IMPORT:
            continue
        if edge in visited:
            continue
        visited.add(edge)

        try:
            abs_origin: str = os.path.abspath(edge.origin)
        except OSError as e:
            raise ResolutionError(f"unable to get absolute directory of {edge.origin!r}: {e}") from e

        result: LookupResult = provider.load_import(edge.identifier, abs_origin)
        if not isinstance(result, Resolved):
            _log_miss(result, logger=logger)
            continue

        unit = result.unit
        if unit.is_platform_provided is True:
            continue
        if unit.resolved_path == "":
            continue
        if unit.resolved_path == abs_root:
            # The program itself; its imports are already queued.
            continue

        logger.debug(f"gobundle: located {edge.identifier!r} (imported from {edge.origin!r}) -> {unit.resolved_path!r}")
        _record(
            closure=closure,
            vendored_from=vendored_from,
            path=unit.resolved_path,
            identifier=edge.identifier,
            logger=logger,
        )

        for identifier in unit.declared_imports:
            queue.append(DiscoveryEdge(identifier=identifier, origin=unit.resolved_path))

    return closure


def _imports_of(result: LookupResult, *, logger: logging.Logger) -> tuple[str, ...]:
    """Return the imports a lookup contributes to the walk.

    Unresolved and failed lookups contribute nothing.

    :param result: Lookup result.
    :param logger: Logger for debug output.
    :returns: Declared imports.
    """

    if isinstance(result, Resolved):
        return result.unit.declared_imports
    _log_miss(result, logger=logger)
    return ()


def _log_miss(result: Unresolved | LookupFailed, *, logger: logging.Logger) -> None:
    if isinstance(result, LookupFailed):
        logger.debug(f"gobundle: ignoring lookup failure for {result.identifier!r} (from {result.origin!r}): {result.detail}")
    else:
        logger.debug(f"gobundle: unable to locate {result.identifier!r} (from {result.origin!r})")


def _record(
    *,
    closure: dict[str, str],
    vendored_from: dict[str, str],
    path: str,
    identifier: str,
    logger: logging.Logger,
) -> None:
    """Add a package to the closure; the first import path seen for a directory wins.

    :param closure: Directory to import path map being built.
    :param vendored_from: Import path to directory map of recorded entries.
    :param path: Package directory.
    :param identifier: Import path it was found under.
    :param logger: Logger for ambiguity warnings.
    """

    existing: str | None = closure.get(path)
    if existing is not None:
        if existing != identifier:
            logger.warning(
                f"gobundle: {path!r} is imported as both {existing!r} and {identifier!r}; "
                f"vendoring it only as {existing!r}"
            )
        return

    other_path: str | None = vendored_from.get(identifier)
    if other_path is not None:
        logger.warning(
            f"gobundle: {identifier!r} resolves to both {other_path!r} and {path!r}; "
            f"both are copied into vendor/{identifier}"
        )
    else:
        vendored_from[identifier] = path

    closure[path] = identifier
