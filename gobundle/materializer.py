"""Workspace materialization.

The workspace mirrors how the program is built once bundled:

- ``<workspace>/vendor/<import path>/...`` holds each dependency directory.
- ``<workspace>/...`` holds the program's own files.

Symbolic links are flattened: the destination gets a real file or directory with
the link target's contents.
"""

from dataclasses import dataclass, field
import logging
import os
import pathlib
import shutil
import stat
import tempfile

from gobundle.errors import MaterializeError

DEFAULT_SKIP_NAMES: frozenset[str] = frozenset({".git", ".hg"})


@dataclass(frozen=True, slots=True)
class MaterializeConfig:
    """Workspace layout configuration.

    :ivar skip_names: Entry names never copied (version control metadata).
    :ivar vendor_dir: Workspace-relative directory holding dependencies.
    :ivar workspace_prefix: Prefix of the temporary workspace directory name.
    :ivar dir_mode: Mode used when creating directories.
    """

    skip_names: frozenset[str] = field(default=DEFAULT_SKIP_NAMES)
    vendor_dir: str = "vendor"
    workspace_prefix: str = "gobundle"
    dir_mode: int = 0o755


@dataclass(frozen=True, slots=True)
class CopyStats:
    """Stats collected while copying a directory tree.

    :ivar files_copied: Number of files copied.
    :ivar bytes_copied: Total bytes copied.
    """

    files_copied: int
    bytes_copied: int


def create_workspace(config: MaterializeConfig | None = None) -> pathlib.Path:
    """Create a fresh, empty workspace directory.

    :param config: Optional layout configuration (for the name prefix).
    :returns: Workspace path.
    :raises MaterializeError: If the directory cannot be created.
    """

    if config is None:
        config = MaterializeConfig()
    try:
        return pathlib.Path(tempfile.mkdtemp(prefix=config.workspace_prefix))
    except OSError as e:
        raise MaterializeError(f"unable to create tmpdir: {e}") from e


def vendor_destination(*, workspace: pathlib.Path, vendor_dir: str, import_name: str) -> pathlib.Path:
    """Map an import path to its directory under ``<workspace>/<vendor_dir>``.

    Leading slashes and ``.`` components are dropped, the way ``vendor/`` joined with
    the import path is cleaned.

    :param workspace: Workspace root.
    :param vendor_dir: Workspace-relative vendor directory.
    :param import_name: Import path.
    :returns: Destination directory.
    :raises MaterializeError: If the import path is empty or climbs out with ``..``.
    """

    parts: list[str] = [p for p in pathlib.PurePosixPath(import_name).parts if p.strip("/") not in ("", ".")]
    if len(parts) == 0 or ".." in parts:
        raise MaterializeError(
            f"import path {import_name!r} does not name a directory under {vendor_dir}/",
            workspace=workspace,
        )
    return workspace.joinpath(vendor_dir, *parts)


def materialize(
    *,
    closure: dict[str, str],
    root_dir: str,
    config: MaterializeConfig | None = None,
    logger: logging.Logger | None = None,
    workspace: pathlib.Path | None = None,
) -> pathlib.Path:
    """Create a workspace holding the program and its vendored dependencies.

    :param closure: Map of dependency directory to import path.
    :param root_dir: Program directory.
    :param config: Optional layout configuration.
    :param logger: Optional logger for progress output.
    :param workspace: Existing empty workspace to fill (created when omitted).
    :returns: Workspace path. The caller owns it and must delete it.
    :raises MaterializeError: If any copy fails. ``workspace`` is set on the error
        whenever the workspace was created.
    """

    if config is None:
        config = MaterializeConfig()
    if logger is None:
        logger = logging.getLogger("gobundle")

    if workspace is None:
        workspace = create_workspace(config)
    logger.debug(f"gobundle: workspace={workspace}")

    total_files: int = 0
    total_bytes: int = 0

    for src_dir, import_name in closure.items():
        dst_dir: pathlib.Path = vendor_destination(
            workspace=workspace,
            vendor_dir=config.vendor_dir,
            import_name=import_name,
        )
        try:
            stats: CopyStats = copy_tree(
                src=pathlib.Path(src_dir),
                dst=dst_dir,
                skip_names=config.skip_names,
                dir_mode=config.dir_mode,
                logger=logger,
            )
        except MaterializeError as e:
            raise MaterializeError(
                f"unable to copy directory {src_dir} to {config.vendor_dir}/{import_name}: {e}",
                workspace=workspace,
            ) from e
        total_files += stats.files_copied
        total_bytes += stats.bytes_copied

    try:
        root_stats: CopyStats = copy_tree(
            src=pathlib.Path(root_dir),
            dst=workspace,
            skip_names=config.skip_names,
            dir_mode=config.dir_mode,
            logger=logger,
        )
    except MaterializeError as e:
        raise MaterializeError(
            f"unable to copy root directory {root_dir} to {workspace}: {e}",
            workspace=workspace,
        ) from e
    total_files += root_stats.files_copied
    total_bytes += root_stats.bytes_copied

    logger.info(
        f"gobundle: materialized {len(closure)} dependencies "
        f"({total_files} files, {total_bytes / (1024 * 1024):.1f} MiB) into {workspace}"
    )
    return workspace


def copy_tree(
    *,
    src: pathlib.Path,
    dst: pathlib.Path,
    skip_names: frozenset[str] = DEFAULT_SKIP_NAMES,
    dir_mode: int = 0o755,
    logger: logging.Logger | None = None,
) -> CopyStats:
    """Copy ``src`` into ``dst`` recursively, flattening symbolic links.

    :param src: Source directory.
    :param dst: Destination directory (created if missing).
    :param skip_names: Entry names to skip at every level.
    :param dir_mode: Mode for created directories.
    :param logger: Optional logger for debug output.
    :returns: Copy statistics.
    :raises MaterializeError: If any filesystem operation fails.
    """

    if logger is None:
        logger = logging.getLogger("gobundle")

    try:
        real_src: str = os.path.realpath(src)
    except OSError as e:
        raise MaterializeError(f"unable to resolve {src}: {e}") from e

    return _copy_dir(
        src=src,
        dst=dst,
        skip_names=skip_names,
        dir_mode=dir_mode,
        ancestors=frozenset({real_src}),
        logger=logger,
    )


def _copy_dir(
    *,
    src: pathlib.Path,
    dst: pathlib.Path,
    skip_names: frozenset[str],
    dir_mode: int,
    ancestors: frozenset[str],
    logger: logging.Logger,
) -> CopyStats:
    """Copy one directory level and recurse into subdirectories.

    :param src: Source directory.
    :param dst: Destination directory.
    :param skip_names: Entry names to skip.
    :param dir_mode: Mode for created directories.
    :param ancestors: Real paths of the directories currently being copied.
    :param logger: Logger for debug output.
    :returns: Copy statistics.
    :raises MaterializeError: If any filesystem operation fails.
    """

    logger.debug(f"gobundle: copying {str(src)!r} to {str(dst)!r}")
    try:
        os.makedirs(dst, mode=dir_mode, exist_ok=True)
    except OSError as e:
        raise MaterializeError(f"unable to create directory {str(dst)!r} for {str(src)!r}: {e}") from e

    try:
        with os.scandir(src) as it:
            entries: list[os.DirEntry[str]] = sorted(it, key=lambda entry: entry.name)
    except OSError as e:
        raise MaterializeError(f"unable to read dir {str(src)!r} into {str(dst)!r}: {e}") from e

    files_copied: int = 0
    bytes_copied: int = 0

    for entry in entries:
        if entry.name in skip_names:
            continue

        s: pathlib.Path = src / entry.name
        d: pathlib.Path = dst / entry.name
        try:
            st: os.stat_result = os.stat(s)
        except OSError as e:
            raise MaterializeError(f"unable to stat {str(s)!r} for {str(d)!r}: {e}") from e

        if stat.S_ISDIR(st.st_mode):
            real: str = os.path.realpath(s)
            if real in ancestors:
                raise MaterializeError(f"unable to copy dir {str(s)!r} to {str(d)!r}: symlink loop via {real!r}")
            sub: CopyStats = _copy_dir(
                src=s,
                dst=d,
                skip_names=skip_names,
                dir_mode=dir_mode,
                ancestors=ancestors | {real},
                logger=logger,
            )
            files_copied += sub.files_copied
            bytes_copied += sub.bytes_copied
            continue

        bytes_copied += _copy_file(src=s, dst=d)
        files_copied += 1

    return CopyStats(files_copied=files_copied, bytes_copied=bytes_copied)


def _copy_file(*, src: pathlib.Path, dst: pathlib.Path) -> int:
    """Copy a file's bytes, following a symbolic link at ``src``.

    :param src: Source file.
    :param dst: Destination file (overwritten if present).
    :returns: Number of bytes copied.
    :raises MaterializeError: If the copy fails.
    """

    try:
        shutil.copyfile(src, dst)
        return dst.stat().st_size
    except OSError as e:
        raise MaterializeError(f"unable to copy {str(src)!r} to {str(dst)!r}: {e}") from e
