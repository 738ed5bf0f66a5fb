"""Bundle orchestration: resolve, materialize, deploy, clean up."""

import logging
import os
import pathlib
import shutil
import subprocess
import time

from gobundle.errors import DeployError
from gobundle.materializer import MaterializeConfig, create_workspace, materialize
from gobundle.metadata import MetadataProvider
from gobundle.resolver import resolve_closure


def bundle(
    *,
    root_dir: str,
    command: list[str],
    provider: MetadataProvider,
    config: MaterializeConfig | None = None,
    logger: logging.Logger | None = None,
) -> None:
    """Bundle the program at ``root_dir`` and run ``command`` inside the bundle.

    The temporary workspace is removed whether or not any step succeeds.

    :param root_dir: Program directory.
    :param command: Deploy command and its arguments.
    :param provider: Package metadata source.
    :param config: Optional workspace layout configuration.
    :param logger: Optional logger for progress output.
    :raises GobundleError: If resolution, materialization or the deploy command fails.
    """

    if logger is None:
        logger = logging.getLogger("gobundle")

    if len(command) == 0:
        raise DeployError("no deploy command given")

    t0: float = time.perf_counter()
    closure: dict[str, str] = resolve_closure(root_dir=root_dir, provider=provider, logger=logger)
    t1: float = time.perf_counter()
    logger.info(f"gobundle: resolved {len(closure)} dependencies in {t1 - t0:.2f}s")

    workspace: pathlib.Path = create_workspace(config)
    try:
        materialize(closure=closure, root_dir=root_dir, config=config, logger=logger, workspace=workspace)
        run_deploy(command=command, workspace=workspace, logger=logger)
    finally:
        logger.debug(f"gobundle: removing {workspace}")
        shutil.rmtree(workspace, ignore_errors=True)


def run_deploy(
    *,
    command: list[str],
    workspace: pathlib.Path,
    logger: logging.Logger | None = None,
) -> None:
    """Run the deploy command with ``workspace`` as its working directory.

    Standard streams are inherited from this process.

    :param command: Command and arguments.
    :param workspace: Populated workspace.
    :param logger: Optional logger for debug output.
    :raises DeployError: If the command cannot be started or exits non-zero.
    """

    if logger is None:
        logger = logging.getLogger("gobundle")

    cmdline: str = " ".join(command)
    logger.debug(f"gobundle: running command {command}")
    try:
        proc = subprocess.run(command, cwd=os.fspath(workspace), check=False)
    except OSError as e:
        raise DeployError(f"unable to run {cmdline!r}: {e}") from e

    if proc.returncode != 0:
        raise DeployError(f"unable to run {cmdline!r}: exit status {proc.returncode}")
