"""
em_registry.packager — Build the module zip from the build directory.

Steps:
    1. Run the pre-package command (if any). Non-zero exit aborts before any
       archive is opened, so a failed build never leaves a zip behind.
    2. Walk the build directory recursively. Regular files are stored under
       their POSIX path relative to the build directory root; directories are
       recursed; symlinks and special files are skipped.
    3. Write to a temporary sibling and rename once the archive is closed.
"""

from __future__ import annotations

import logging
import os
import subprocess
import zipfile
from collections.abc import Iterator
from pathlib import Path

from em_registry.exceptions import BuildDirectoryNotFoundError, PrePackageCommandError

logger = logging.getLogger("em_registry.packager")


def run_pre_package_command(command: str | None, *, cwd: Path) -> None:
    if not command or not command.strip():
        return
    print(f"Running {command} ...")
    result = subprocess.run(
        command,
        shell=True,
        cwd=str(cwd),
        check=False,
        capture_output=True,
        text=True,
    )
    if result.stdout.strip():
        logger.debug("%s stdout:\n%s", command, result.stdout.strip()[-8000:])
    if result.returncode != 0:
        raise PrePackageCommandError(
            command=command,
            return_code=result.returncode,
            stderr=result.stderr,
        )


def iter_build_files(
    build_directory: Path, current: Path | None = None
) -> Iterator[tuple[Path, str]]:
    """Yield (path, entry_name) for every regular file under build_directory."""
    with os.scandir(current or build_directory) as entries:
        for entry in entries:
            path = Path(entry.path)
            if entry.is_file(follow_symlinks=False):
                yield path, path.relative_to(build_directory).as_posix()
            elif entry.is_dir(follow_symlinks=False):
                yield from iter_build_files(build_directory, path)


def create_package(
    build_directory: Path,
    output: Path,
    *,
    pre_package_command: str | None = None,
    cwd: Path | None = None,
) -> Path:
    """Run the pre-package command and zip build_directory into output."""
    run_pre_package_command(pre_package_command, cwd=cwd or Path.cwd())

    if not build_directory.is_dir():
        raise BuildDirectoryNotFoundError(f"Build directory not found: {build_directory}")

    print(f"creating file {output.name}...")
    staging = output.with_name(output.name + ".tmp")
    count = 0
    try:
        with zipfile.ZipFile(staging, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for path, entry_name in iter_build_files(build_directory):
                logger.info("adding %s as %s", path, entry_name)
                archive.write(path, arcname=entry_name)
                count += 1
        os.replace(staging, output)
    except BaseException:
        staging.unlink(missing_ok=True)
        raise

    print(f"file {output.name} has been created ({count} files)")
    return output
