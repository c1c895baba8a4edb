"""
Repo Service
============
Reads the repo-list file and manages one workspace per service.

Philosophy:
    - One workspace per service: <WORKSPACE_ROOT>/<lower(name)>/
    - Reuse a prior clone unless a fresh clone is requested.
    - A failed clone is tolerated; the Dockerfile check decides whether
      the pipeline can go on.
"""
import os
import re
import shutil
import logging
from typing import List, Optional

from harness.core.config import WORKSPACE_ROOT
from harness.core.errors import ConfigError, SetupError
from harness.executor.process_executor import LineCallback, ProcessExecutor, ProcessResult
from harness.models.service_spec import ServiceSpec

logger = logging.getLogger(__name__)

COMMENT_PREFIX = "#"
DOCKERFILE = "Dockerfile"

# https://host/org/repo(.git) or git@host:org/repo(.git)
_REPO_URL_RE = re.compile(r"(?:https?://[^/\s]+/|git@[^:\s]+:)\S+")


def get_service_name(repo_url: str) -> str:
    """Extract the service name (last path segment) from a repository URL."""
    name = repo_url.rstrip("/").split("/")[-1]
    if ":" in name:
        name = name.split(":")[-1]
    if name.endswith(".git"):
        name = name[:-4]
    return name


def parse_repo_list(path: str) -> List[ServiceSpec]:
    """
    Parse the newline-delimited repo-list file.

    Blank lines and lines starting with ``#`` are skipped. Every other line
    must contain a repository URL.

    Raises
    ------
    ConfigError
        The file cannot be read, a line has no URL, or two URLs map to the
        same service name.
    """
    try:
        with open(path, encoding="utf-8") as f:
            lines = f.readlines()
    except OSError as e:
        raise ConfigError(f"Cannot read repo list {path}: {e}") from e

    specs: List[ServiceSpec] = []
    seen = {}
    for number, raw in enumerate(lines, 1):
        line = raw.strip()
        if not line or line.startswith(COMMENT_PREFIX):
            continue

        match = _REPO_URL_RE.search(line)
        if not match:
            raise ConfigError(f"{path}:{number}: no repository URL in {line!r}")

        url = match.group(0)
        name = get_service_name(url)
        if not name:
            raise ConfigError(f"{path}:{number}: cannot derive a service name from {url}")

        key = name.lower()
        if key in seen:
            raise ConfigError(
                f"{path}:{number}: service name {name!r} already used on line {seen[key]}"
            )
        seen[key] = number
        specs.append(ServiceSpec(repository_url=url, name=name))

    logger.info("Loaded %d service(s) from %s", len(specs), path)
    return specs


def workspace_path_for(spec: ServiceSpec, root: str = WORKSPACE_ROOT) -> str:
    return os.path.join(root, spec.slug)


def has_prior_clone(workspace_path: str) -> bool:
    return os.path.isdir(os.path.join(workspace_path, ".git"))


def has_dockerfile(workspace_path: str) -> bool:
    return os.path.isfile(os.path.join(workspace_path, DOCKERFILE))


def prepare_workspace(workspace_path: str, fresh_clone: bool = False) -> bool:
    """
    Reset the workspace unless a prior clone can be reused.

    Returns True when the workspace was (re)created, False when reused.

    Raises
    ------
    SetupError
        The stale directory could not be removed or recreated.
    """
    if not fresh_clone and has_prior_clone(workspace_path):
        logger.debug("Reusing prior clone at %s", workspace_path)
        return False

    try:
        if os.path.exists(workspace_path):
            logger.debug("Removing stale workspace %s", workspace_path)
            shutil.rmtree(workspace_path)
        os.makedirs(workspace_path, exist_ok=True)
    except OSError as e:
        raise SetupError(f"Cannot reset workspace {workspace_path}: {e}") from e
    return True


async def clone_repository(
    executor: ProcessExecutor,
    repo_url: str,
    dest_path: str,
    on_line: Optional[LineCallback] = None,
) -> ProcessResult:
    """
    Clone ``repo_url`` into ``dest_path``.

    The exit code is returned, not raised: cloning over a reused workspace
    always fails and is not fatal.
    """
    return await executor.run(
        "git", ["clone", repo_url, dest_path],
        cwd=os.path.dirname(dest_path) or None,
        on_line=on_line,
    )
