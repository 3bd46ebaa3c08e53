"""
Loading of the monitored projects from static configuration.

The project file is read once at startup. The resulting tuple of projects
and the hostname allow-list derived from it are never mutated afterwards.
"""

import json
import logging
from typing import Any, Dict, FrozenSet, Iterable, Tuple
from urllib.parse import urlsplit

from site_status.domain import MonitoredProject

# Module logger
logger = logging.getLogger(__name__)


def parse_projects(data: Dict[str, Any]) -> Tuple[MonitoredProject, ...]:
    """
    Builds the project list from the decoded project file.

    Expected shape: {"projects": [{"slug": ..., "visitLink": ..., "routes": [...]}]}.

    Raises:
        ValueError: On a missing field, a duplicate slug or a base URL that is
            not an absolute http(s) URL.
    """
    entries = data.get("projects")
    if not isinstance(entries, list):
        raise ValueError("Project file must contain a 'projects' list.")

    projects = []
    seen = set()
    for entry in entries:
        try:
            slug = str(entry["slug"])
            base_url = str(entry["visitLink"])
            routes = tuple(str(route) for route in entry.get("routes", ["/"]))
        except (KeyError, TypeError) as err:
            raise ValueError(f"Invalid project entry: {entry!r}") from err

        if not slug:
            raise ValueError("Project slug must not be blank.")
        if slug in seen:
            raise ValueError(f"Duplicate project slug: {slug}")

        parts = urlsplit(base_url)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise ValueError(f"Project {slug} has an invalid visitLink: {base_url}")

        seen.add(slug)
        projects.append(MonitoredProject(slug=slug, base_url=base_url, routes=routes))

    return tuple(projects)


def load_projects(path: str) -> Tuple[MonitoredProject, ...]:
    """
    Reads and parses the project file.

    Args:
        path: Path to the JSON project file.

    Returns:
        Tuple[MonitoredProject, ...]: The configured projects, in file order.

    Raises:
        RuntimeError: If the file cannot be read or is not valid JSON.
        ValueError: If the content is not a valid project list.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as err:
        raise RuntimeError(f"Projects file not found: {path}") from err
    except json.JSONDecodeError as err:
        raise RuntimeError(f"Invalid JSON format in projects file: {path}") from err

    projects = parse_projects(data)
    logger.info(f"Loaded {len(projects)} projects from {path}.")
    return projects


def build_allowed_hosts(projects: Iterable[MonitoredProject]) -> FrozenSet[str]:
    """
    Derives the preview hostname allow-list from the projects' base URLs.

    Returns:
        FrozenSet[str]: Lower-cased hostnames.
    """
    return frozenset(
        urlsplit(project.base_url).hostname.lower()
        for project in projects
        if urlsplit(project.base_url).hostname
    )
