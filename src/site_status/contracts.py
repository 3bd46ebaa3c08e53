"""
Core interfaces for the site status dashboard.

This module defines the abstract base classes for the collaborators the core
calls into: the status log store on the server side and the probe trigger the
client-side staleness scheduler uses to fire a single check.
"""

import abc
from datetime import datetime
from typing import Dict, List

from .domain import RouteStatus


class StatusLogStore(abc.ABC):
    """
    Abstract interface for the append-only status log.

    Implementations must be safe to call concurrently from different requests;
    every operation is either an insert or a bulk delete scoped to one project.
    """

    @abc.abstractmethod
    async def insert_status_log(
        self, project_slug: str, route_path: str, status_code: int, response_time_ms: int
    ) -> None:
        """
        Appends one row to the status log.

        Args:
            project_slug: The project the route belongs to.
            route_path: The route that was checked.
            status_code: The observed HTTP status, or 0 for a transport failure.
            response_time_ms: Elapsed time of the check in milliseconds.

        Raises:
            PersistenceFailure: If the row could not be written.
        """
        pass

    @abc.abstractmethod
    async def delete_logs(self, project_slug: str) -> int:
        """
        Deletes every row of a project.

        Args:
            project_slug: The project whose history is reset.

        Returns:
            int: The number of deleted rows.

        Raises:
            PersistenceFailure: If the delete failed.
        """
        pass

    @abc.abstractmethod
    async def latest_log_per_route(self, project_slug: str) -> Dict[str, datetime]:
        """
        Returns the timestamp of the most recent row of every route of a project.

        Routes that were never logged are absent from the mapping.

        Raises:
            PersistenceFailure: If the read failed.
        """
        pass


class ProbeTrigger(abc.ABC):
    """
    Abstract interface used by the staleness scheduler to talk to the server.
    """

    @abc.abstractmethod
    async def list_routes(self, project_slug: str) -> List[RouteStatus]:
        """
        Returns the routes of a project with their server-known last check time.
        """
        pass

    @abc.abstractmethod
    async def probe(self, project_slug: str, route_path: str) -> bool:
        """
        Requests a probe of a single route.

        Returns:
            bool: True if the server reported that a log row was written.
        """
        pass
