"""
Typed keys of the application state shared by the handlers.
"""

from typing import Dict, NamedTuple

from aiohttp import web

from site_status.config.status_context import StatusContext
from site_status.contracts import StatusLogStore
from site_status.domain import MonitoredProject
from site_status.preview.responder import PreviewResponder
from site_status.probe.route_prober import RouteProbeEngine


class Services(NamedTuple):
    """
    The collaborators the handlers call into.

    Attributes:
        store: Status log persistence.
        responder: Builds preview responses.
        engine: Runs route probes.
    """

    store: StatusLogStore
    responder: PreviewResponder
    engine: RouteProbeEngine


CONTEXT_KEY = web.AppKey("context", StatusContext)
PROJECTS_KEY = web.AppKey("projects", Dict[str, MonitoredProject])
SERVICES_KEY = web.AppKey("services", Services)
