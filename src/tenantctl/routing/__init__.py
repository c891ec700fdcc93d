"""Route provisioning backends.

- SymlinkRouteProvisioner: shared hosting, links the domain web root to the frontend build
- VirtualHostRouteProvisioner: VPS, writes and enables an nginx virtual host

Use build_provisioner(settings) to get the one matching the hosting mode.
"""

from tenantctl.routing.base import RouteProvisioner, RouteResult, RouteStatus, build_provisioner
from tenantctl.routing.nginx import NginxController
from tenantctl.routing.symlink import SymlinkRouteProvisioner
from tenantctl.routing.vhost import VirtualHostRouteProvisioner, render_virtual_host

__all__ = [
    "NginxController",
    "RouteProvisioner",
    "RouteResult",
    "RouteStatus",
    "SymlinkRouteProvisioner",
    "VirtualHostRouteProvisioner",
    "build_provisioner",
    "render_virtual_host",
]
