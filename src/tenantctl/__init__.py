"""tenantctl - custom domain provisioning and certificate lifecycle for tenants.

Takes a tenant's custom domain from "just assigned" to "resolves, routes to the
shared frontend and serves a valid certificate", on shared hosting (symlinked
web roots) or a VPS (nginx virtual hosts).
"""

__version__ = "0.1.0"
