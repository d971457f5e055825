# Upstream OAuth connectors: descriptors, catalog and credential mapping.

from oauthbridge.connectors.catalog import CONNECTORS, generic_oauth2_connector, get_connector
from oauthbridge.connectors.mapping import map_credentials
from oauthbridge.connectors.models import Connector, ConnectorCredentials

__all__ = [
    "CONNECTORS",
    "Connector",
    "ConnectorCredentials",
    "generic_oauth2_connector",
    "get_connector",
    "map_credentials",
]
