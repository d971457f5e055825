# Internal OAuth2 authorization server chained to an upstream connector.
