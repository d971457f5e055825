"""oauthbridge: an OAuth 2.0 authorization server that chains to an upstream provider."""

__version__ = "0.1.0"
