"""
md-feedback version, single source of truth for the package, the CLI and
the MCP server.
"""

__version__ = "0.5.1"

VERSION_MAJOR = 0
VERSION_MINOR = 5
VERSION_PATCH = 1

# Version of the review document schema returned to agents
REVIEW_SCHEMA_VERSION = "0.4.0"
