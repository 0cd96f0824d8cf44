"""Version information for the project sync engine.

Single source of truth for version number.
"""

__version__ = "1.3.0"
__version_info__ = tuple(int(part) for part in __version__.split("."))

# Version history:
# 1.3.0 - Qdrant record store, pushgateway metrics, webhook failure alerts
# 1.2.0 - README enrichment with relative image rewriting
# 1.1.0 - Contributor counts, override-aware custom fields
# 1.0.0 - Initial release (GitHub repository metadata sync)
