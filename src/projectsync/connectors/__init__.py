"""External data source connectors."""
