"""Console logging setup and JSON Lines error log."""
