"""DuckDB persistence: market snapshots, trade log, simulation runs."""
