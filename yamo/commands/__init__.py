"""CLI command implementations (each run_* returns an exit code)."""
