"""Runtime wiring and command-line entry point."""
