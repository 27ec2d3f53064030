"""planpilot command-line interface."""
