"""examvault command-line interface."""
