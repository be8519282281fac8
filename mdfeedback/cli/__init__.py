"""md-feedback command-line interface."""
