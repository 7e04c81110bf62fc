"""syndex command-line interface."""
