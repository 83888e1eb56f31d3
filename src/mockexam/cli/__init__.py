"""Command line interface for the mock exam pipeline."""
