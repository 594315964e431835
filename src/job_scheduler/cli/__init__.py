"""Command line entry point and console commands."""
