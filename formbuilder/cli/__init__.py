"""Command-line interface for the formbuilder schema guard and query tooling."""
