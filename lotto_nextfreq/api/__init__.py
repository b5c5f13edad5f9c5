"""HTTP glue."""
