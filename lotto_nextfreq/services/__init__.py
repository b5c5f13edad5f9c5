"""Service layer between the HTTP glue and the analysis core."""
