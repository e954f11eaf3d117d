"""HTTP ingestion endpoint for uploaded segments."""
