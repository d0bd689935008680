"""configs - Paths, logging setup and pydantic description models."""
