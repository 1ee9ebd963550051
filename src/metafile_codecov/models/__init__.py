"""Pydantic models for the bundler metafile input and the Codecov payload."""
