"""Configuration, calendar and error primitives."""
