"""Configuration — profile discovery and loading."""
