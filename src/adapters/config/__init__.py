"""Config handlers — anchored line patches and marker-guarded blocks."""
