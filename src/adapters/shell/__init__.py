"""Shell handlers — command runner, guarded commands, files."""
