"""VCS handlers — git clones."""
