"""System handlers — packages, services, users and groups."""
