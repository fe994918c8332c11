"""Services — fact probe, package managers and the config patcher."""
