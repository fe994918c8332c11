"""Persistence — last-run state file and audit ledger."""
