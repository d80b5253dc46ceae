"""History services: the local ledger, its remote mirror and reconciliation."""
