"""
Shared utilities for the manifest tracker components.

This package contains common functionality used by the API service, the ledger
adapter and storer-side tooling:
- logging_config: consistent logging setup
- accounts: seed to account derivation and account validation
- manifest_client: HTTP client for the manifest API
- storer_sync: background claim and reconcile loop for storer nodes
"""
