"""
Manifest Tracker: storage manifests and replication across pools

The tracker is the authority for manifest state held in the ledger.
Responsibilities:
- Manifest upload and removal, single and batched
- Replication slot matching for storer nodes
- Proof-of-activity accounting per storer
- Claim verification and availability queries
"""
