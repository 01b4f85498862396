"""Manifest engines: lifecycle, replication matching, accounting and queries."""
