"""
loopback_hwmgr

This package is a loopback hardware manager: it simulates a pool of bare metal
nodes and assigns them to the node groups of incoming pool requests.

We keep modules small and well separated:
core contains shared data structures, errors, conditions and retry
inventory contains the catalog and allocation ledger stores
resources contains node, credential and pool request object access
allocation contains free node selection, allocation, release and status projection
adaptor contains the request lifecycle classification and entrypoints
sources contains pool request ingestion for the runner
"""
