"""
Membership Indexer - keeps the organization membership index in step with users.

This package consumes DynamoDB stream records for the users table (delivered
in order through an SQS FIFO queue) and maintains a derived index table with
one record per (organization, user) pair:

    ┌─────────────┐     ┌─────────────┐     ┌─────────────────┐
    │ users table │────▶│   Stream    │────▶│  SQS FIFO queue │
    │ (DynamoDB)  │     │   + Pipe    │     │  (+ dead letter)│
    └─────────────┘     └─────────────┘     └────────┬────────┘
                                                     │
                                                     ▼
                                            ┌─────────────────┐
                                            │  lambda_handler │
                                            │ decode→reconcile│
                                            └────────┬────────┘
                                                     │ BatchWriteItem
                                                     ▼
                                            ┌─────────────────┐
                                            │  index table    │
                                            │ ORGANIZATION#o  │
                                            │ MEMBERSHIP#u    │
                                            └─────────────────┘

Invariants:
    - The users table is the source of truth; the index is a derived view
    - An index record for (org, user) exists iff org is in the user's
      organizations list, once all in-flight changes are applied in order
    - Index writes are idempotent (put overwrites, delete of absent is a no-op)
    - The first failure aborts the whole batch; recovery is redelivery

How to change safely:
    - Keep put/delete idempotent; redelivery depends on it
    - Never drop a write silently; raise so the batch is redelivered
    - Test with duplicate and out-of-order redelivery scenarios
"""

from ._version import __version__

__all__ = ["__version__"]
