"""Update auditing — human-gated migration of trust records to new upstream content.

A scan finds trust records whose upstream immutable identity has moved and
queues them; draining the queue shows each diff to an ``Approver`` and
rewrites the record either with the new digest or with the AUDIT-FAILED
sentinel.
"""
