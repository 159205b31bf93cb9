"""Citus Membership Manager (CMM).

Sidecar that keeps a Citus coordinator's worker list in step with Docker:
 - a worker container turning healthy is added with master_add_node
 - a destroyed worker has its placements deleted and is removed with master_remove_node

Only workers labelled com.citusdata.role=Worker in the sidecar's own Compose
project are considered.
"""

__version__ = "0.1.0"
