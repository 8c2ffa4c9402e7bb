"""
runseq: deterministic run sequences for distributed system tests.

Compiles a run-sequence expression over named events into a dependency
graph, tracks event receipts in a central coordinator, and enforces the
resulting order inside instrumented processes and around environment
faults (node restarts, partitions, clock drift).
"""

__version__ = "0.1.0"
