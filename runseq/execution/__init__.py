"""
Execution layer of runseq.

Contains the coordinator HTTP server, the client used inside
instrumented nodes, stack matching, the runtime engine interface and
the run controller.
"""
