"""
Core of runseq.

Contains the event model, the deployment description, the run sequence
compiler, the event coordinator and the instrumentation plan.
"""
