"""
Step timeline module.

Interval model, step lifecycle state machine, conflict detection and entry
aggregation for intervention step ladders. Steps move between INCOMPLETE and
COMPLETED; each move opens or closes one of the step's active periods.
"""
