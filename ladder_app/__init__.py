"""
Ladder App - Step-Period Timeline Engine

Tracks the periods during which each step of an intervention plan
("step ladder") was active, rejects overlapping step intervals, and assigns
timestamped tool entries to the step they belong to.
"""

__version__ = "0.1.0"
__author__ = "Ladder Team"
