"""
Record normalization module.

Converts raw plan, step, period and entry records, as they come out of the
persistence layer, into the immutable timeline models.
"""
