"""Miscellaneous development helpers.

:mod:`debug` holds the ``SENSEFUSE_DEBUG`` switch and the :func:`time_block`
timer wrapped around each flush.
"""
