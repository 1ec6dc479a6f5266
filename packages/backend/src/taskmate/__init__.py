"""Taskmate — multi-user task tracker.

Users sign up with a password or Google, then create, assign, filter
and complete tasks. Assignees get an email when a task lands on them.
"""

__version__ = "0.1.0"
