"""
Chronii backend package.

Todos, task timers and notes kept in a local store for anonymous use and in
a per-user cloud store once the user signs in, with last-write-wins
synchronization between the two. The HTTP surface lives in ``chronii.api``.
"""

__version__ = "0.1.0"
