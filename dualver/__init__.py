"""
dualver — Semantic-version bookkeeping hooks for two sibling folders.

Reconciles the ``version`` field of each folder's metadata file on every
commit, derives a composite build tag from the pair, and publishes that
tag to the remote on deployment commits.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("dualver")
except PackageNotFoundError:  # running from an uninstalled checkout
    __version__ = "0.0.0"
