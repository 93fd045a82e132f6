"""branchwatch - multi-branch Claude Code session manager with input alerts."""

__version__ = "0.1.0"
