"""AI initiative portfolio engine: ROI metrics, selection, roadmap and canvas."""

__version__ = "0.1.0"
