"""Juicebox subgraph integration components."""

from juicebox_notifier.subgraph.source import SubgraphEventSource

__all__ = ["SubgraphEventSource"]
