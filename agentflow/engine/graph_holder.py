"""Holder for the live ConversationGraph of one agent."""

import logging

from ..common.schemas import ConversationGraph

logger = logging.getLogger("agentflow.engine.graph_holder")


class GraphHolder:
    """
    Replace-whole reference to an immutable graph.

    Readers take ``holder.current`` once per turn and keep that snapshot;
    replace() is a single reference assignment, so a reader sees either the
    old graph or the new one, never a mix.
    """

    def __init__(self, graph: ConversationGraph):
        graph.validate_integrity()
        self._graph = graph
        self._version = 1

    @property
    def current(self) -> ConversationGraph:
        return self._graph

    def replace(self, graph: ConversationGraph) -> None:
        graph.validate_integrity()
        self._graph = graph
        self._version += 1
        logger.info("Workflow graph replaced (version %d, %d nodes)", self._version, len(graph.nodes))
