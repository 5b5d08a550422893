"""
Conversation Graph Schema

A small directed workflow of nodes. Each node carries an opaque instruction
payload, an optional successor, and a behaviour descriptor that tells the
engine what to do at that step (which context key to fill, whether to
retrieve knowledge, which function calls are permitted, whether to call the
generation backend at all).
"""

from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from ..errors import GraphIntegrityError


class Node(BaseModel):
    """One step in the conversation workflow"""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default="", description="Node id (filled from the graph key)")
    instructions: str = Field(
        default="",
        validation_alias=AliasChoices("instructions", "description"),
        description="Instruction payload for the agent at this step (not parsed)",
    )
    next: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("next", "nextNode", "next_node"),
        description="Successor node id; absent means terminal",
    )

    # Behaviour descriptor
    collect: Optional[str] = Field(
        default=None, description="Context key that receives this turn's user input"
    )
    retrieve: bool = Field(default=True, description="Run knowledge retrieval at this node")
    functions: Optional[List[str]] = Field(
        default=None, description="Permitted function calls (None = all registered)"
    )
    generate: bool = Field(default=True, description="Call the generation backend")
    reply: Optional[str] = Field(
        default=None, description="Static reply template used when generate is False"
    )

    @property
    def is_terminal(self) -> bool:
        return self.next is None

    def permits(self, function_name: str) -> bool:
        """Check whether a function call is allowed at this node"""
        return self.functions is None or function_name in self.functions


class ConversationGraph(BaseModel):
    """
    Static workflow definition.

    Invariants (checked on construction):
    - start_node exists in nodes
    - every next reference names an existing node (or is absent)
    """
    model_config = ConfigDict(populate_by_name=True)

    start_node: str = Field(validation_alias=AliasChoices("start_node", "startNode"))
    nodes: Dict[str, Node]

    @model_validator(mode="before")
    @classmethod
    def _fill_node_ids(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        nodes = data.get("nodes")
        if isinstance(nodes, dict):
            filled = {}
            for key, node in nodes.items():
                if isinstance(node, dict):
                    node = dict(node)
                    if node.get("id") and node["id"] != key:
                        raise ValueError(f"Node id {node['id']!r} does not match its key {key!r}")
                    node["id"] = key
                elif isinstance(node, Node):
                    node = node.model_copy(update={"id": key})
                filled[key] = node
            data = {**data, "nodes": filled}
        return data

    @model_validator(mode="after")
    def _check_references(self) -> "ConversationGraph":
        problems = self.integrity_problems()
        if problems:
            raise ValueError("; ".join(problems))
        return self

    def integrity_problems(self) -> List[str]:
        """List every dangling reference in the graph"""
        problems = []
        if self.start_node not in self.nodes:
            problems.append(f"start node {self.start_node!r} is not defined")
        for node_id, node in self.nodes.items():
            if node.next is not None and node.next not in self.nodes:
                problems.append(f"node {node_id!r} points to unknown node {node.next!r}")
        return problems

    def validate_integrity(self) -> None:
        """Raise GraphIntegrityError if the graph has dangling references"""
        problems = self.integrity_problems()
        if problems:
            raise GraphIntegrityError("; ".join(problems))

    def get_node(self, node_id: str) -> Node:
        """
        Resolve a node by id.

        Raises:
            GraphIntegrityError: If the node does not exist
        """
        node = self.nodes.get(node_id)
        if node is None:
            raise GraphIntegrityError(f"Invalid workflow step: {node_id}", node_id=node_id)
        return node

    def walk(self, steps: int) -> Optional[str]:
        """Follow next pointers from the start node; None once past a terminal node"""
        node_id: Optional[str] = self.start_node
        for _ in range(steps):
            if node_id is None:
                return None
            node_id = self.nodes[node_id].next
        return node_id

    @classmethod
    def from_workflow(cls, workflow: List[Dict[str, Any]]) -> "ConversationGraph":
        """
        Build a graph from the list form: [{"id", "description", "nextNode"}, ...].

        The first item is the start node.
        """
        if not workflow:
            raise ValueError("Workflow must contain at least one node")

        nodes = {}
        for item in workflow:
            if not isinstance(item, dict):
                raise ValueError("Every workflow node must be an object")
            node_id = item.get("id")
            if not node_id:
                raise ValueError("Every workflow node needs an id")
            if node_id in nodes:
                raise ValueError(f"Duplicate workflow node id: {node_id}")
            nodes[node_id] = item

        return cls(start_node=workflow[0]["id"], nodes=nodes)
