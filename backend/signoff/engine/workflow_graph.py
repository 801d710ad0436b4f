"""Workflow Graph - Node and connection lookups over a workflow definition"""
from typing import Dict, List, Optional

from ..domain.models import WorkflowDefinition, WorkflowNode, WorkflowConnection
from ..domain.enums import NodeType
from ..domain.errors import WorkflowConfigurationError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class WorkflowGraph:
    """
    Read-only view of a workflow definition

    Given a node N:
    1. Outgoing connections are those with from_node_id=N, in declaration order
    2. Connections whose target does not exist are ignored
    3. When several connections qualify, the first declared one is taken
    """

    def __init__(self, definition: WorkflowDefinition):
        self.definition = definition
        self._nodes: Dict[str, WorkflowNode] = {}
        for node in definition.nodes:
            # First declaration wins on duplicate IDs
            self._nodes.setdefault(node.node_id, node)

    @property
    def workflow_id(self) -> str:
        return self.definition.workflow_id

    def get_node(self, node_id: Optional[str]) -> Optional[WorkflowNode]:
        """Find node by ID"""
        if node_id is None:
            return None
        return self._nodes.get(node_id)

    def get_start_node(self) -> WorkflowNode:
        """
        Get the unique start node

        Raises:
            WorkflowConfigurationError: If there is no start node or more than one
        """
        starts = [n for n in self.definition.nodes if n.type == NodeType.START]
        if not starts:
            raise WorkflowConfigurationError(
                "Workflow has no start node",
                details={"workflow_id": self.workflow_id}
            )
        if len(starts) > 1:
            raise WorkflowConfigurationError(
                "Workflow has more than one start node",
                details={
                    "workflow_id": self.workflow_id,
                    "start_node_ids": [n.node_id for n in starts]
                }
            )
        return starts[0]

    def get_outgoing_connections(
        self,
        node_id: str,
        from_point: Optional[str] = None
    ) -> List[WorkflowConnection]:
        """Outgoing connections of a node, optionally restricted to one socket"""
        return [
            c for c in self.definition.connections
            if c.from_node_id == node_id and (from_point is None or c.from_point == from_point)
        ]

    def get_next_nodes(self, node_id: str, from_point: Optional[str] = None) -> List[WorkflowNode]:
        """Resolved target nodes of a node's outgoing connections"""
        nodes = []
        for connection in self.get_outgoing_connections(node_id, from_point):
            target = self.get_node(connection.to_node_id)
            if target is not None:
                nodes.append(target)
        return nodes

    def resolve_next_node(self, node_id: str, from_point: Optional[str] = None) -> WorkflowNode:
        """
        Resolve the single node that follows node_id

        Args:
            node_id: Source node
            from_point: Output socket to follow, or None for any socket

        Raises:
            WorkflowConfigurationError: If no outgoing connection resolves
        """
        candidates = self.get_next_nodes(node_id, from_point)
        if not candidates:
            raise WorkflowConfigurationError(
                f"No outgoing connection from node {node_id}"
                + (f" on socket {from_point}" if from_point else ""),
                details={
                    "workflow_id": self.workflow_id,
                    "node_id": node_id,
                    "from_point": from_point
                }
            )

        if len(candidates) > 1:
            logger.warning(
                f"Node {node_id} has {len(candidates)} candidate connections, taking the first",
                extra={"workflow_id": self.workflow_id, "node_id": node_id}
            )

        return candidates[0]
