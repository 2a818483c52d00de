"""Pydantic schemas for workflow graphs and flows."""

from datetime import datetime, timedelta
from typing import Annotated, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from leadflow.db.enums import FlowStatus, WorkflowNodeType


# =============================================================================
# Graph Model
# =============================================================================
# Nodes and edges come from the visual builder. Attributes the engine does not
# use (position, size, selection state, ...) are kept so the graph round-trips.


class LeadSourceNodeData(BaseModel):
    """Payload of a lead source node."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    lead_source_id: str | None = Field(default=None, alias="leadSourceId")


class WaitNodeData(BaseModel):
    """Payload of a wait node: the delay it adds to every path through it."""

    model_config = ConfigDict(extra="allow")

    days: int = Field(default=0, ge=0)
    hours: int = Field(default=0, ge=0)
    minutes: int = Field(default=0, ge=0)

    @field_validator("days", "hours", "minutes", mode="before")
    @classmethod
    def unset_amount_is_zero(cls, value: object) -> object:
        # Untouched builder inputs arrive as null, "" or free text
        if value is None:
            return 0
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                return 0
        return value

    @model_validator(mode="before")
    @classmethod
    def flatten_nested_delay(cls, data: object) -> object:
        # Older builder versions nested the amounts under "delay"
        if isinstance(data, dict) and isinstance(data.get("delay"), dict):
            merged = {k: v for k, v in data.items() if k != "delay"}
            for key, value in data["delay"].items():
                merged.setdefault(key, value)
            return merged
        return data

    @property
    def delay(self) -> timedelta:
        return timedelta(days=self.days, hours=self.hours, minutes=self.minutes)


class ColdEmailNodeData(BaseModel):
    """Payload of a cold email node."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    email_template_id: str | None = Field(default=None, alias="emailTemplateId")


class _NodeBase(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1)


class LeadSourceNode(_NodeBase):
    type: Literal["leadSource"]
    data: LeadSourceNodeData = Field(default_factory=LeadSourceNodeData)


class WaitNode(_NodeBase):
    type: Literal["wait"]
    data: WaitNodeData = Field(default_factory=WaitNodeData)


class ColdEmailNode(_NodeBase):
    type: Literal["coldEmail"]
    data: ColdEmailNodeData = Field(default_factory=ColdEmailNodeData)


WorkflowNode = Annotated[
    Union[LeadSourceNode, WaitNode, ColdEmailNode],
    Field(discriminator="type"),
]


class WorkflowEdge(BaseModel):
    """Directed connection between two nodes."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    source: str = Field(..., min_length=1)
    target: str = Field(..., min_length=1)


class WorkflowGraph(BaseModel):
    """Ordered nodes and edges of a workflow."""

    nodes: list[WorkflowNode] = Field(default_factory=list)
    edges: list[WorkflowEdge] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_unique_node_ids(self) -> "WorkflowGraph":
        seen: set[str] = set()
        for node in self.nodes:
            if node.id in seen:
                raise ValueError(f"Duplicate node id '{node.id}'")
            seen.add(node.id)
        return self

    def nodes_of(self, node_type: WorkflowNodeType) -> list:
        """Nodes of one kind, in graph order."""
        return [n for n in self.nodes if n.type == node_type.value]

    def node_by_id(self) -> dict[str, WorkflowNode]:
        return {n.id: n for n in self.nodes}

    def adjacency(self) -> dict[str, list[str]]:
        """Outgoing targets per node id, in edge order."""
        adjacency: dict[str, list[str]] = {n.id: [] for n in self.nodes}
        for edge in self.edges:
            adjacency.setdefault(edge.source, []).append(edge.target)
        return adjacency

    def to_storage(self) -> tuple[list[dict], list[dict]]:
        """Serialize nodes/edges for the flows table (builder field names)."""
        nodes = [n.model_dump(mode="json", by_alias=True) for n in self.nodes]
        edges = [e.model_dump(mode="json", by_alias=True, exclude_none=True) for e in self.edges]
        return nodes, edges

    @classmethod
    def from_storage(cls, nodes: list[dict] | None, edges: list[dict] | None) -> "WorkflowGraph":
        return cls.model_validate({"nodes": nodes or [], "edges": edges or []})


# =============================================================================
# Flow CRUD
# =============================================================================


class FlowCreate(WorkflowGraph):
    """Save a new flow."""

    name: str = Field(..., min_length=1, max_length=200)

    def graph(self) -> WorkflowGraph:
        return WorkflowGraph(nodes=self.nodes, edges=self.edges)


class FlowUpdate(BaseModel):
    """Update a flow. Omitted fields keep their stored value."""

    name: str | None = Field(None, min_length=1, max_length=200)
    nodes: list[WorkflowNode] | None = None
    edges: list[WorkflowEdge] | None = None

    @model_validator(mode="after")
    def check_unique_node_ids(self) -> "FlowUpdate":
        if self.nodes is not None:
            ids = [n.id for n in self.nodes]
            if len(ids) != len(set(ids)):
                raise ValueError("Duplicate node id")
        return self


class FlowRead(BaseModel):
    """Flow response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    name: str
    nodes: list[dict]
    edges: list[dict]
    status: FlowStatus
    created_at: datetime
    updated_at: datetime


class FlowListItem(BaseModel):
    """Flow list item (minimal)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    status: FlowStatus
    created_at: datetime
    updated_at: datetime


# =============================================================================
# Scheduling results
# =============================================================================


class SchedulingAnomalyRead(BaseModel):
    kind: str
    message: str
    source_node_id: str | None = None
    email_node_id: str | None = None


class ScheduleSummary(BaseModel):
    """Outcome of a scheduling pass (partial success is reported, not hidden)."""

    scheduled: int
    anomalies: list[SchedulingAnomalyRead] = Field(default_factory=list)


class FlowActionResponse(BaseModel):
    """Response for save/update/start actions."""

    flow: FlowRead
    schedule: ScheduleSummary | None = None
