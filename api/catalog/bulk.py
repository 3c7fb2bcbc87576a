"""
Bulk reference resolver.

A bulk batch is an ordered list of catalog objects that point at each other
through aliases instead of durable ids. Each document is known by its explicit
alias (`id`) or, failing that, by its positional alias `#<index>-index`.

Flow:
1) Parse every reference into `Alias` or a durable `UUID`
2) Reject aliases nobody defines and parents that are not items
3) Topologically sort the alias graph (input order breaks ties, cycles fail)
4) Create records one by one, rewriting aliases to the ids assigned so far

Each record is its own unit of work: a failure stops the batch but records
created before it stay committed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Sequence, Union
from uuid import UUID

import networkx as nx
from pydantic import BaseModel, TypeAdapter, ValidationError

from .errors import BulkReferenceCycle, BulkReferenceNotExist, CatalogBadRequest
from .models import (
    CatalogKind,
    CatalogObject,
    CatalogObjectBulkDocument,
    CatalogObjectDocument,
    ControlEntry,
    ItemEntry,
    MatrixControl,
    kind_of,
)

logger = logging.getLogger(__name__)

_catalog_object = TypeAdapter(CatalogObject)

CreateFn = Callable[[str, CatalogObject], Awaitable[CatalogObjectDocument]]


@dataclass(frozen=True)
class Alias:
    name: str


Ref = Union[Alias, UUID]


def positional_alias(index: int) -> str:
    return f"#{index}-index"


@dataclass
class BulkNode:
    index: int
    alias: str
    entry: BaseModel
    parent: Ref | None = None
    combinations: dict[str, Ref] = field(default_factory=dict)
    depends_on: set[int] = field(default_factory=set)

    @property
    def kind(self) -> CatalogKind:
        return kind_of(self.entry)


def parse_ref(raw: str, defined: dict[str, int]) -> Ref:
    """
    Batch aliases win; otherwise a UUID string is a durable id; anything else
    is an alias that will fail to resolve.
    """
    if raw in defined:
        return Alias(raw)
    try:
        return UUID(raw)
    except ValueError:
        return Alias(raw)


def _defined_aliases(documents: Sequence[CatalogObjectBulkDocument]) -> dict[str, int]:
    # A repeated alias shadows the earlier definition.
    defined: dict[str, int] = {}
    for index, document in enumerate(documents):
        defined[document.id if document.id is not None else positional_alias(index)] = index
    return defined


def _alias_target(ref: Ref, defined: dict[str, int]) -> int | None:
    if not isinstance(ref, Alias):
        return None
    if ref.name not in defined:
        raise BulkReferenceNotExist(ref.name)
    return defined[ref.name]


def _build_nodes(documents: Sequence[CatalogObjectBulkDocument]) -> list[BulkNode]:
    defined = _defined_aliases(documents)
    nodes: list[BulkNode] = []

    for index, document in enumerate(documents):
        entry = document.catalog_object
        node = BulkNode(
            index=index,
            alias=document.id if document.id is not None else positional_alias(index),
            entry=entry,
        )

        if not isinstance(entry, ItemEntry):
            node.parent = parse_ref(entry.data.item_id, defined)
            target = _alias_target(node.parent, defined)
            if target is not None:
                node.depends_on.add(target)

        if isinstance(entry, ControlEntry) and isinstance(entry.data.control, MatrixControl):
            for key, raw in entry.data.control.data.combinations.items():
                ref = parse_ref(raw, defined)
                node.combinations[key] = ref
                target = _alias_target(ref, defined)
                if target is not None:
                    node.depends_on.add(target)

        nodes.append(node)

    for node in nodes:
        if isinstance(node.parent, Alias):
            parent_node = nodes[defined[node.parent.name]]
            if parent_node.kind is not CatalogKind.ITEM:
                raise CatalogBadRequest(
                    f"{node.alias} references {node.parent.name}, which is a {parent_node.kind.value}, not an Item."
                )

    return nodes


def dependency_graph(nodes: Sequence[BulkNode]) -> nx.DiGraph:
    """
    Node indices, with an edge from each referenced node to the node that references it.
    """
    graph = nx.DiGraph()
    graph.add_nodes_from(node.index for node in nodes)
    for node in nodes:
        graph.add_edges_from((target, node.index) for target in node.depends_on)
    return graph


def plan(documents: Sequence[CatalogObjectBulkDocument]) -> list[BulkNode]:
    """
    Creation order for a bulk batch: every node comes after the nodes it references.
    Independent nodes keep their input order.
    """
    nodes = _build_nodes(documents)
    graph = dependency_graph(nodes)

    try:
        order = list(nx.lexicographical_topological_sort(graph))
    except nx.NetworkXUnfeasible as exc:
        cycle = sorted({source for source, _ in nx.find_cycle(graph)})
        raise BulkReferenceCycle([nodes[index].alias for index in cycle]) from exc

    return [nodes[index] for index in order]


def _resolve_ref(ref: Ref, defined: dict[str, int], assigned: dict[int, UUID]) -> str:
    if not isinstance(ref, Alias):
        return str(ref)
    index = defined.get(ref.name)
    if index is None or index not in assigned:
        raise BulkReferenceNotExist(ref.name)
    return str(assigned[index])


def resolve(node: BulkNode, defined: dict[str, int], assigned: dict[int, UUID]) -> CatalogObject:
    """
    Rewrite the aliases carried by `node` to durable ids already assigned.
    """
    raw: dict[str, Any] = node.entry.model_dump(mode="json")
    if node.parent is not None:
        raw["data"]["item_id"] = _resolve_ref(node.parent, defined, assigned)
    if node.combinations:
        raw["data"]["control"]["data"]["combinations"] = {
            key: _resolve_ref(ref, defined, assigned) for key, ref in node.combinations.items()
        }
    try:
        return _catalog_object.validate_python(raw)
    except ValidationError as exc:
        raise CatalogBadRequest(f"{node.alias} could not be resolved: {exc.error_count()} invalid field(s).") from exc


async def bulk_create(
    create: CreateFn,
    owner: str,
    documents: Sequence[CatalogObjectBulkDocument],
) -> list[CatalogObjectDocument]:
    """
    Create a batch in dependency order through the single-record `create` path.

    Returns documents in processing order, which may differ from input order.
    """
    ordered = plan(documents)
    defined = _defined_aliases(documents)
    assigned: dict[int, UUID] = {}
    created: list[CatalogObjectDocument] = []

    logger.info("bulk_create_started owner=%s size=%s", owner, len(documents))
    for node in ordered:
        try:
            catalog_object = resolve(node, defined, assigned)
            document = await create(owner, catalog_object)
        except Exception:
            logger.warning(
                "bulk_create_stopped owner=%s alias=%s created=%s remaining=%s",
                owner,
                node.alias,
                len(created),
                len(ordered) - len(created),
            )
            raise
        assigned[node.index] = document.id
        created.append(document)

    logger.info("bulk_create_complete owner=%s created=%s", owner, len(created))
    return created
