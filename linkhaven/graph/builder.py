"""
Knowledge graph construction.

Nodes:
- record: one per record            id "record:<record id>"
- source: one per distinct domain   id "source:<domain>"
- tag:    one per distinct tag      id "tag:<tag>"

Edges:
- same_source       record -> source, once per record with a parseable URL
- has_tag           record -> tag, once per (record, tag)
- tag_cooccurrence  tag -> tag, once per unordered pair, weight = number of
                    records carrying both tags
- content_similarity record -> record, added by add_similarity_edges()
"""

from itertools import combinations
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from ..core.models import EdgeKind, GraphEdge, GraphNode, KnowledgeGraph, NodeKind, Record
from ..similarity.lsh import distance_to_similarity, hamming_distance
from ..similarity.simhash import fingerprint
from ..similarity.text import extract_domain

RECORD_NODE_SIZE = 8.0
MIN_HUB_SIZE = 8.0
MAX_HUB_SIZE = 20.0
# Hamming distance <= 10 ~ 85% similar
SIMILARITY_THRESHOLD = 10


def record_node_id(record_id: str) -> str:
    return f"record:{record_id}"


def tag_node_id(tag: str) -> str:
    return f"tag:{tag}"


def source_node_id(domain: str) -> str:
    return f"source:{domain}"


def build_graph(records: Sequence[Record]) -> KnowledgeGraph:
    nodes: List[GraphNode] = []
    edges: List[GraphEdge] = []
    node_map: Dict[str, GraphNode] = {}
    cooccurrence: Dict[Tuple[str, str], int] = {}

    def _ensure(node_id: str, kind: NodeKind, label: str) -> None:
        if node_id not in node_map:
            node = GraphNode(id=node_id, kind=kind, label=label, size=MIN_HUB_SIZE)
            nodes.append(node)
            node_map[node_id] = node

    for record in records:
        rid = record_node_id(record.id)
        node = GraphNode(
            id=rid,
            kind=NodeKind.RECORD,
            label=record.title or record.url or record.id,
            size=RECORD_NODE_SIZE,
        )
        nodes.append(node)
        node_map[rid] = node

        domain = extract_domain(record.url)
        if domain:
            sid = source_node_id(domain)
            _ensure(sid, NodeKind.SOURCE, domain)
            edges.append(GraphEdge(source=rid, target=sid, weight=1, kind=EdgeKind.SAME_SOURCE))

        for tag in record.tags:
            tid = tag_node_id(tag)
            _ensure(tid, NodeKind.TAG, f"#{tag}")
            edges.append(GraphEdge(source=rid, target=tid, weight=1, kind=EdgeKind.HAS_TAG))

        for a, b in combinations(sorted(record.tags), 2):
            cooccurrence[(a, b)] = cooccurrence.get((a, b), 0) + 1

    for (a, b), count in cooccurrence.items():
        edges.append(GraphEdge(
            source=tag_node_id(a),
            target=tag_node_id(b),
            weight=count,
            kind=EdgeKind.TAG_COOCCURRENCE,
        ))

    connections: Dict[str, int] = {}
    for edge in edges:
        connections[edge.source] = connections.get(edge.source, 0) + 1
        connections[edge.target] = connections.get(edge.target, 0) + 1

    for node in nodes:
        if node.kind in (NodeKind.TAG, NodeKind.SOURCE):
            node.size = min(MAX_HUB_SIZE, MIN_HUB_SIZE + 2 * connections.get(node.id, 0))

    logger.debug(f"Graph: {len(records)} records -> {len(nodes)} nodes, {len(edges)} edges")
    return KnowledgeGraph(nodes=nodes, edges=edges)


def _composite_text(record: Record, contents: Optional[Mapping[str, str]]) -> str:
    parts = [record.title or "", record.description or "", *record.tags]
    extra = contents.get(record.id) if contents else None
    if extra is None:
        extra = record.content
    if extra:
        parts.append(extra)
    return " ".join(parts)


def add_similarity_edges(
    graph: KnowledgeGraph,
    records: Sequence[Record],
    threshold: int = SIMILARITY_THRESHOLD,
    contents: Optional[Mapping[str, str]] = None,
) -> KnowledgeGraph:
    """Return a copy of ``graph`` with content_similarity edges between records.

    Every pair of record nodes is compared (O(N^2) fingerprint comparisons,
    each O(1)). Edge weight is similarity / 50, i.e. in [0, 2].
    Records whose text has no tokens get no similarity edges.
    """
    record_nodes = {n.id for n in graph.nodes if n.kind == NodeKind.RECORD}
    if len(record_nodes) < 2:
        return graph

    hashes = {}
    for record in records:
        if record_node_id(record.id) not in record_nodes:
            continue
        fp = fingerprint(_composite_text(record, contents))
        # zero means no tokens, not identical content
        if not fp.is_zero:
            hashes[record.id] = fp

    new_edges = list(graph.edges)
    added = 0
    for (id1, h1), (id2, h2) in combinations(hashes.items(), 2):
        distance = hamming_distance(h1, h2)
        if distance > threshold:
            continue
        similarity = distance_to_similarity(distance)
        if similarity <= 0:
            continue
        new_edges.append(GraphEdge(
            source=record_node_id(id1),
            target=record_node_id(id2),
            weight=similarity / 50,
            kind=EdgeKind.CONTENT_SIMILARITY,
        ))
        added += 1

    logger.debug(f"Similarity edges: {len(hashes)} fingerprints, {added} edges <= {threshold}")
    return KnowledgeGraph(nodes=list(graph.nodes), edges=new_edges)


def build_enhanced_graph(
    records: Sequence[Record],
    contents: Optional[Mapping[str, str]] = None,
    threshold: int = SIMILARITY_THRESHOLD,
) -> KnowledgeGraph:
    return add_similarity_edges(build_graph(records), records, threshold, contents)


def find_orphans(graph: KnowledgeGraph) -> List[GraphNode]:
    """Record nodes without any tag."""
    tagged = {e.source for e in graph.edges if e.kind == EdgeKind.HAS_TAG}
    return [n for n in graph.nodes if n.kind == NodeKind.RECORD and n.id not in tagged]


def find_bridges(graph: KnowledgeGraph, min_neighbours: int = 3) -> List[GraphNode]:
    """Tags co-occurring with at least ``min_neighbours`` distinct other tags."""
    neighbours: Dict[str, set] = {}
    for edge in graph.edges:
        if edge.kind != EdgeKind.TAG_COOCCURRENCE:
            continue
        neighbours.setdefault(edge.source, set()).add(edge.target)
        neighbours.setdefault(edge.target, set()).add(edge.source)

    return [
        n for n in graph.nodes
        if n.kind == NodeKind.TAG and len(neighbours.get(n.id, ())) >= min_neighbours
    ]


def filter_graph(
    graph: KnowledgeGraph,
    kinds: Optional[Iterable[NodeKind]] = None,
    query: Optional[str] = None,
) -> KnowledgeGraph:
    nodes = list(graph.nodes)
    if kinds is not None:
        allowed = {NodeKind(k) for k in kinds}
        nodes = [n for n in nodes if n.kind in allowed]
    if query and query.strip():
        needle = query.strip().lower()
        nodes = [n for n in nodes if needle in n.label.lower()]

    keep = {n.id for n in nodes}
    edges = [e for e in graph.edges if e.source in keep and e.target in keep]
    return KnowledgeGraph(nodes=nodes, edges=edges)


def graph_stats(graph: KnowledgeGraph) -> Dict[str, Dict[str, int]]:
    node_counts: Dict[str, int] = {}
    for node in graph.nodes:
        node_counts[node.kind.value] = node_counts.get(node.kind.value, 0) + 1
    edge_counts: Dict[str, int] = {}
    for edge in graph.edges:
        edge_counts[edge.kind.value] = edge_counts.get(edge.kind.value, 0) + 1
    return {"nodes": node_counts, "edges": edge_counts}
