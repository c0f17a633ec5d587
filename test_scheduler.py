from execution.scheduler import execution_order, execution_order_ids
from shared.models import WorkflowEdge, WorkflowGraph, WorkflowNode


def _graph(node_ids: list[str], pairs: list[tuple[str, str]]) -> WorkflowGraph:
    return WorkflowGraph(
        nodes=[WorkflowNode(id=node_id, title=node_id.upper()) for node_id in node_ids],
        edges=[
            WorkflowEdge(id=f"e{idx}", source=source, target=target)
            for idx, (source, target) in enumerate(pairs, start=1)
        ],
    )


def test_dag_order_respects_every_edge():
    pairs = [("a", "c"), ("b", "c"), ("c", "d"), ("a", "e"), ("e", "d")]
    graph = _graph(["d", "c", "e", "b", "a"], pairs)

    order = execution_order_ids(graph)

    assert sorted(order) == ["a", "b", "c", "d", "e"]
    for source, target in pairs:
        assert order.index(source) < order.index(target)


def test_ties_break_by_node_list_order():
    graph = _graph(["x", "y", "z"], [])

    assert execution_order_ids(graph) == ["x", "y", "z"]


def test_linear_chain_order():
    graph = _graph(["node-1", "node-2", "node-3"], [("node-1", "node-2"), ("node-2", "node-3")])

    assert execution_order_ids(graph) == ["node-1", "node-2", "node-3"]


def test_cycle_still_schedules_every_node_once():
    graph = _graph(["A", "B", "C"], [("A", "B"), ("B", "C"), ("C", "A")])

    order = execution_order_ids(graph)

    assert sorted(order) == ["A", "B", "C"]
    assert len(order) == 3


def test_nodes_outside_cycle_keep_dependency_order():
    graph = _graph(
        ["start", "A", "B", "side"],
        [("start", "side"), ("A", "B"), ("B", "A")],
    )

    order = execution_order_ids(graph)

    assert order == ["start", "side", "A", "B"]


def test_self_loop_and_dangling_edges_do_not_drop_nodes():
    graph = _graph(["a", "b"], [("a", "a"), ("ghost", "b"), ("b", "nowhere")])

    order = execution_order(graph)

    assert [node.id for node in order] == ["b", "a"]


def test_empty_graph():
    assert execution_order(WorkflowGraph()) == []
