"""Tests for CLUSTER NODES parsing and the snapshot/report types."""

from reconciler.models import (
    ADDRESS_MISMATCH, LINK_CONNECTED, LINK_FAIL, LINK_HANDSHAKE, LINK_OTHER, MISSING, UNREACHABLE,
    CheckReport, Discrepancy, MembershipSnapshot, NodeEntry, parse_cluster_nodes, parse_node_line,
)

SAMPLE = """\
07c37dfeb235213a872192d90877d0cd55635b91 10.0.0.1:6379@16379 myself,master - 0 1426238317239 1 connected 0-5460
67ed2db8d677e59ec4a4cefb06858cf2a1a89fa1 10.0.0.2:6379@16379,redis-cluster-1 master - 0 1426238316232 2 connected 5461-10922
292f8b365bb7edb5e285caf0b7e6ddc7265d2f4f 10.0.0.3:6379@16379 master,fail - 1426238316232 1426238316232 3 disconnected 10923-16383
6ec23923021cf3ffec47632106199cb7f496ce01 10.0.0.4:6379@16379 handshake - 0 0 0 connected
824fe116063bc5fcf9f4ffd895bc17aee7731ac3 10.0.0.5:6379@16379 slave 67ed2db8d677e59ec4a4cefb06858cf2a1a89fa1 0 1426238317741 2 disconnected

"""


def test_parse_fields():
    snapshot = parse_cluster_nodes(SAMPLE)

    assert len(snapshot) == 5
    me = snapshot.get("07c37dfeb235213a872192d90877d0cd55635b91")
    assert me.address == "10.0.0.1"
    assert me.port == 6379
    assert me.is_myself and me.is_master
    assert me.link_state == LINK_CONNECTED


def test_hostname_suffix_is_dropped():
    entry = snapshot_entry("67ed2db8d677e59ec4a4cefb06858cf2a1a89fa1")
    assert entry.address == "10.0.0.2"


def test_link_states():
    assert snapshot_entry("292f8b365bb7edb5e285caf0b7e6ddc7265d2f4f").link_state == LINK_FAIL
    assert snapshot_entry("6ec23923021cf3ffec47632106199cb7f496ce01").link_state == LINK_HANDSHAKE
    # "disconnected" contains "connected" but must not count as connected
    replica = snapshot_entry("824fe116063bc5fcf9f4ffd895bc17aee7731ac3")
    assert replica.link_state == LINK_OTHER
    assert replica.is_replica


def test_pfail_counts_as_fail():
    entry = parse_node_line("abc 10.0.0.7:6379@16379 master,fail? - 0 0 1 connected")
    assert entry.link_state == LINK_FAIL


def test_short_and_blank_lines_are_skipped():
    snapshot = parse_cluster_nodes("\n\ngarbage\nabc 10.0.0.1:6379@16379 master - 0 0 1 connected\n")
    assert snapshot.node_ids() == ["abc"]


def test_noaddr_node_has_empty_address():
    entry = parse_node_line("abc :0@0 master,noaddr - 0 0 1 disconnected")
    assert entry.address == ""
    assert entry.port == 0


def test_duplicate_node_id_keeps_first_row():
    snapshot = MembershipSnapshot([
        NodeEntry("a", "10.0.0.1", ["master"], LINK_CONNECTED),
        NodeEntry("a", "10.0.0.9", ["master"], LINK_CONNECTED),
    ])
    assert len(snapshot) == 1
    assert snapshot.get("a").address == "10.0.0.1"


def test_count_link_state_and_sorting():
    snapshot = parse_cluster_nodes(SAMPLE)
    assert snapshot.count_link_state(LINK_CONNECTED) == 2
    assert snapshot.count_link_state(LINK_FAIL, LINK_HANDSHAKE) == 2

    snapshot = MembershipSnapshot([
        NodeEntry("a", "10.0.0.10", [], LINK_CONNECTED),
        NodeEntry("b", "10.0.0.9", [], LINK_CONNECTED),
    ])
    assert [e.node_id for e in snapshot.sorted_by_address()] == ["b", "a"]


def test_report_health_and_grouping():
    report = CheckReport("AFTER", reference_count=3)
    assert report.healthy

    report.discrepancies.extend([
        Discrepancy("redis-cluster-1", "n2", MISSING, expected_address="10.0.0.3"),
        Discrepancy("redis-cluster-1", "n3", ADDRESS_MISMATCH, "10.0.0.4", "10.0.0.8"),
        Discrepancy("redis-cluster-2", None, UNREACHABLE),
    ])
    assert not report.healthy
    assert report.inconsistent_peers() == ["redis-cluster-1"]
    assert report.unreachable_peers == ["redis-cluster-2"]
    assert len(report.for_peer("redis-cluster-1")) == 2


def snapshot_entry(node_id):
    return parse_cluster_nodes(SAMPLE).get(node_id)
