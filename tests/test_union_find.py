from linkhaven.similarity.union_find import UnionFind


def test_singletons_are_their_own_root():
    uf = UnionFind()
    assert uf.find("a") == "a"
    assert not uf.connected("a", "b")


def test_union_is_transitive():
    uf = UnionFind()
    uf.union(1, 2)
    uf.union(2, 3)
    uf.union(10, 11)

    assert uf.connected(1, 3)
    assert not uf.connected(1, 10)

    groups = sorted(sorted(members) for members in uf.groups().values())
    assert groups == [[1, 2, 3], [10, 11]]


def test_find_compresses_paths():
    uf = UnionFind()
    for i in range(5):
        uf.union(i, i + 1)
    root = uf.find(0)
    assert all(uf.parent[i] == root for i in range(6))


def test_instances_do_not_share_state():
    first = UnionFind()
    first.union("x", "y")
    second = UnionFind()
    assert not second.connected("x", "y")
