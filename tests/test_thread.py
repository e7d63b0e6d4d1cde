import pytest

from notmuch_mail.exceptions import ParseError
from notmuch_mail.index.thread import Thread


@pytest.fixture
def nested_thread(message_json):
    # m1
    # ├── m2
    # │   └── m3
    # └── m4
    return [
        [
            [
                message_json("m1"),
                [
                    [message_json("m2"), [[message_json("m3"), []]]],
                    [message_json("m4"), []],
                ],
            ]
        ]
    ]


class TestThread:
    def test_preorder_flat_view(self, nested_thread):
        thread = Thread.from_json(nested_thread)
        assert [m.id for m in thread] == ["m1", "m2", "m3", "m4"]
        assert len(thread) == 4

    def test_parents_and_children(self, nested_thread):
        thread = Thread.from_json(nested_thread)
        assert thread.parents == [None, 0, 1, 0]
        assert thread.roots() == [0]
        assert thread.children(0) == [1, 3]
        assert thread.children(1) == [2]
        assert thread.children(3) == []

    def test_depth(self, nested_thread):
        thread = Thread.from_json(nested_thread)
        assert [thread.depth(i) for i in range(len(thread))] == [0, 1, 2, 1]

    def test_tree_view(self, nested_thread):
        thread = Thread.from_json(nested_thread)
        [root] = thread.tree()
        assert root.message.id == "m1"
        assert [c.message.id for c in root.children] == ["m2", "m4"]
        assert [c.message.id for c in root.children[0].children] == ["m3"]

    def test_first_thread_wins(self, message_json):
        data = [[[message_json("a"), []]], [[message_json("b"), []]]]
        thread = Thread.from_json(data)
        assert [m.id for m in thread] == ["a"]

    def test_empty_result(self):
        thread = Thread.from_json([])
        assert len(thread) == 0
        assert thread.tree() == []
        assert thread.subject is None

    def test_null_messages_reparent_replies(self, message_json):
        data = [[[None, [[message_json("child"), [[message_json("grandchild"), []]]]]]]]
        thread = Thread.from_json(data)
        assert [m.id for m in thread] == ["child", "grandchild"]
        assert thread.parents == [None, 0]

    def test_multiple_roots(self, message_json):
        data = [[[message_json("a"), []], [message_json("b"), []]]]
        thread = Thread.from_json(data)
        assert thread.roots() == [0, 1]

    def test_deep_thread_does_not_recurse(self, message_json):
        node = [message_json("leaf"), []]
        for i in range(3000):
            node = [message_json(f"m{i}"), [node]]
        thread = Thread.from_json([[node]])
        assert len(thread) == 3001
        assert thread.depth(3000) == 3000

    def test_find(self, nested_thread):
        thread = Thread.from_json(nested_thread)
        assert thread.find("m3").id == "m3"
        assert thread.find("nope") is None

    @pytest.mark.parametrize("data", [{"not": "a list"}, [[["only-one-element"]]], [[[{"no_id": True}, []]]]])
    def test_malformed_input(self, data):
        with pytest.raises(ParseError):
            Thread.from_json(data)
