import pytest

from restmux.errors import DuplicateRoute, SegmentCollision, WildcardNameConflict
from restmux.operation import HTTPMethod, Operation
from restmux.segment import WILDCARD, Segment
from restmux.tree import Node, find_handler, format_routes, insert


def key(route: str) -> tuple[Segment, ...]:
    return Operation.parse(route).segments()


def request(route: str) -> tuple[Segment, ...]:
    return Operation.parse(route).request_segments()


# --- segments -----------------------------------------------------------------
def test_segment_literal() -> None:
    seg = Segment.parse("basic")
    assert not seg.is_wildcard
    assert seg.wildcard_name is None
    assert seg.value == "basic"
    assert str(seg) == "basic"


def test_segment_wildcard() -> None:
    seg = Segment.parse("{id}")
    assert seg.is_wildcard
    assert seg.wildcard_name == "id"
    assert seg.value == "*"
    assert str(seg) == "{id}"


def test_segment_wildcards_share_identity() -> None:
    assert Segment.parse("{a}") == Segment.parse("{b}") == WILDCARD
    assert hash(Segment.parse("{a}")) == hash(Segment.parse("{b}"))
    assert len({Segment.parse("{a}"), Segment.parse("{b}")}) == 1


def test_segment_literals_case_sensitive() -> None:
    assert Segment.parse("Api") != Segment.parse("api")


def test_segment_empty_braces_is_wildcard() -> None:
    seg = Segment.parse("{}")
    assert seg.is_wildcard
    assert seg.wildcard_name == ""
    assert str(seg) == "{}"


def test_segment_unbalanced_braces_is_literal() -> None:
    assert not Segment.parse("{id").is_wildcard
    assert not Segment.parse("id}").is_wildcard


# --- insert -------------------------------------------------------------------
def test_insert_builds_tree() -> None:
    tree: Node[str] = Node()
    insert(tree, key("GET:/user/{id}"), "user")
    insert(tree, key("GET:/user/{id}/profile"), "profile")

    user_id = Node(segment=Segment("*", "id"), handler="user")
    user_id.children[Segment("profile")] = Node(
        segment=Segment("profile"), handler="profile"
    )
    expected = Node(
        children={
            Segment("GET"): Node(
                segment=Segment("GET"),
                children={
                    Segment("user"): Node(
                        segment=Segment("user"), children={WILDCARD: user_id}
                    )
                },
            )
        }
    )
    assert tree == expected


def test_insert_duplicate() -> None:
    tree: Node[str] = Node()
    insert(tree, key("GET:/api/basic/op1"), "op1")
    with pytest.raises(DuplicateRoute) as exc_info:
        insert(tree, key("GET:/api/basic/op1"), "dup")
    assert exc_info.value.existing == "op1"
    assert exc_info.value.handler == "dup"
    assert "dup" in str(exc_info.value)
    assert "op1" in str(exc_info.value)


def test_insert_intermediate_node_can_take_handler() -> None:
    tree: Node[str] = Node()
    insert(tree, key("GET:/api/basic/op1"), "op1")
    insert(tree, key("GET:/api/basic"), "basic")
    assert find_handler(tree, request("GET:/api/basic"), {}) == "basic"


@pytest.mark.parametrize(
    "first, second",
    [
        ("GET:/api/basic/{something}", "GET:/api/basic/{something2}"),
        ("GET:/api/{type}/op1", "GET:/api/{call}/op2"),
    ],
)
def test_insert_wildcard_name_conflict(first: str, second: str) -> None:
    tree: Node[str] = Node()
    insert(tree, key(first), "first")
    with pytest.raises(WildcardNameConflict) as exc_info:
        insert(tree, key(second), "second")
    assert exc_info.value.handler == "second"
    assert exc_info.value.registered in {"something", "type"}
    assert exc_info.value.offered in {"something2", "call"}


def test_insert_same_wildcard_name_at_different_methods() -> None:
    tree: Node[str] = Node()
    insert(tree, key("GET:/api/{a}"), "get")
    insert(tree, key("POST:/api/{b}"), "post")
    params: dict[str, str] = {}
    assert find_handler(tree, request("POST:/api/1"), params) == "post"
    assert params == {"b": "1"}


def test_insert_conflict_leaves_handlers_unbound() -> None:
    tree: Node[str] = Node()
    insert(tree, key("GET:/api/{a}/op1"), "op1")
    with pytest.raises(WildcardNameConflict):
        insert(tree, key("GET:/api/{b}/op2"), "op2")
    assert find_handler(tree, request("GET:/api/x/op2"), {}) is None


@pytest.mark.parametrize(
    "first, second",
    [
        ("GET:/api/*/op", "GET:/api/{id}/op"),
        ("GET:/api/{id}/op", "GET:/api/*/op"),
    ],
)
def test_insert_literal_wildcard_marker_collides(first: str, second: str) -> None:
    tree: Node[str] = Node()
    insert(tree, key(first), "first")
    with pytest.raises(SegmentCollision):
        insert(tree, key(second), "second")


def test_insert_empty_key() -> None:
    with pytest.raises(ValueError, match="at least one segment"):
        insert(Node(), (), "handler")


# --- find_handler -------------------------------------------------------------
routes = {
    "GET:/api": "op5",
    "GET:/api/op4": "op4",
    "GET:/api/basic/op1": "op1",
    "GET:/api/basic/sub/op3": "op3",
    "GET:/api/basic/auth/op1": "auth_op1",
    "GET:/api/{type}": "by_type",
    "GET:/api/{type}/op2": "op2",
    "GET:/api/{type}/op2/{id}": "op2_id",
    "GET:/api/{type}/op2/123": "op2_123",
    "POST:/api/basic/op1": "post_op1",
    "GET:/files/": "files_index",
    "GET:/double//slash": "double_slash",
}

tree: Node[str] = Node()
for route, handler in routes.items():
    insert(tree, key(route), handler)


@pytest.mark.parametrize(
    "route, expected_handler, expected_params",
    [
        # exact
        ("GET:/api", "op5", {}),
        ("GET:/api/op4", "op4", {}),
        ("GET:/api/basic/op1", "op1", {}),
        ("GET:/api/basic/sub/op3", "op3", {}),
        # method disjointness
        ("POST:/api/basic/op1", "post_op1", {}),
        ("PUT:/api/basic/op1", None, {}),
        # literal subtree fails, backtrack into wildcard
        ("GET:/api/basic/op2", "op2", {"type": "basic"}),
        ("GET:/api/other/op2", "op2", {"type": "other"}),
        # multiple wildcards
        ("GET:/api/other/op2/456", "op2_id", {"type": "other", "id": "456"}),
        # literal beats wildcard at the leaf
        ("GET:/api/other/op2/123", "op2_123", {"type": "other"}),
        # path node without handler, the wildcard sibling is not tried
        ("GET:/api/basic", None, {}),
        ("GET:/api/other", "by_type", {"type": "other"}),
        ("GET:/api/basic/sub", None, {}),
        # too long
        ("GET:/api/basic/op1/extra", None, {}),
        # empty segments are literals
        ("GET:/files/", "files_index", {}),
        ("GET:/files", None, {}),
        ("GET:/double//slash", "double_slash", {}),
        ("GET:/double/slash", None, {}),
        # request segments are never wildcards
        ("GET:/api/{type}/op2", "op2", {"type": "{type}"}),
    ],
)
def test_find_handler(
    route: str, expected_handler: str | None, expected_params: dict[str, str]
) -> None:
    params: dict[str, str] = {}
    handler = find_handler(tree, request(route), params)
    assert handler == expected_handler
    assert params == expected_params


def test_find_handler_depth_disambiguation() -> None:
    t: Node[str] = Node()
    insert(t, key("GET:/api/{w1}/{w2}/{w3}"), "op1")
    insert(t, key("GET:/api/{w1}/hellloo/{w2}/something"), "op2")
    params: dict[str, str] = {}
    assert find_handler(t, request("GET:/api/monster/hellloo/bunnies"), params) == "op1"
    assert params == {"w1": "monster", "w2": "hellloo", "w3": "bunnies"}


def test_find_handler_rolls_back_failed_wildcard_bindings() -> None:
    t: Node[str] = Node()
    insert(t, key("GET:/api/{w1}/{w2}/{w3}/other"), "op1")
    insert(t, key("GET:/api/{w1}/hellloo/{x}/something"), "op2")
    params: dict[str, str] = {}
    handler = find_handler(t, request("GET:/api/monster/hellloo/bunnies/other"), params)
    assert handler == "op1"
    # {x} was bound on the hellloo branch before it failed
    assert params == {"w1": "monster", "w2": "hellloo", "w3": "bunnies"}


def test_find_handler_restores_shadowed_binding() -> None:
    t: Node[str] = Node()
    insert(t, key("GET:/{id}/a/{id}/b"), "inner")
    insert(t, key("GET:/{id}/{other}/x/c"), "outer")
    params: dict[str, str] = {}
    # inner {id} is bound to "x" then rolled back to the outer value
    assert find_handler(t, request("GET:/1/a/x/c"), params) == "outer"
    assert params == {"id": "1", "other": "a"}


def test_find_handler_no_match_leaves_params_empty() -> None:
    params: dict[str, str] = {}
    assert find_handler(tree, request("GET:/api/x/nope/1"), params) is None
    assert params == {}


def test_find_handler_literal_wildcard_marker() -> None:
    t: Node[str] = Node()
    insert(t, key("GET:/api/*"), "star")
    assert find_handler(t, request("GET:/api/*"), {}) == "star"
    assert find_handler(t, request("GET:/api/other"), {}) is None


def test_find_handler_marker_request_binds_to_wildcard() -> None:
    t: Node[str] = Node()
    insert(t, key("GET:/api/{id}"), "by_id")
    params: dict[str, str] = {}
    assert find_handler(t, request("GET:/api/*"), params) == "by_id"
    assert params == {"id": "*"}


def test_find_handler_empty_key() -> None:
    assert find_handler(tree, (), {}) is None


# --- format_routes ------------------------------------------------------------
def test_format_routes() -> None:
    t: Node[str] = Node()
    insert(t, key("GET:/api"), "op5")
    insert(t, key("GET:/api/basic/op1"), "op1")
    insert(t, key("DELETE:/api/{type}/op2"), "op2")
    assert format_routes(t) == (
        "GET      /api              op5\n"
        "GET      /api/basic/op1    op1\n"
        "DELETE   /api/{type}/op2   op2"
    )


def test_format_routes_tree() -> None:
    t: Node[str] = Node()
    insert(t, key("GET:/api"), "op5")
    insert(t, key("GET:/api/{type}/op2"), "op2")
    insert(t, key("GET:/api/basic/op1"), "op1")
    insert(t, key("DELETE:/api/{type}/op2"), "op2")
    assert format_routes(t, tree=True) == (
        "DELETE\n"
        "└── api\n"
        "    └── {type}\n"
        "        └── op2 [op2]\n"
        "GET\n"
        "└── api [op5]\n"
        "    ├── basic\n"
        "    │   └── op1 [op1]\n"
        "    └── {type}\n"
        "        └── op2 [op2]"
    )


def test_format_routes_empty() -> None:
    assert format_routes(Node()) == ""
    assert format_routes(Node(), tree=True) == ""


def test_format_routes_uses_qualname() -> None:
    def get_user() -> None: ...

    t: Node[object] = Node()
    insert(t, key("GET:/user/{id}"), get_user)
    assert format_routes(t) == (
        "GET   /user/{id}   test_format_routes_uses_qualname.<locals>.get_user"
    )


def test_method_segment_leads_key() -> None:
    assert key("PUT:/a")[0] == Segment(HTTPMethod.PUT.value)


def test_find_handler_last_literal_without_handler_stops() -> None:
    t: Node[str] = Node()
    insert(t, key("GET:/api/basic/auth/op1"), "op1")
    insert(t, key("GET:/api/{x}"), "by_x")
    params: dict[str, str] = {}
    assert find_handler(t, request("GET:/api/basic"), params) is None
    assert params == {}
    assert find_handler(t, request("GET:/api/other"), params) == "by_x"
    assert params == {"x": "other"}
