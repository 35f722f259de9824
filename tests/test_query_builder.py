"""
Tests for the immutable Cypher query builder.

Philosophy:
- Compare exact compiled text; compilation must be deterministic
- Caller values only ever appear in the parameter map
- Invalid chains fail at compile time with BuilderError
"""

import pytest

from graphdata.exceptions import BuilderError, CardinalityError
from graphdata.query import (
    Cardinality,
    CompiledQuery,
    Direction,
    all_of,
    any_of,
    not_,
    prop,
    q,
)

# =============================================================================
# Basic Compilation
# =============================================================================


def test_match_node_with_filters_compiles_to_parameterized_match():
    compiled = q.match_node("o", "Order", {"businessKey": "BK-1"}).ret("o").one

    assert compiled.text == "MATCH (o:Order {businessKey: $o_businessKey})\nRETURN o"
    assert compiled.parameters == {"o_businessKey": "BK-1"}
    assert compiled.cardinality is Cardinality.ONE


def test_compile_defaults_to_all_cardinality():
    builder = q.match_node("n", "User").ret("n")

    assert builder.compile().cardinality is Cardinality.ALL
    assert builder.all == builder.compile()


def test_match_node_without_label():
    compiled = q.match_node("n").ret("n").all

    assert compiled.text == "MATCH (n)\nRETURN n"
    assert compiled.parameters == {}


def test_multiple_filters_keep_insertion_order():
    compiled = q.match_node("u", "User", {"tenantId": "t1", "email": "a@b.io"}).ret("u").all

    assert compiled.text == "MATCH (u:User {tenantId: $u_tenantId, email: $u_email})\nRETURN u"
    assert list(compiled.parameters) == ["u_tenantId", "u_email"]


def test_compilation_is_deterministic():
    builder = (
        q.match_node("p", "ProcessInstance", {"status": "running"})
        .where(prop("p", "priority").gte(3))
        .ret("p")
        .order_by("p.createdAt")
        .limit(10)
    )

    first = builder.all
    second = builder.all

    assert first.text == second.text
    assert first.parameters == second.parameters


# =============================================================================
# Relationships
# =============================================================================


def test_outgoing_relationship_between_declared_nodes():
    compiled = (
        q.match_node("p", "ProcessInstance", {"id": "p1"})
        .match_node("t", "Task")
        .match_relationship("p", "HAS_TASK", "t")
        .ret("t")
        .all
    )

    assert compiled.text == (
        "MATCH (p:ProcessInstance {id: $p_id})\n"
        "MATCH (t:Task)\n"
        "MATCH (p)-[:HAS_TASK]->(t)\n"
        "RETURN t"
    )


def test_incoming_relationship_with_variable_and_filters():
    compiled = (
        q.match_node("a", "User")
        .match_node("b", "User")
        .match_relationship("a", "KNOWS", "b", Direction.INCOMING, variable="r", filters={"since": 2020})
        .ret("a", "r.since")
        .all
    )

    assert "MATCH (a)<-[r:KNOWS {since: $r_since}]-(b)" in compiled.text
    assert compiled.text.endswith("RETURN a, r.since")
    assert compiled.parameters == {"r_since": 2020}


def test_undirected_relationship_parameter_named_after_type():
    compiled = (
        q.match_node("a")
        .match_node("b")
        .match_relationship("a", "LINKED", "b", direction="both", filters={"weight": 1})
        .ret("a")
        .all
    )

    assert "MATCH (a)-[:LINKED {weight: $linked_weight}]-(b)" in compiled.text
    assert compiled.parameters == {"linked_weight": 1}


def test_relationship_to_undeclared_variable_raises():
    builder = q.match_node("a", "User").match_relationship("a", "KNOWS", "b").ret("a")

    with pytest.raises(BuilderError) as exc_info:
        builder.compile()

    assert "'b'" in str(exc_info.value)


# =============================================================================
# Predicates
# =============================================================================


def test_where_predicates_are_anded_in_order():
    compiled = (
        q.match_node("p", "ProcessInstance")
        .where(prop("p", "status").eq("running"))
        .where(prop("p", "priority").gt(3))
        .ret("p")
        .all
    )

    assert compiled.text == (
        "MATCH (p:ProcessInstance)\n"
        "WHERE p.status = $p_status AND p.priority > $p_priority\n"
        "RETURN p"
    )
    assert compiled.parameters == {"p_status": "running", "p_priority": 3}


def test_colliding_parameter_names_get_numeric_suffix():
    status = prop("p", "status")
    compiled = (
        q.match_node("p", "ProcessInstance", {"status": "running"})
        .where(any_of(status.eq("suspended"), status.eq("completed")))
        .ret("p")
        .all
    )

    assert "WHERE (p.status = $p_status_1 OR p.status = $p_status_2)" in compiled.text
    assert compiled.parameters == {
        "p_status": "running",
        "p_status_1": "suspended",
        "p_status_2": "completed",
    }


def test_combinators_and_null_checks():
    name = prop("u", "name")
    compiled = (
        q.match_node("u", "User")
        .where(all_of(name.is_not_null(), not_(prop("u", "email").is_null())))
        .ret("u")
        .all
    )

    assert "WHERE (u.name IS NOT NULL AND NOT (u.email IS NULL))" in compiled.text
    assert compiled.parameters == {}


def test_operator_overloads_build_junctions():
    a = prop("t", "priority").lt(10)
    b = prop("t", "assignee").starts_with("ops-")

    compiled = q.match_node("t", "Task").where((a & b) | ~a).ret("t").all

    assert (
        "WHERE ((t.priority < $t_priority AND t.assignee STARTS WITH $t_assignee) "
        "OR NOT (t.priority < $t_priority_1))"
    ) in compiled.text


def test_in_predicate_binds_list():
    compiled = (
        q.match_node("t", "Task")
        .where(prop("t", "status").in_(("created", "assigned")))
        .ret("t")
        .all
    )

    assert "WHERE t.status IN $t_status" in compiled.text
    assert compiled.parameters == {"t_status": ["created", "assigned"]}


def test_property_to_property_comparison_uses_no_parameter():
    compiled = (
        q.match_node("a", "Task")
        .match_node("b", "Task")
        .where(prop("a", "priority").gt(prop("b", "priority")))
        .ret("a")
        .all
    )

    assert "WHERE a.priority > b.priority" in compiled.text
    assert compiled.parameters == {}


def test_predicate_on_undeclared_variable_raises():
    builder = q.match_node("a", "User").where(prop("b", "name").eq("x")).ret("a")

    with pytest.raises(BuilderError):
        builder.compile()


def test_where_rejects_raw_strings():
    with pytest.raises(TypeError):
        q.match_node("a", "User").where("a.name = 'x'")


def test_empty_combinators_raise():
    with pytest.raises(ValueError):
        all_of()
    with pytest.raises(ValueError):
        any_of()


# =============================================================================
# Injection Safety
# =============================================================================


@pytest.mark.parametrize(
    "value",
    [
        "x' }) DETACH DELETE n //",
        '"; MATCH (n) DETACH DELETE n; //',
        "`backtick`",
    ],
)
def test_hostile_values_only_reach_parameters(value):
    compiled = (
        q.match_node("o", "Order", {"businessKey": value})
        .where(prop("o", "note").contains(value))
        .ret("o")
        .one
    )

    assert value not in compiled.text
    assert value in compiled.parameters.values()


@pytest.mark.parametrize(
    "label",
    ["User) DETACH DELETE (m", "User:Admin", "1User", "Us er", "", "Us`er"],
)
def test_invalid_labels_are_rejected(label):
    with pytest.raises(BuilderError):
        q.match_node("n", label).ret("n").compile()


def test_invalid_property_key_is_rejected():
    with pytest.raises(BuilderError):
        q.match_node("n", "User", {"name}) DETACH DELETE (n": "x"}).ret("n").compile()


def test_invalid_relationship_type_is_rejected():
    builder = q.match_node("a").match_node("b").match_relationship("a", "R]->(x", "b").ret("a")

    with pytest.raises(BuilderError):
        builder.compile()


def test_reserved_word_variable_is_rejected():
    with pytest.raises(BuilderError):
        q.match_node("match", "User").ret("match").compile()


def test_none_filter_value_is_rejected():
    with pytest.raises(BuilderError) as exc_info:
        q.match_node("n", "User", {"email": None}).ret("n").compile()

    assert "is_null" in str(exc_info.value)


# =============================================================================
# Builder Errors
# =============================================================================


def test_empty_builder_raises():
    with pytest.raises(BuilderError):
        q.compile()

    with pytest.raises(BuilderError):
        q.ret("n").compile()


def test_read_query_without_projection_raises():
    with pytest.raises(BuilderError):
        q.match_node("n", "User").compile()


def test_duplicate_variable_raises():
    with pytest.raises(BuilderError) as exc_info:
        q.match_node("n", "User").match_node("n", "Task").ret("n").compile()

    assert "more than once" in str(exc_info.value)


def test_projection_of_undeclared_variable_raises():
    with pytest.raises(BuilderError):
        q.match_node("n", "User").ret("m").compile()


@pytest.mark.parametrize("method", ["skip", "limit"])
def test_negative_paging_raises(method):
    builder = getattr(q.match_node("n", "User").ret("n"), method)(-1)

    with pytest.raises(BuilderError):
        builder.compile()


# =============================================================================
# Immutability and Projection
# =============================================================================


def test_builders_never_mutate_their_base():
    base = q.match_node("u", "User")
    by_name = base.where(prop("u", "name").eq("Ada")).ret("u.name")
    everything = base.ret("u")

    assert q.patterns == ()
    assert len(base.patterns) == 1
    assert base.predicates == ()
    assert everything.all.text == "MATCH (u:User)\nRETURN u"
    assert by_name.all.text == "MATCH (u:User)\nWHERE u.name = $u_name\nRETURN u.name"


def test_later_mutation_of_filters_does_not_leak_into_builder():
    filters = {"tags": ["a"]}
    builder = q.match_node("n", "Doc", filters).ret("n")

    filters["tags"].append("b")
    filters["extra"] = 1

    assert builder.all.parameters == {"n_tags": ["a"]}


def test_ret_last_call_wins():
    compiled = q.match_node("u", "User").ret("u").ret("u.email", "u.id").all

    assert compiled.text.endswith("RETURN u.email, u.id")


def test_order_skip_limit_are_parameterized():
    compiled = (
        q.match_node("p", "ProcessInstance")
        .ret("p")
        .order_by("p.createdAt", descending=True)
        .skip(10)
        .limit(5)
        .all
    )

    assert compiled.text == (
        "MATCH (p:ProcessInstance)\n"
        "RETURN p\n"
        "ORDER BY p.createdAt DESC\n"
        "SKIP $skip\n"
        "LIMIT $limit"
    )
    assert compiled.parameters == {"skip": 10, "limit": 5}


# =============================================================================
# Write Clauses
# =============================================================================


def test_create_node_without_return():
    compiled = q.create_node("u", "User", {"id": "u1", "email": "a@b.io"}).all

    assert compiled.text == "CREATE (u:User {id: $u_id, email: $u_email})"
    assert compiled.parameters == {"u_id": "u1", "u_email": "a@b.io"}


def test_match_then_create_relationship():
    compiled = (
        q.match_node("p", "ProcessInstance", {"id": "p1"})
        .create_node("t", "Task", {"id": "t1"})
        .create_relationship("p", "HAS_TASK", "t")
        .all
    )

    assert compiled.text == (
        "MATCH (p:ProcessInstance {id: $p_id})\n"
        "CREATE (t:Task {id: $t_id})\n"
        "CREATE (p)-[:HAS_TASK]->(t)"
    )


def test_set_properties_and_return():
    compiled = (
        q.match_node("p", "ProcessInstance", {"id": "p1"})
        .set_properties("p", {"status": "completed"})
        .ret("p")
        .one
    )

    assert compiled.text == (
        "MATCH (p:ProcessInstance {id: $p_id})\n"
        "SET p.status = $p_status\n"
        "RETURN p"
    )
    assert compiled.parameters == {"p_id": "p1", "p_status": "completed"}


def test_set_properties_parameter_avoids_filter_collision():
    compiled = (
        q.match_node("p", "ProcessInstance", {"status": "running"})
        .set_properties("p", {"status": "suspended"})
        .all
    )

    assert "SET p.status = $p_status_1" in compiled.text
    assert compiled.parameters == {"p_status": "running", "p_status_1": "suspended"}


def test_detach_delete():
    compiled = q.match_node("p", "ProcessInstance", {"id": "p1"}).detach_delete("p").all

    assert compiled.text == "MATCH (p:ProcessInstance {id: $p_id})\nDETACH DELETE p"


def test_write_on_undeclared_variable_raises():
    with pytest.raises(BuilderError):
        q.match_node("p", "ProcessInstance").set_properties("x", {"a": 1}).compile()

    with pytest.raises(BuilderError):
        q.match_node("p", "ProcessInstance").detach_delete("x").compile()


def test_empty_set_properties_raises():
    with pytest.raises(BuilderError):
        q.match_node("p", "ProcessInstance").set_properties("p", {}).compile()


# =============================================================================
# Cardinality Shaping
# =============================================================================


def test_one_shapes_zero_one_and_many_rows():
    compiled = CompiledQuery("RETURN 1", {}, Cardinality.ONE)

    assert compiled.shape([]) is None
    assert compiled.shape([{"n": 1}]) == {"n": 1}
    with pytest.raises(CardinalityError) as exc_info:
        compiled.shape([{"n": 1}, {"n": 2}])

    assert exc_info.value.actual == 2


def test_all_returns_every_row():
    compiled = CompiledQuery("RETURN 1")

    assert compiled.shape([]) == []
    assert compiled.shape([{"n": 1}, {"n": 2}]) == [{"n": 1}, {"n": 2}]


def test_params_returns_a_copy():
    compiled = q.match_node("o", "Order", {"businessKey": "BK-1"}).ret("o").one

    compiled.params()["o_businessKey"] = "changed"

    assert compiled.parameters["o_businessKey"] == "BK-1"


# =============================================================================
# End to End
# =============================================================================


@pytest.mark.asyncio
async def test_business_key_lookup_end_to_end(manager, fake_driver, responder):
    responder.push([{"o": {"businessKey": "BK-1", "total": 42}}])
    compiled = q.match_node("o", "Order", {"businessKey": "BK-1"}).ret("o").one

    async with manager.session(access_mode="read") as session:
        row = await session.run(compiled)

    assert row == {"o": {"businessKey": "BK-1", "total": 42}}
    assert fake_driver.auto_commit_queries == [
        ("MATCH (o:Order {businessKey: $o_businessKey})\nRETURN o", {"o_businessKey": "BK-1"})
    ]


@pytest.mark.asyncio
async def test_one_query_with_two_rows_raises_cardinality_error(manager, responder):
    responder.push([{"o": {"id": 1}}, {"o": {"id": 2}}])
    compiled = q.match_node("o", "Order", {"businessKey": "BK-1"}).ret("o").one

    async with manager.session() as session:
        with pytest.raises(CardinalityError):
            await session.run(compiled)


@pytest.mark.asyncio
async def test_one_query_with_no_rows_returns_none(manager):
    compiled = q.match_node("o", "Order", {"businessKey": "missing"}).ret("o").one

    async with manager.session() as session:
        assert await session.run(compiled) is None
