"""
Tests for the core functionality: lifting, node sharing, sessions and emulation.
"""
import pytest
from symstr import (SymbolicTracer, SymbolicValue, make_symbolic, literal, unliteral, ite, implies, emulate,
                    sat, prove, current_tracer, KindMismatch, BOOL, INT, CHAR, STRING)
from symstr import strings as S

def test_fold_builds_no_nodes():
    with SymbolicTracer() as tracer:
        assert S.length("abc") == 3
        assert S.replace("hello", "l", "L") == "heLlo"
        assert tracer.backend.nodes == []

def test_symbolic_operand_builds_node():
    with SymbolicTracer() as tracer:
        s = make_symbolic(STRING, "s")
        n = S.length(s)
        assert n.kind == INT
        assert n.concrete is None
        node = tracer.backend.nodes[n.handle]
        assert node.op == 'str.len'
        assert node.args == (s.handle,)
        assert node.kind == INT

def test_identical_nodes_are_shared():
    with SymbolicTracer() as tracer:
        s = make_symbolic(STRING, "s")
        assert S.length(s).handle == S.length(s).handle
        before = len(tracer.backend.nodes)
        a = S.concat(s, "x")
        b = S.concat(s, "x")
        assert a.handle == b.handle
        # the literal "x" and the concatenation
        assert len(tracer.backend.nodes) == before + 2

def test_literal_handles_are_shared():
    with SymbolicTracer() as tracer:
        backend = tracer.backend
        assert backend.literal_handle(INT, 3) == backend.literal_handle(INT, 3)
        assert backend.literal_handle(STRING, "a") != backend.literal_handle(CHAR, "a")
        assert backend.concrete_value_of(backend.literal_handle(STRING, "a")) == "a"

def test_literal_handle_counts_as_concrete():
    with SymbolicTracer() as tracer:
        h = tracer.backend.literal_handle(STRING, "abc")
        v = SymbolicValue(STRING, handle=h, tracer=tracer)
        assert unliteral(v) == "abc"
        assert S.length(v) == 3

def test_concat_with_empty_returns_operand():
    with SymbolicTracer() as tracer:
        s = make_symbolic(STRING, "s")
        before = len(tracer.backend.nodes)
        assert S.concat(s, "") is s
        assert S.concat("", s) is s
        assert len(tracer.backend.nodes) == before

def test_empty_needle_is_always_found():
    with SymbolicTracer() as tracer:
        s = make_symbolic(STRING, "s")
        assert unliteral(S.is_infix_of("", s)) is True
        assert unliteral(S.is_prefix_of("", s)) is True
        assert unliteral(S.is_suffix_of("", s)) is True

def test_replace_empty_source_prepends():
    with SymbolicTracer() as tracer:
        s = make_symbolic(STRING, "s")
        d = make_symbolic(STRING, "d")
        r = S.replace(s, "", d)
        assert r.handle == (d + s).handle
        assert tracer.backend.nodes[r.handle].op == 'str.++'

def test_out_of_range_defers_to_solver():
    with SymbolicTracer() as tracer:
        r = S.sub_str("hell", 5, 1)
        assert r.concrete is None
        assert tracer.backend.nodes[r.handle].op == 'str.substr'

def test_tail_fast_path():
    with SymbolicTracer() as tracer:
        assert S.tail("abc") == "bc"
        assert tracer.backend.nodes == []
        s = make_symbolic(STRING, "s")
        t = S.tail(s)
        assert tracer.backend.nodes[t.handle].op == 'str.substr'

def test_symbolic_char_extraction():
    with SymbolicTracer() as tracer:
        backend = tracer.backend
        s = make_symbolic(STRING, "s")
        c = S.str_to_char_at(s, 0)
        assert c.kind == CHAR
        assert backend.nodes[c.handle].op == 'var'
        assert backend.internals == {c.handle}
        assert backend.variables == [s.handle]
        # the defining equation is hidden from the user's constraints
        assert backend.constraints == []
        [(h, internal)] = backend.assertions
        assert internal
        eq = backend.nodes[h]
        assert eq.op == '='
        unit, sub = eq.args
        assert backend.nodes[unit].op == 'str.unit'
        assert backend.nodes[unit].args == (c.handle,)
        assert backend.nodes[sub].op == 'str.substr'

def test_values_are_keyed_by_identity():
    with SymbolicTracer():
        s = make_symbolic(STRING, "s")
        n, m = S.length(s), S.length(s)
        assert n.handle == m.handle
        seen = {n: "first"}
        seen[m] = "second"
        assert seen[n] == "first"
        assert len({n, m, s}) == 3
        assert n in [n]

def test_emulation_is_all_or_nothing():
    with SymbolicTracer() as tracer:
        backend = tracer.backend
        s = make_symbolic(STRING, "s")
        before = len(backend.nodes)

        def witness(c, s):
            S.char_to_str(c)
            return S.length(s)

        with pytest.raises(KindMismatch):
            emulate(CHAR, witness, s)
        assert len(backend.nodes) == before
        assert backend.assertions == []
        assert S.length(s).handle == before

def test_ite():
    with SymbolicTracer() as tracer:
        b = make_symbolic(BOOL, "b")
        s = make_symbolic(STRING, "s")
        assert ite(True, 1, 2) == 1
        assert ite(False, "a", "b") == "b"
        assert ite(b, "a", "a") == "a"
        assert ite(b, s, s) is s
        r = ite(b, s, "x")
        assert tracer.backend.nodes[r.handle].op == 'ite'
        before = len(tracer.backend.nodes)
        assert ite(True, "a", lambda: S.sub_str("a", 5, 5)) == "a"
        assert len(tracer.backend.nodes) == before

def test_boolean_shortcuts():
    with SymbolicTracer() as tracer:
        b = make_symbolic(BOOL, "b")
        assert (b & True) is b
        assert unliteral(b & False) is False
        assert unliteral(b | True) is True
        assert (False | b) is b
        assert unliteral(implies(False, b)) is True

def test_symbolic_cannot_be_forced():
    with SymbolicTracer():
        s = make_symbolic(STRING, "s")
        with pytest.raises(ValueError):
            bool(S.null(s))
        with pytest.raises(ValueError):
            int(S.length(s))

def test_kinds_are_checked():
    with SymbolicTracer() as tracer:
        s = make_symbolic(STRING, "s")
        i = make_symbolic(INT, "i")
        with pytest.raises(KindMismatch):
            S.length(i)
        with pytest.raises(KindMismatch):
            s == i
        with pytest.raises(KindMismatch):
            s < "a"
        with pytest.raises(KindMismatch):
            tracer.add_constraint(i)

def test_variable_names():
    with SymbolicTracer() as tracer:
        make_symbolic(STRING, "s")
        with pytest.raises(ValueError):
            make_symbolic(STRING, "s")
        with pytest.raises(ValueError):
            make_symbolic(INT, "s7")
        anonymous = make_symbolic(INT)
        assert tracer.backend.names[anonymous.handle] == f"s{anonymous.handle}"

def test_sessions_nest():
    with SymbolicTracer() as outer:
        with SymbolicTracer() as inner:
            assert current_tracer() is inner
        assert current_tracer() is outer
    with pytest.raises(RuntimeError):
        current_tracer()

def test_sessions_do_not_mix():
    with SymbolicTracer():
        a = make_symbolic(STRING, "a")
    with SymbolicTracer():
        b = make_symbolic(STRING, "b")
    with pytest.raises(AssertionError):
        S.concat(a, b)

def test_user_constraints():
    with SymbolicTracer() as tracer:
        s = make_symbolic(STRING, "s")
        tracer.add_constraint(True)
        assert tracer.backend.assertions == []
        tracer.add_constraint(S.length(s) == 2)
        assert len(tracer.backend.constraints) == 1

def test_drivers_fold_without_solver():
    assert prove(lambda s: S.is_infix_of("", s), STRING)
    assert prove(lambda: S.length("abc") == 3)
    assert sat(lambda: S.null("x")) == 'unsat'
    assert sat(lambda i: literal(True), INT) == 'sat'
