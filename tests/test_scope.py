"""Tests for the accumulating scope and its rendering."""

from __future__ import annotations

import pytest

from grpc_stub_build.scope import ImportRecord, Module, RenderError, Scope


def test_inserting_a_module_twice_merges():
    scope = Scope()

    first = scope.get_or_create_module("client")
    scope.append_item(first, "A = 1")

    second = scope.get_or_create_module(["client"])
    scope.append_item(second, "B = 2")

    assert first is second
    assert scope.render() == "class client:\n    A = 1\n\n    B = 2\n"


def test_get_or_create_nested_module():
    scope = Scope()

    inner = scope.get_or_create_module("a.b")

    assert scope.get_or_create_module(["a", "b"]) is inner
    assert list(scope.root.children) == ["a"]
    assert scope.render() == "class a:\n    class b:\n        pass\n"


def test_empty_path_is_root():
    scope = Scope()

    assert scope.get_or_create_module("") is scope.root
    assert scope.get_or_create_module([]) is scope.root


def test_render_order():
    scope = Scope()

    client = scope.get_or_create_module("client")
    scope.append_item(client, "Y = 2")
    scope.append_item(scope.root, "X = 1")
    scope.register_import(scope.root, "", "grpc")
    scope.get_or_create_module("server")

    assert scope.render() == "import grpc\n\n\nX = 1\n\n\nclass client:\n    Y = 2\n\n\nclass server:\n    pass\n"


def test_children_render_in_insertion_order():
    scope = Scope()

    for name in ("zulu", "alpha", "mike"):
        scope.get_or_create_module(name)

    text = scope.render()

    assert text.index("class zulu") < text.index("class alpha") < text.index("class mike")


def test_multiline_items_are_indented():
    scope = Scope()
    module = scope.get_or_create_module("client")

    scope.append_item(module, "def f():\n\n    return 1")

    assert scope.render() == "class client:\n    def f():\n\n        return 1\n"


def test_duplicate_import_renders_once():
    scope = Scope()

    assert scope.register_import(scope.root, "a", "b.C")
    assert not scope.register_import(scope.root, "a", "b.C")

    assert scope.render() == "from a.b import C\n"


def test_reset():
    scope = Scope()
    scope.append_item(scope.get_or_create_module("client"), "A = 1")
    scope.register_import(scope.root, "", "grpc")

    assert not scope.is_empty

    scope.reset()

    assert scope.is_empty
    assert scope.render() == ""

    scope.reset()

    assert scope.is_empty
    assert scope.render() == ""


def test_rendered_source_compiles():
    scope = Scope()
    scope.register_import(scope.root, "", "os")
    scope.append_item(scope.get_or_create_module("client.inner"), "def f(x):\n    return os.path.join(x, x)")
    scope.get_or_create_module("server")

    compile(scope.render(), "<scope>", "exec")


@pytest.mark.parametrize(
    ("record", "expected"),
    [
        (ImportRecord("", "grpc"), "import grpc"),
        (ImportRecord("a", "B"), "from a import B"),
        (ImportRecord("a", "b.C"), "from a.b import C"),
        (ImportRecord("", "b.C"), "from b import C"),
        (ImportRecord("^", "b.C"), "from .b import C"),
        (ImportRecord("^.^", "C"), "from .. import C"),
        (ImportRecord("^.^.a", "b.C"), "from ..a.b import C"),
        (ImportRecord("", "svc_pb2", "svc__pb2"), "import svc_pb2 as svc__pb2"),
        (ImportRecord("^", "svc_pb2", "svc__pb2"), "from . import svc_pb2 as svc__pb2"),
        (ImportRecord("google.protobuf", "empty_pb2", "x"), "from google.protobuf import empty_pb2 as x"),
    ],
)
def test_import_record_render(record, expected):
    assert record.render() == expected


def test_import_record_bound_name():
    assert ImportRecord("a", "b.C").bound_name == "C"
    assert ImportRecord("", "grpc").bound_name == "grpc"
    assert ImportRecord("a", "b_pb2", "a_dot_b__pb2").bound_name == "a_dot_b__pb2"


def test_bound_import():
    module = Module("")
    module.register_import("a", "b.C")

    assert module.bound_import("C") == ImportRecord("a", "b.C")
    assert module.bound_import("b") is None


class TestRenderErrors:
    """Inconsistent scopes must not render to partial output."""

    def test_imports_binding_the_same_name(self):
        scope = Scope()
        scope.register_import(scope.root, "", "a_pb2.Item")
        scope.register_import(scope.root, "", "b_pb2.Item")

        with pytest.raises(RenderError, match="twice"):
            scope.render()

    def test_module_clashes_with_import(self):
        scope = Scope()
        scope.register_import(scope.root, "models", "client")
        scope.get_or_create_module("client")

        with pytest.raises(RenderError, match="clashes"):
            scope.render()

    @pytest.mark.parametrize("name", ["class", "not-valid", "1st"])
    def test_invalid_module_name(self, name):
        scope = Scope()
        scope.get_or_create_module(["client", name])

        with pytest.raises(RenderError, match="not a valid identifier"):
            scope.render()

    def test_render_error_is_runtime_error(self):
        assert issubclass(RenderError, RuntimeError)


def test_module_repr():
    module = Module("client")
    module.get_or_create_module("inner")

    assert repr(module) == "Module(name='client', imports=0, items=0, children=['inner'])"
