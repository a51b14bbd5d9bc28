from __future__ import annotations

import pytest

from finch_cpp_generator.emitters.members import INVALID_HANDLE_MESSAGE, MemberSynthesizer, validity_guard
from finch_cpp_generator.errors import UnknownTypeError
from finch_cpp_generator.models import VOID, MethodInfo, SetterInfo
from finch_cpp_generator.type_mapping import MarshalContext

from ir_builders import I32, STRING, counter_class, option_of, param, record, result_of

COUNTER = counter_class()


def _method(name: str) -> MethodInfo:
    return next(m for m in COUNTER.methods if m.method_name == name)


def test_guard_aborts_with_message() -> None:
    guard = "\n".join(validity_guard())
    assert guard.startswith("if (this->self == nullptr) {")
    assert INVALID_HANDLE_MESSAGE in guard
    assert "std::fputs(" in guard
    assert "std::abort();" in guard


def test_constructor(members: MemberSynthesizer) -> None:
    m = members.constructor(COUNTER.constructor)
    assert m.declaration == "Counter(int32_t start, std::string label);"
    assert m.definition.startswith("inline Counter::Counter(int32_t start, std::string label) {")
    assert "this->self = demo_counter_new(start, [](const std::string &value0)" in m.definition
    assert "}(label));" in m.definition
    assert INVALID_HANDLE_MESSAGE not in m.definition


def test_destructor_only_releases_owned_handle(members: MemberSynthesizer) -> None:
    m = members.destructor(COUNTER.destructor)
    assert m.declaration == "~Counter();"
    assert m.definition == (
        "inline Counter::~Counter() {\n"
        "    if (this->self) {\n"
        "        demo_counter_drop(this->self);\n"
        "    }\n"
        "}"
    )


def test_plain_method_guards_then_converts(members: MemberSynthesizer) -> None:
    m = members.method(_method("label"))
    assert m.declaration == "/// Copy of the label.\nstd::string label();"
    body = m.definition
    assert body.startswith("inline std::string Counter::label() {")
    assert body.index(INVALID_HANDLE_MESSAGE) < body.index("demo_counter_label(this->self)")
    assert "}(demo_counter_label(this->self));" in body


def test_void_method(members: MemberSynthesizer) -> None:
    m = members.method(_method("increment"))
    assert m.declaration == "void increment(int32_t by);"
    assert "return demo_counter_increment(this->self, by);" in m.definition


def test_consuming_void_method_nulls_handle(members: MemberSynthesizer) -> None:
    m = members.method(_method("dispose"))
    lines = [ln.strip() for ln in m.definition.splitlines()]
    call = lines.index("demo_counter_dispose(this->self);")
    assert lines[call + 1] == "this->self = nullptr;"
    assert not any(ln.startswith("return") for ln in lines)


def test_consuming_method_converts_after_release(members: MemberSynthesizer) -> None:
    m = members.method(_method("finish"))
    lines = [ln.strip() for ln in m.definition.splitlines()]
    stored = lines.index("auto finch_result_ = demo_counter_finish(this->self);")
    assert lines[stored + 1] == "this->self = nullptr;"
    assert lines[stored + 2] == "return finch_result_;"


def test_consuming_string_method(members: MemberSynthesizer) -> None:
    op = MethodInfo("Counter", "demo_counter_into_label", "into_label", STRING, consume=True)
    body = members.method(op).definition
    assert body.index("this->self = nullptr;") < body.index("return [](")
    assert "}(finch_result_);" in body


def test_method_with_wrapped_types(members: MemberSynthesizer, context: MarshalContext) -> None:
    m = members.method(_method("find"))
    assert m.declaration == "finch::optional<int32_t> find(finch::optional<std::string> needle);"
    assert context.uses_optional
    assert "finch::bindgen::demo::FinchOption<int32_t>" in context.registry
    assert "finch::bindgen::demo::FinchOption<finch::bindgen::demo::FinchString>" in context.registry

    r = members.method(_method("checked_div"))
    assert r.declaration == "int32_t checked_div(int32_t divisor);"
    assert "#if FINCH_EXCEPTIONS" in r.definition


def test_static_method_has_no_guard(members: MemberSynthesizer) -> None:
    m = members.static_method(COUNTER.statics[0])
    assert m.declaration == "static std::string version();"
    assert m.definition.startswith("inline std::string Counter::version() {")
    assert "this->self" not in m.definition
    assert "}(demo_counter_version());" in m.definition


def test_getter(members: MemberSynthesizer) -> None:
    m = members.getter(COUNTER.getters[0])
    assert m.declaration == "int32_t get_value();"
    assert INVALID_HANDLE_MESSAGE in m.definition
    assert "return demo_counter_get_value(this->self);" in m.definition


def test_setter_converts_value(members: MemberSynthesizer) -> None:
    m = members.setter(COUNTER.setters[0])
    assert m.declaration == "void set_value(int32_t value);"
    assert "demo_counter_set_value(this->self, value);" in m.definition

    s = members.setter(SetterInfo("Counter", "demo_counter_set_label", "label", STRING))
    assert s.declaration == "void set_label(std::string value);"
    assert "demo_counter_set_label(this->self, [](const std::string &value0)" in s.definition


def test_existing_comment_markers_are_kept(members: MemberSynthesizer) -> None:
    op = MethodInfo("Counter", "demo_counter_peek", "peek", I32, comments="// already a comment\nplain line")
    m = members.method(op)
    assert m.declaration.splitlines()[:2] == ["// already a comment", "/// plain line"]


def test_unknown_parameter_type(members: MemberSynthesizer) -> None:
    op = MethodInfo("Counter", "demo_counter_attach", "attach", VOID, (param("w", record("demo::Widget")),))
    with pytest.raises(UnknownTypeError, match="demo::Widget"):
        members.method(op)


def test_result_parameter_is_rejected(members: MemberSynthesizer) -> None:
    op = MethodInfo("Counter", "demo_counter_take", "take", VOID, (param("r", result_of(I32)),))
    with pytest.raises(UnknownTypeError):
        members.method(op)


def test_optional_return_of_unknown(members: MemberSynthesizer) -> None:
    op = MethodInfo("Counter", "demo_counter_widget", "widget", option_of(record("demo::Widget")))
    with pytest.raises(UnknownTypeError) as exc:
        members.method(op)
    assert exc.value.display_name == "demo::Widget"
