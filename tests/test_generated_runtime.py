"""Compile the generated wrapper against a C++ stand-in for the raw ABI and run it."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from finch_cpp_generator.emitters.cpp_emitter import EmitterConfig, generate
from finch_cpp_generator.emitters.members import INVALID_HANDLE_MESSAGE
from finch_cpp_generator.models import GenerationContext

from ir_builders import DEMO_ABI_HEADER, PACKAGE, demo_module, plain_module

HARNESS = r"""
#include "demo.h"

#include <cstdio>
#include <cstring>
#include <string>

namespace abi = finch::bindgen::demo;

static int live_strings = 0;
static int string_allocs = 0;
static int drop_calls = 0;
static int live_counters = 0;
static bool initialized = false;

struct CounterHandle {
  int32_t value;
  std::string label;
};

struct FlagHandle {
  bool on;
};

namespace finch {
namespace bindgen {
namespace demo {

FinchString ___finch_bindgen___demo___string_new(const uint8_t *ptr, size_t len) {
  uint8_t *copy = new uint8_t[len + 1];
  std::memcpy(copy, ptr, len);
  ++live_strings;
  ++string_allocs;
  return FinchString{copy, len};
}

void ___finch_bindgen___demo___string_drop(FinchString s) {
  delete[] s.ptr;
  --live_strings;
}

void ___finch_bindgen___demo___initialize() { initialized = true; }

}  // namespace demo
}  // namespace bindgen
}  // namespace finch

static abi::FinchString make_string(const std::string &s) {
  return abi::___finch_bindgen___demo___string_new(reinterpret_cast<const uint8_t *>(s.data()), s.size());
}

static std::string take_string(abi::FinchString s) {
  std::string out(reinterpret_cast<const char *>(s.ptr), s.len);
  abi::___finch_bindgen___demo___string_drop(s);
  return out;
}

CounterHandle *demo_counter_new(int32_t start, abi::FinchString label) {
  ++live_counters;
  return new CounterHandle{start, take_string(label)};
}

void demo_counter_drop(CounterHandle *self) {
  ++drop_calls;
  --live_counters;
  delete self;
}

abi::FinchString demo_counter_version() { return make_string("1.0"); }

int32_t demo_counter_count_bytes(abi::FinchOption<abi::FinchString> text) {
  if (text.tag == abi::FinchOption<abi::FinchString>::Tag::None) {
    return -1;
  }
  return static_cast<int32_t>(take_string(text.some._0).size());
}

void demo_counter_increment(CounterHandle *self, int32_t by) { self->value += by; }

abi::FinchString demo_counter_label(CounterHandle *self) { return make_string(self->label); }

abi::FinchString demo_counter_echo(CounterHandle *, abi::FinchString text) { return text; }

abi::FinchResult<int32_t> demo_counter_checked_div(CounterHandle *self, int32_t divisor) {
  abi::FinchResult<int32_t> r{};
  if (divisor == 0) {
    r.tag = abi::FinchResult<int32_t>::Tag::Err;
    r.err._0 = make_string("division by zero");
  } else {
    r.tag = abi::FinchResult<int32_t>::Tag::Ok;
    r.ok._0 = self->value / divisor;
  }
  return r;
}

abi::FinchOption<int32_t> demo_counter_find(CounterHandle *self, abi::FinchOption<abi::FinchString> needle) {
  abi::FinchOption<int32_t> r{};
  r.tag = abi::FinchOption<int32_t>::Tag::None;
  if (needle.tag == abi::FinchOption<abi::FinchString>::Tag::Some) {
    std::string n = take_string(needle.some._0);
    std::string::size_type at = self->label.find(n);
    if (at != std::string::npos) {
      r.tag = abi::FinchOption<int32_t>::Tag::Some;
      r.some._0 = static_cast<int32_t>(at);
    }
  }
  return r;
}

int32_t demo_counter_finish(CounterHandle *self) {
  int32_t v = self->value;
  --live_counters;
  delete self;
  return v;
}

void demo_counter_dispose(CounterHandle *self) {
  --live_counters;
  delete self;
}

int32_t demo_counter_get_value(CounterHandle *self) { return self->value; }

void demo_counter_set_value(CounterHandle *self, int32_t value) { self->value = value; }

FlagHandle *demo_flag_new() { return new FlagHandle{false}; }

void demo_flag_drop(FlagHandle *self) { delete self; }

bool demo_flag_toggle(FlagHandle *self) {
  self->on = !self->on;
  return self->on;
}

#define CHECK(cond)                                                        \
  do {                                                                     \
    if (!(cond)) {                                                         \
      std::fprintf(stderr, "check failed: %s (line %d)\n", #cond, __LINE__); \
      return 1;                                                            \
    }                                                                      \
  } while (0)

static int run(const std::string &scenario) {
  if (scenario == "initialize") {
    demo::initialize();
    CHECK(initialized);
    return 0;
  }
  if (scenario == "strings") {
    {
      demo::Counter c(5, "hello");
      CHECK(live_strings == 0);
      CHECK(c.label() == "hello");
      std::string text("h\xc3\xa9llo w\0rld", 12);
      CHECK(c.echo(text) == text);
      CHECK(c.echo("").empty());
      CHECK(demo::Counter::version() == "1.0");
      CHECK(live_strings == 0);
    }
    CHECK(drop_calls == 1);
    CHECK(live_counters == 0);
    return 0;
  }
  if (scenario == "accessors") {
    demo::Counter c(1, "x");
    c.set_value(42);
    CHECK(c.get_value() == 42);
    c.increment(3);
    CHECK(c.get_value() == 45);
    return 0;
  }
  if (scenario == "result_ok") {
    demo::Counter c(10, "x");
    CHECK(c.checked_div(2) == 5);
    CHECK(live_strings == 0);
    return 0;
  }
  if (scenario == "result_err") {
    demo::Counter c(10, "x");
#if FINCH_EXCEPTIONS
    try {
      c.checked_div(0);
    } catch (const std::runtime_error &e) {
      CHECK(std::string(e.what()) == "division by zero");
      CHECK(live_strings == 0);
      return 0;
    }
    return 2;
#else
    c.checked_div(0);
    return 3;
#endif
  }
  if (scenario == "consume") {
    {
      demo::Counter c(7, "x");
      CHECK(c.finish() == 7);
      CHECK(live_counters == 0);
    }
    {
      demo::Counter d(1, "y");
      d.dispose();
      CHECK(live_counters == 0);
    }
    CHECK(drop_calls == 0);
    return 0;
  }
  if (scenario == "consume_twice") {
    demo::Counter c(7, "x");
    c.finish();
    c.finish();
    return 4;
  }
  if (scenario == "use_after_consume") {
    demo::Counter c(7, "x");
    c.dispose();
    c.get_value();
    return 4;
  }
  if (scenario == "optional_none") {
    demo::Counter c(0, "hello world");
    int before = string_allocs;
    finch::optional<int32_t> r = c.find(finch::nullopt);
    CHECK(!r.has_value());
    CHECK(demo::Counter::count_bytes(finch::nullopt) == -1);
    CHECK(string_allocs == before);
    return 0;
  }
  if (scenario == "optional_some") {
    demo::Counter c(0, "hello world");
    int before = string_allocs;
    finch::optional<int32_t> r = c.find(std::string("world"));
    CHECK(r.has_value());
    CHECK(*r == 6);
    CHECK(string_allocs == before + 1);
    CHECK(demo::Counter::count_bytes(std::string("abc")) == 3);
    CHECK(string_allocs == before + 2);
    CHECK(!c.find(std::string("zzz")).has_value());
    CHECK(live_strings == 0);
    return 0;
  }
  if (scenario == "flag") {
    demo::Flag f;
    CHECK(f.toggle());
    CHECK(!f.toggle());
    return 0;
  }
  std::fprintf(stderr, "unknown scenario %s\n", scenario.c_str());
  return 99;
}

int main(int argc, char **argv) {
  if (argc != 2) {
    return 98;
  }
  return run(argv[1]);
}
"""


def _cxx() -> str:
    cxx = shutil.which("c++") or shutil.which("g++") or shutil.which("clang++")
    if cxx is None:
        pytest.skip("a C++17 compiler is required for compile+run tests")
    return cxx


@pytest.fixture(scope="module")
def generated(tmp_path_factory) -> Path:
    out = tmp_path_factory.mktemp("generated")
    (out / f"{PACKAGE}-finch_bindgen.h").write_text(DEMO_ABI_HEADER, encoding="utf-8")

    module = demo_module()
    for cls in plain_module():
        module.add(cls)
    generate(module, GenerationContext(output_dir=out), EmitterConfig(format_output=False))

    (out / "main.cpp").write_text(HARNESS, encoding="utf-8")
    return out


def _build(out: Path, name: str, *flags: str) -> Path:
    exe = out / name
    cmd = [_cxx(), "-std=c++17", *flags, "-I", str(out), str(out / "main.cpp"), "-o", str(exe)]
    proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
    assert proc.returncode == 0, proc.stderr
    return exe


@pytest.fixture(scope="module")
def program(generated: Path) -> Path:
    return _build(generated, "program")


@pytest.fixture(scope="module")
def program_no_exceptions(generated: Path) -> Path:
    return _build(generated, "program_no_exceptions", "-fno-exceptions")


def _run(exe: Path, scenario: str) -> subprocess.CompletedProcess:
    return subprocess.run([str(exe), scenario], capture_output=True, text=True, check=False, timeout=60)


@pytest.mark.parametrize(
    "scenario",
    [
        "initialize",
        "strings",
        "accessors",
        "result_ok",
        "result_err",
        "consume",
        "optional_none",
        "optional_some",
        "flag",
    ],
)
def test_scenario_passes(program: Path, scenario: str) -> None:
    proc = _run(program, scenario)
    assert proc.returncode == 0, proc.stderr


@pytest.mark.parametrize("scenario", ["consume_twice", "use_after_consume"])
def test_released_handle_aborts(program: Path, scenario: str) -> None:
    proc = _run(program, scenario)
    assert proc.returncode not in (0, 1, 4)
    assert INVALID_HANDLE_MESSAGE in proc.stderr


def test_error_aborts_without_exceptions(program_no_exceptions: Path) -> None:
    proc = _run(program_no_exceptions, "result_err")
    assert proc.returncode not in (0, 1, 2, 3)
    assert "division by zero" in proc.stderr


def test_ok_path_without_exceptions(program_no_exceptions: Path) -> None:
    proc = _run(program_no_exceptions, "result_ok")
    assert proc.returncode == 0, proc.stderr
