from __future__ import annotations

from pathlib import Path

import pytest

from finch_cpp_generator.emitters.classes import ClassSynthesizer
from finch_cpp_generator.emitters.cpp_emitter import EmitterConfig
from finch_cpp_generator.emitters.members import MemberSynthesizer
from finch_cpp_generator.models import GenerationContext
from finch_cpp_generator.type_mapping import MarshalContext, TypeMapper

from ir_builders import DEMO_ABI_HEADER, PACKAGE


@pytest.fixture
def context() -> MarshalContext:
    return MarshalContext(PACKAGE)


@pytest.fixture
def mapper(context: MarshalContext) -> TypeMapper:
    return TypeMapper(context)


@pytest.fixture
def members(mapper: TypeMapper) -> MemberSynthesizer:
    return MemberSynthesizer(mapper)


@pytest.fixture
def class_synth(members: MemberSynthesizer) -> ClassSynthesizer:
    return ClassSynthesizer(members)


@pytest.fixture
def out_dir(tmp_path: Path) -> Path:
    d = tmp_path / "out"
    d.mkdir()
    return d


@pytest.fixture
def abi_header(out_dir: Path) -> Path:
    path = out_dir / f"{PACKAGE}-finch_bindgen.h"
    path.write_text(DEMO_ABI_HEADER, encoding="utf-8")
    return path


@pytest.fixture
def gen_ctx(out_dir: Path) -> GenerationContext:
    return GenerationContext(output_dir=out_dir)


@pytest.fixture
def no_format() -> EmitterConfig:
    return EmitterConfig(format_output=False)
