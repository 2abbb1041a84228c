import logging

import pytest

from packager.errors import InstructionParseError, MultiStageUnsupported
from packager.extractor import extract, extract_bytes, strip_quotes
from packager.instructions import (
    CopyInstruction,
    FromInstruction,
    LabelInstruction,
    OtherInstruction,
    RawInstruction,
)
from packager.models import CopyEntry, PackageDescriptor


def test_single_from_sets_base():
    descriptor = extract([FromInstruction("unikraft.org/nginx:1.15")])
    assert descriptor.base == "unikraft.org/nginx:1.15"
    assert descriptor.copies == []
    assert descriptor.annotations == {}


def test_second_from_is_rejected():
    with pytest.raises(MultiStageUnsupported):
        extract([FromInstruction("scratch"), FromInstruction("alpine")])


def test_second_from_rejected_even_when_identical():
    with pytest.raises(MultiStageUnsupported):
        extract_bytes(b"FROM scratch\nCOPY a /a\nFROM scratch\n")


def test_copy_keeps_first_source_only():
    descriptor = extract([
        FromInstruction("scratch"),
        CopyInstruction(("a", "b", "c"), "/dst/"),
    ])
    assert descriptor.copies == [CopyEntry("a", "/dst/")]


def test_copies_keep_order():
    descriptor = extract_bytes(b"FROM scratch\nCOPY kernel /unikernel/kernel\nCOPY initrd /unikernel/initrd\n")
    assert [c.source for c in descriptor.copies] == ["kernel", "initrd"]
    assert [c.dest for c in descriptor.copies] == ["/unikernel/kernel", "/unikernel/initrd"]


def test_copy_before_from_is_recorded():
    descriptor = extract([CopyInstruction(("a",), "/a"), FromInstruction("scratch")])
    assert descriptor.base == "scratch"
    assert descriptor.copies == [CopyEntry("a", "/a")]


@pytest.mark.parametrize("raw,expected", [
    ('"v"', "v"),
    ("v", "v"),
    ('""', ""),
    ('""v""', '"v"'),
    ('"v', '"v'),
    ('"', '"'),
])
def test_strip_quotes(raw, expected):
    assert strip_quotes(raw) == expected


def test_labels_are_unquoted_and_overwritten():
    descriptor = extract([
        LabelInstruction((('"com.urunc.unikernel.binary"', '"/unikernel/kernel"'), ("k", "first"))),
        LabelInstruction((("k", '"second"'),)),
    ])
    assert descriptor.annotations == {
        "com.urunc.unikernel.binary": "/unikernel/kernel",
        "k": "second",
    }


def test_other_instruction_is_logged_and_ignored(caplog):
    with caplog.at_level(logging.WARNING, logger="packager.extractor"):
        descriptor = extract([FromInstruction("scratch"), OtherInstruction("RUN", "make", 2)])
    assert descriptor == PackageDescriptor(base="scratch")
    assert "RUN" in caplog.text


def test_malformed_instruction_short_circuits():
    consumed = []

    def instructions():
        yield RawInstruction("FROM", "scratch", 1)
        consumed.append(1)
        yield RawInstruction("COPY", "only-one", 2)
        consumed.append(2)
        yield RawInstruction("LABEL", "k=v", 3)

    with pytest.raises(InstructionParseError):
        extract(instructions())
    assert consumed == [1]


def test_unknown_instruction_fails():
    with pytest.raises(InstructionParseError):
        extract_bytes(b"FROM scratch\nFROBNICATE now\n")


def test_end_to_end_bytes():
    descriptor = extract_bytes(b'FROM scratch\nCOPY a.bin /bin/a.bin\nLABEL k="v"\nCMD ["x"]\n')
    assert descriptor.base == "scratch"
    assert descriptor.copies == [CopyEntry("a.bin", "/bin/a.bin")]
    assert descriptor.annotations == {"k": "v"}


def test_set_base_twice_on_model():
    descriptor = PackageDescriptor()
    descriptor.set_base("scratch")
    with pytest.raises(MultiStageUnsupported):
        descriptor.set_base("scratch")


@pytest.mark.parametrize("item", ["FROM scratch", None, CopyEntry("a", "b")])
def test_non_instruction_items_are_parse_errors(item):
    with pytest.raises(InstructionParseError, match="is not an instruction"):
        extract([FromInstruction("scratch"), item])
