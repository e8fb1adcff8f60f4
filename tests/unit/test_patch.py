"""Tests for the streaming delete, edit and insert passes."""

from freemind.core.patch.passes import delete_removed, edit_modified, insert_created
from freemind.core.tree.decoder import decode_tree
from freemind.core.working_set import WorkingSet
from freemind.models.record import DESCRIPTION, DUE, TAG, TAGS, TITLE, Nested, Record, Text
from tests.unit.fakes import SAMPLE_REGISTRY, make_record

TWO_ENTRIES = (
    '<registry><entry id="1"><name>A</name></entry><entry id="2"><name>B</name></entry></registry>'
)


# --- Deletion pass ---


def test_delete_cuts_removed_entry_and_drops_record() -> None:
    ws = WorkingSet([make_record(1, "A", removed=True), make_record(2, "B")])

    result = delete_removed(ws, TWO_ENTRIES)

    assert result.changed
    assert result.text == '<registry><entry id="2"><name>B</name></entry></registry>'
    assert result.affected_ids == (1,)
    assert ws.get(1) is None
    assert ws.get(2) is not None


def test_delete_reaches_entries_inside_groups() -> None:
    ws = WorkingSet([make_record(21, "Report", removed=True)])

    result = delete_removed(ws, SAMPLE_REGISTRY)

    assert result.changed
    assert '<entry id="21">' not in result.text
    assert '<directory id="20"><name>Work</name></directory>' in result.text


def test_delete_is_idempotent_on_its_own_output() -> None:
    first = delete_removed(WorkingSet([make_record(1, "A", removed=True)]), TWO_ENTRIES)

    second = delete_removed(WorkingSet([make_record(1, "A", removed=True)]), first.text)

    assert not second.changed
    assert second.text == first.text


def test_delete_removes_only_records_present_in_document() -> None:
    ws = WorkingSet(
        [
            make_record(7, "Old", removed=True),
            make_record(9, "Dentist", removed=True),
            make_record(99, "Gone already", removed=True),
            make_record(50, "Kept"),
        ]
    )

    result = delete_removed(ws, SAMPLE_REGISTRY)

    assert sorted(result.affected_ids) == [7, 9]
    assert sorted(r.id for r in decode_tree(result.text).records()) == []
    assert [r.id for r in ws] == [99, 50]
    assert ws.get(99).removed  # type: ignore[union-attr]


def test_delete_copies_untouched_content_verbatim() -> None:
    ws = WorkingSet([make_record(9, "Dentist", removed=True)])

    result = delete_removed(ws, SAMPLE_REGISTRY)

    expected = SAMPLE_REGISTRY.replace('<entry id="9"><name>Dentist</name><due>100</due></entry>', "")
    assert result.text == expected


def test_delete_without_removed_records_returns_input() -> None:
    ws = WorkingSet([make_record(1, "A")])
    result = delete_removed(ws, TWO_ENTRIES)
    assert not result.changed
    assert result.text == TWO_ENTRIES


def test_delete_on_malformed_document_is_a_no_op() -> None:
    ws = WorkingSet([make_record(1, "A", removed=True)])
    broken = '<registry><entry id="1"><name>A</name></entry>'

    result = delete_removed(ws, broken)

    assert not result.changed
    assert result.text == broken
    assert ws.get(1) is not None


# --- Edit pass ---


def test_edit_replaces_known_fields_and_keeps_server_fields() -> None:
    doc = '<registry><entry id="7"><name>Old</name><description>old</description></entry></registry>'
    record = Record(id=7, fields={DESCRIPTION: Text("new")}, modified=True)
    ws = WorkingSet([record])

    result = edit_modified(ws, doc)

    assert result.changed
    assert result.text == (
        '<registry><entry id="7"><description>new</description><name>Old</name></entry></registry>'
    )
    assert not record.modified


def test_edit_leaves_other_fields_and_records_byte_identical() -> None:
    doc = (
        "<registry>\n"
        '<entry id="1"><name>A</name><description>x</description><due>5</due></entry>\n'
        '<entry id="2"><name>B</name><description>y</description></entry>\n'
        "</registry>"
    )
    ws = WorkingSet(decode_tree(doc).records())
    ws.get(1).set_field(DESCRIPTION, "changed")  # type: ignore[union-attr]

    result = edit_modified(ws, doc)

    assert result.text == doc.replace(
        "<description>x</description>", "<description>changed</description>"
    )


def test_edit_replaces_nested_fields_wholesale() -> None:
    doc = (
        '<registry><entry id="7"><name>Old</name>'
        "<tags><tag>a</tag></tags><meta><source>web</source></meta>"
        "</entry></registry>"
    )
    record = Record(id=7, fields={TITLE: Text("Old")})
    record.set_field(TAGS, Nested.of([(TAG, Text("b")), (TAG, Text("c"))]))
    ws = WorkingSet([record])

    result = edit_modified(ws, doc)

    assert "<tag>a</tag>" not in result.text
    assert "<tags><tag>b</tag><tag>c</tag></tags>" in result.text
    assert "<meta><source>web</source></meta>" in result.text
    assert result.text.count("<name>") == 1


def test_edit_strips_fields_dropped_locally() -> None:
    doc = '<registry><entry id="3"><name>T</name><due>10</due></entry></registry>'
    record = Record(id=3, fields={TITLE: Text("T"), DUE: Text("10")})
    record.remove_field(DUE)
    ws = WorkingSet([record])

    result = edit_modified(ws, doc)

    assert result.text == '<registry><entry id="3"><name>T</name></entry></registry>'
    assert record.dropped_tags == set()


def test_edit_keeps_flag_for_records_missing_from_document() -> None:
    record = make_record(42, "Elsewhere", modified=True)
    ws = WorkingSet([record])

    result = edit_modified(ws, TWO_ENTRIES)

    assert not result.changed
    assert result.text == TWO_ENTRIES
    assert record.modified


def test_edit_ignores_unmodified_records() -> None:
    ws = WorkingSet([make_record(1, "Different title")])
    result = edit_modified(ws, TWO_ENTRIES)
    assert not result.changed
    assert result.text == TWO_ENTRIES


def test_edit_on_malformed_document_keeps_modified_flag() -> None:
    record = make_record(1, "A", modified=True)
    ws = WorkingSet([record])
    broken = '<registry><entry id="1"><name>A</name>'

    result = edit_modified(ws, broken)

    assert not result.changed
    assert result.text == broken
    assert record.modified


# --- Insertion pass ---


def test_insert_puts_new_records_first_in_working_set_order() -> None:
    doc = '<registry><entry id="5"><name>Old</name></entry></registry>'
    ws = WorkingSet(
        [
            make_record(5, "Old"),
            Record(id=200, fields={TITLE: Text("N2")}),
            Record(id=100, fields={TITLE: Text("N1")}),
        ]
    )

    result = insert_created(ws, doc, [100, 200])

    assert result.changed
    assert result.text == (
        '<registry><entry id="200"><name>N2</name></entry>'
        '<entry id="100"><name>N1</name></entry>'
        '<entry id="5"><name>Old</name></entry></registry>'
    )
    assert result.affected_ids == (200, 100)


def test_insert_into_blank_document_creates_registry() -> None:
    ws = WorkingSet([Record(id=8, fields={TITLE: Text("First")})])

    result = insert_created(ws, "", [8])

    assert result.text == '<registry><entry id="8"><name>First</name></entry></registry>'


def test_insert_without_matching_records_returns_input() -> None:
    ws = WorkingSet([make_record(1, "A")])
    result = insert_created(ws, TWO_ENTRIES, [77])
    assert not result.changed
    assert result.text == TWO_ENTRIES


def test_insert_keeps_xml_declaration() -> None:
    doc = '<?xml version="1.0" encoding="utf-8"?>\n<registry></registry>'
    ws = WorkingSet([Record(id=8, fields={TITLE: Text("First")})])

    result = insert_created(ws, doc, [8])

    assert result.text.startswith('<?xml version="1.0" encoding="utf-8"?>')
    assert result.text.endswith('<registry><entry id="8"><name>First</name></entry></registry>')


def test_passes_do_not_add_a_declaration() -> None:
    ws = WorkingSet([Record(id=8, fields={TITLE: Text("First")})])
    result = insert_created(ws, "<registry></registry>", [8])
    assert result.text.startswith("<registry>")


# --- Untouched content is copied byte for byte ---

ENTRY_ONE = (
    '<entry id="1"><name>A</name><done/><flag mark="x>y"/>'
    "<note><![CDATA[a < b]]></note></entry>"
)
ENTRY_TWO = "<entry id='2'><name>B</name></entry>"
MIXED = f"<registry><!-- keep me -->{ENTRY_ONE}{ENTRY_TWO}</registry>"


def test_delete_keeps_comments_cdata_and_empty_tags() -> None:
    ws = WorkingSet([make_record(2, "B", removed=True)])

    result = delete_removed(ws, MIXED)

    assert result.text == f"<registry><!-- keep me -->{ENTRY_ONE}</registry>"


def test_edit_keeps_comments_cdata_and_empty_tags() -> None:
    ws = WorkingSet([Record(id=2, fields={TITLE: Text("B2")}, modified=True)])

    result = edit_modified(ws, MIXED)

    assert result.text == MIXED.replace(ENTRY_TWO, "<entry id='2'><name>B2</name></entry>")


def test_insert_keeps_comments_cdata_and_empty_tags() -> None:
    ws = WorkingSet([Record(id=8, fields={TITLE: Text("N")})])

    result = insert_created(ws, MIXED, [8])

    assert result.text == MIXED.replace(
        "<registry>", '<registry><entry id="8"><name>N</name></entry>'
    )


def test_insert_keeps_doctype() -> None:
    doc = '<?xml version="1.0"?>\n<!DOCTYPE registry>\n<registry>\n</registry>\n'
    ws = WorkingSet([Record(id=8, fields={TITLE: Text("N")})])

    result = insert_created(ws, doc, [8])

    assert result.text == doc.replace(
        "<registry>\n", '<registry><entry id="8"><name>N</name></entry>\n'
    )


def test_insert_opens_up_empty_root() -> None:
    ws = WorkingSet([Record(id=8, fields={TITLE: Text("N")})])

    result = insert_created(ws, "<registry/>", [8])

    assert result.text == '<registry><entry id="8"><name>N</name></entry></registry>'


def test_edit_opens_up_empty_entry() -> None:
    ws = WorkingSet([Record(id=3, fields={TITLE: Text("T")}, modified=True)])

    result = edit_modified(ws, '<registry><entry id="3"/><entry id="4"/></registry>')

    assert result.text == '<registry><entry id="3"><name>T</name></entry><entry id="4"/></registry>'


def test_edit_replaces_empty_server_field() -> None:
    doc = '<registry><entry id="1"><name>A</name><due/></entry></registry>'
    record = Record(id=1, fields={TITLE: Text("A"), DUE: Text("5")}, modified=True)

    result = edit_modified(WorkingSet([record]), doc)

    assert result.text == '<registry><entry id="1"><name>A</name><due>5</due></entry></registry>'


def test_delete_cuts_empty_entry() -> None:
    doc = '<registry><entry id="1"/><entry id="2"><name>B</name></entry></registry>'

    result = delete_removed(WorkingSet([make_record(1, "A", removed=True)]), doc)

    assert result.text == '<registry><entry id="2"><name>B</name></entry></registry>'


# --- Declared encodings ---

LATIN_DECLARED = (
    '<?xml version="1.0" encoding="ISO-8859-1"?>'
    '<registry><entry id="1"><name>Café</name></entry></registry>'
)


def test_insert_keeps_text_of_non_utf8_declared_document() -> None:
    ws = WorkingSet([Record(id=8, fields={TITLE: Text("Neu")})])

    result = insert_created(ws, LATIN_DECLARED, [8])

    assert result.text == (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<registry><entry id="8"><name>Neu</name></entry>'
        '<entry id="1"><name>Café</name></entry></registry>'
    )


def test_delete_declares_utf8_for_its_output() -> None:
    doc = LATIN_DECLARED.replace("</registry>", '<entry id="2"><name>Größe</name></entry></registry>')

    result = delete_removed(WorkingSet([make_record(1, "Café", removed=True)]), doc)

    assert result.text == (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<registry><entry id="2"><name>Größe</name></entry></registry>'
    )
