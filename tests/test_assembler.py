# tests/test_assembler.py

from tour_embeddings.assembler import assemble, has_own_content, should_skip
from tour_embeddings.models import TourRecord


def rich(text):
    return {"root": {"type": "root", "children": [{"type": "paragraph", "children": [{"type": "text", "text": text}]}]}}


def make_record(**overrides):
    data = {
        "id": 7,
        "status": "published",
        "title": {"en": "Archipelago Kayak", "sv": "Skärgårdskajak"},
        "shortDescription": {"en": "Paddle the islands", "sv": "Paddla bland öarna"},
        "description": {"en": rich("A full day on the water."), "sv": rich("En hel dag på vattnet.")},
        "highlights": [
            {"highlight": {"en": "Seals", "sv": "Sälar"}},
            "Lunch included",
            {"highlight": {"en": ""}},
        ],
        "categories": [{"name": {"en": "Outdoor", "sv": "Utomhus"}}, 12, {"name": None}],
        "audienceTags": ["families", "adults", 3],
    }
    data.update(overrides)
    return TourRecord.model_validate(data)


def test_assemble_resolves_requested_locale():
    doc = assemble(make_record(), "sv")

    assert doc.locale == "sv"
    assert doc.title == "Skärgårdskajak"
    assert doc.short_description == "Paddla bland öarna"
    assert doc.description == "En hel dag på vattnet."
    assert doc.highlights == ["Sälar", "Lunch included"]
    assert doc.categories == ["Utomhus"]
    assert doc.audience_tags == ["families", "adults"]


def test_assemble_falls_back_to_default_locale():
    doc = assemble(make_record(), "de")

    assert doc.title == "Archipelago Kayak"
    assert doc.description == "A full day on the water."
    assert doc.highlights == ["Seals", "Lunch included"]
    assert doc.categories == ["Outdoor"]


def test_assemble_caps_description_length():
    record = make_record(description=rich("y" * 3000))

    assert len(assemble(record, "en").description) == 2000
    assert len(assemble(record, "en", rich_text_char_limit=100).description) == 100


def test_assemble_handles_missing_fields():
    record = TourRecord.model_validate({"id": 3})
    doc = assemble(record, "en")

    assert doc.title == ""
    assert doc.description == ""
    assert doc.highlights == []
    assert doc.categories == []
    assert not doc.has_meaningful_content()


def test_target_audience_used_when_audience_tags_missing():
    record = TourRecord.model_validate({"id": 4, "targetAudience": ["seniors"]})

    assert record.audience_tags == ["seniors"]


def test_should_skip_locale_without_own_content():
    record = make_record(
        title={"en": "Old Town Walk", "sv": "", "de": ""},
        shortDescription={"en": "desc", "sv": "", "de": ""},
        description={"en": "long", "sv": "", "de": ""},
    )

    assert not should_skip(record, assemble(record, "en"))
    assert should_skip(record, assemble(record, "sv"))
    assert should_skip(record, assemble(record, "de"))


def test_plain_string_fields_count_for_every_locale():
    record = make_record(title="Old Town Walk", shortDescription=None, description=None)

    assert has_own_content(record, "de")
    assert not should_skip(record, assemble(record, "de"))


def test_should_skip_when_only_lists_are_filled():
    record = make_record(title={"en": ""}, shortDescription={"en": ""}, description={"en": ""})

    assert should_skip(record, assemble(record, "en"))
