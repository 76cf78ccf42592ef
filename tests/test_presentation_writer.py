"""
Presentation Writer Tests

Works against real python-pptx decks in memory or under tmp_path.
"""

import pytest
from pptx.enum.shapes import MSO_SHAPE_TYPE

from arena_slides.core.datashapes import (
    CollectionSynthesis,
    ImageAttachment,
    Record,
    RecordType,
    Summary,
    SynthesisSlide,
)
from arena_slides.presentation.metadata import METADATA_MARKER, parse_metadata
from arena_slides.presentation.writer import BODY_WIDTH_WITH_IMAGE, NO_CONTENT, PresentationWriter

from conftest import TINY_PNG


def _pictures(slide):
    return [shape for shape in slide.shapes if shape.shape_type == MSO_SHAPE_TYPE.PICTURE]


def _bracket() -> Record:
    return Record(guid="G-100", number="100-0042", name="Bracket", record_type=RecordType.ITEM)


@pytest.fixture
def writer(error_handler):
    return PresentationWriter(error_handler=error_handler)


class TestCreateSlide:

    @pytest.mark.critical
    def test_title_body_and_notes(self, writer):
        """
        HAPPY PATH: "NUMBER: Name" title, summary body, notes end with the metadata block.
        """
        slide = writer.create_slide(_bracket(), Summary("• Steel\n• Zinc plated", "Used on the motor mount."))

        assert writer.slide_title(slide) == "100-0042: Bracket"
        assert writer._body_shape(slide).text_frame.text == "• Steel\n• Zinc plated"

        notes = writer.slide_notes(slide)
        assert notes.startswith("Used on the motor mount.")
        assert METADATA_MARKER in notes
        metadata = parse_metadata(notes)
        assert metadata.guid == "G-100"
        assert metadata.record_type == RecordType.ITEM
        assert metadata.last_updated

    def test_empty_summary_placeholder(self, writer):
        slide = writer.create_slide(_bracket(), Summary("   ", ""))
        assert writer._body_shape(slide).text_frame.text == NO_CONTENT

    def test_item_image_embedded(self, writer, tmp_path, error_handler):
        """
        HAPPY PATH: picture on the right, body narrowed but keeping its height and position.
        """
        image = ImageAttachment(name="bracket.png", content=TINY_PNG, file_format="png")
        plain_body = writer._body_shape(writer.create_slide(_bracket(), Summary("• A", "B")))

        slide = writer.create_slide(_bracket(), Summary("• A", "B"), image=image)

        assert len(_pictures(slide)) == 1
        assert parse_metadata(writer.slide_notes(slide)).image_name == "bracket.png"

        path = str(tmp_path / "images.pptx")
        writer.save(path)
        reopened = PresentationWriter(path, error_handler=error_handler)
        body = reopened._body_shape(reopened.presentation.slides[1])
        assert body.width == BODY_WIDTH_WITH_IMAGE
        assert body.height > 0
        assert body.height == plain_body.height
        assert (body.left, body.top) == (plain_body.left, plain_body.top)

    def test_no_image_for_changes(self, writer):
        change = Record(guid="C1", number="ECO-9", name="Rework", record_type=RecordType.CHANGE)
        image = ImageAttachment(name="x.png", content=TINY_PNG)

        slide = writer.create_slide(change, Summary("• A", "B"), image=image)

        assert _pictures(slide) == []
        assert parse_metadata(writer.slide_notes(slide)).record_type == RecordType.CHANGE

    def test_bad_image_skipped(self, writer, error_handler):
        """
        EDGE: an unreadable image leaves the slide intact and raises an alert.
        """
        image = ImageAttachment(name="broken.png", content=b"not an image")

        slide = writer.create_slide(_bracket(), Summary("• A", "B"), image=image)

        assert _pictures(slide) == []
        assert writer._body_shape(slide).text_frame.text == "• A"
        assert parse_metadata(writer.slide_notes(slide)).image_name is None
        assert error_handler.recent_errors[-1]["category"] == "image_attachment"

    def test_unknown_layout_falls_back(self, error_handler):
        writer = PresentationWriter(layout="no-such-layout", error_handler=error_handler)
        slide = writer.create_slide(_bracket(), Summary("• A", "B"))
        assert writer.slide_title(slide) == "100-0042: Bracket"


class TestUpdateSlide:

    def test_update_in_place(self, writer):
        slide = writer.create_slide(_bracket(), Summary("• Old", "Old notes"))

        writer.update_slide(slide, _bracket(), Summary("• New", "New notes"))

        assert writer.slide_count == 1
        assert writer._body_shape(slide).text_frame.text == "• New"
        notes = writer.slide_notes(slide)
        assert notes.startswith("New notes")
        assert notes.count(METADATA_MARKER) == 1

    def test_new_image_replaces_old(self, writer):
        image = ImageAttachment(name="bracket.png", content=TINY_PNG)
        slide = writer.create_slide(_bracket(), Summary("• A", "B"), image=image)

        writer.update_slide(slide, _bracket(), Summary("• A", "B"), image=image)

        assert len(_pictures(slide)) == 1

    def test_image_gone_on_refresh(self, writer):
        """
        EDGE: refresh without an image drops the old picture and widens the body again.
        """
        full_width = writer._body_shape(writer.create_slide(_bracket(), Summary("• A", "B"))).width
        image = ImageAttachment(name="bracket.png", content=TINY_PNG)
        slide = writer.create_slide(_bracket(), Summary("• A", "B"), image=image)

        writer.update_slide(slide, _bracket(), Summary("• New", "B"))

        assert _pictures(slide) == []
        assert writer._body_shape(slide).width == full_width
        assert writer._body_shape(slide).height > 0
        assert parse_metadata(writer.slide_notes(slide)).image_name is None


class TestFindGeneratedSlides:

    def test_metadata_and_legacy(self, writer):
        writer.create_slide(_bracket(), Summary("• A", "B"))

        legacy = writer.presentation.slides.add_slide(writer._layout())
        legacy.shapes.title.text = "ECO-00042: Bracket rework"

        other = writer.presentation.slides.add_slide(writer._layout())
        other.shapes.title.text = "Agenda"

        targets = writer.find_generated_slides()

        assert [(t.index, t.source) for t in targets] == [(0, "metadata"), (1, "legacy")]
        assert targets[0].guid == "G-100"
        assert targets[1].number == "ECO-00042"
        assert targets[1].record_type == RecordType.CHANGE

    def test_metadata_beats_title(self, writer):
        """
        EDGE: a slide with both a parsable title and metadata is matched by guid.
        """
        slide = writer.create_slide(_bracket(), Summary("• A", "B"))
        slide.shapes.title.text = "ECO-1: Renamed by hand"

        target = writer.find_generated_slides()[0]

        assert target.source == "metadata"
        assert target.guid == "G-100"
        assert target.record_type == RecordType.ITEM


class TestSynthesisAndSave:

    def test_synthesis_slides_have_no_metadata(self, writer):
        synthesis = CollectionSynthesis(slides=[
            SynthesisSlide("Problem", "• Cracks", "Lab report"),
            SynthesisSlide("Fix", "", ""),
        ])

        created = writer.add_synthesis_slides(synthesis)

        assert [writer.slide_title(slide) for slide in created] == ["Problem", "Fix"]
        assert writer._body_shape(created[1]).text_frame.text == NO_CONTENT
        assert writer.slide_notes(created[0]) == "Lab report"
        assert writer.find_generated_slides() == []

    def test_save_and_reopen(self, writer, tmp_path, error_handler):
        writer.create_slide(_bracket(), Summary("• A", "B"))
        path = str(tmp_path / "deck.pptx")

        assert writer.save(path) == path

        reopened = PresentationWriter(path, error_handler=error_handler)
        assert reopened.slide_count == 1
        assert reopened.find_generated_slides()[0].guid == "G-100"

    def test_save_without_path(self, writer):
        with pytest.raises(ValueError):
            writer.save()
