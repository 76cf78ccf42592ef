#!/usr/bin/env python3
"""
Presentation Writer - records and summaries onto .pptx slides

Wraps a python-pptx Presentation. Every record slide gets a title of the
form "NUMBER: Name", the summary as its body and the detailed notes plus a
metadata block as speaker notes so refresh can find it again.
"""

import io
import os
from dataclasses import dataclass
from typing import List, Optional

from pptx import Presentation
from pptx.enum.shapes import MSO_SHAPE_TYPE
from pptx.util import Inches

from arena_slides.core.datashapes import (
    CollectionSynthesis,
    ImageAttachment,
    Record,
    RecordType,
    SlideMetadata,
    Summary,
    utc_now_iso,
)
from arena_slides.core.error_handler import ErrorCategory, ErrorHandler, ErrorSeverity
from arena_slides.core.logging_utils import ArenaLogger
from arena_slides.presentation.metadata import append_metadata, parse_legacy_title, parse_metadata

slides_logger = ArenaLogger("arena_slides.presentation")

NO_CONTENT = "No content available"

LAYOUTS = {
    "title_and_content": 1,
    "two_content": 3,
    "comparison": 4,
}
DEFAULT_LAYOUT = 1
BODY_PLACEHOLDER_IDX = 1

# Picture sits on the right; the body shrinks to the left half
IMAGE_LEFT = Inches(5.4)
IMAGE_TOP = Inches(1.8)
IMAGE_WIDTH = Inches(4.2)
BODY_WIDTH_WITH_IMAGE = Inches(4.6)
TEXTBOX_WIDTH = Inches(9.0)


@dataclass
class SlideTarget:
    """A slide found in the deck and the record it was generated from."""
    index: int
    slide: object
    record_type: RecordType
    guid: Optional[str] = None
    number: Optional[str] = None
    source: str = "metadata"     # "metadata" or "legacy"


class PresentationWriter:
    def __init__(self, path: Optional[str] = None, layout: str = "title_and_content",
                 error_handler: Optional[ErrorHandler] = None):
        self.path = path
        self.presentation = Presentation(path) if path and os.path.exists(path) else Presentation()
        self.layout_index = LAYOUTS.get(layout, DEFAULT_LAYOUT)
        self.error_handler = error_handler or ErrorHandler()

    # =========================================================================
    # SHAPE HELPERS
    # =========================================================================

    def _layout(self):
        layouts = self.presentation.slide_layouts
        index = self.layout_index if self.layout_index < len(layouts) else min(DEFAULT_LAYOUT, len(layouts) - 1)
        return layouts[index]

    @staticmethod
    def _body_shape(slide):
        for placeholder in slide.placeholders:
            if placeholder.placeholder_format.idx == BODY_PLACEHOLDER_IDX:
                return placeholder
        for shape in slide.shapes:
            if shape.has_text_frame and shape != slide.shapes.title:
                return shape
        return slide.shapes.add_textbox(Inches(0.5), Inches(1.6), TEXTBOX_WIDTH, Inches(5.0))

    @staticmethod
    def slide_title(slide) -> str:
        title_shape = slide.shapes.title
        if title_shape is not None and title_shape.has_text_frame:
            return title_shape.text_frame.text
        return ""

    @staticmethod
    def slide_notes(slide) -> str:
        if not slide.has_notes_slide:
            return ""
        return slide.notes_slide.notes_text_frame.text

    @staticmethod
    def _set_title(slide, text: str) -> None:
        if slide.shapes.title is not None:
            slide.shapes.title.text = text
        else:
            slide.shapes.add_textbox(Inches(0.5), Inches(0.3), Inches(9.0), Inches(1.0)).text_frame.text = text

    def _write_body(self, slide, content: str):
        body = self._body_shape(slide)
        body.text_frame.text = content.strip() if content and content.strip() else NO_CONTENT
        return body

    @staticmethod
    def _write_notes(slide, notes: str, metadata: Optional[SlideMetadata]) -> None:
        text = append_metadata(notes, metadata) if metadata else (notes or "")
        slide.notes_slide.notes_text_frame.text = text

    @staticmethod
    def _resize_body(body, width) -> None:
        """
        Pin the body to an explicit width.

        A placeholder inherits its geometry from the layout, so all four
        values are written together or the missing ones come out as zero.
        """
        left, top, height = body.left, body.top, body.height
        body.left = left
        body.top = top
        body.width = width
        body.height = height

    @staticmethod
    def _restore_body(body) -> None:
        if body.is_placeholder:
            xfrm = body._element.spPr.xfrm
            if xfrm is not None:
                body._element.spPr.remove(xfrm)
        else:
            body.width = TEXTBOX_WIDTH

    @staticmethod
    def _remove_pictures(slide) -> None:
        for shape in list(slide.shapes):
            if shape.shape_type == MSO_SHAPE_TYPE.PICTURE:
                element = shape._element
                element.getparent().remove(element)

    def _attach_image(self, slide, body, image: ImageAttachment, number: str) -> Optional[str]:
        """Embed the picture and shrink the body; any failure leaves the slide without it."""
        with self.error_handler.create_context_manager(
            ErrorCategory.IMAGE_ATTACHMENT, ErrorSeverity.MEDIUM_ALERT,
            operation="attach_image", context=number
        ) as ctx:
            slide.shapes.add_picture(io.BytesIO(image.content), IMAGE_LEFT, IMAGE_TOP, width=IMAGE_WIDTH)
            self._resize_body(body, BODY_WIDTH_WITH_IMAGE)

        if ctx.failed:
            return None
        return image.name

    # =========================================================================
    # RECORD SLIDES
    # =========================================================================

    def create_slide(self, record: Record, summary: Summary,
                     image: Optional[ImageAttachment] = None,
                     record_type: Optional[RecordType] = None):
        """
        Append one slide for a record.

        Images are only ever embedded on item slides.
        """
        record_type = record_type or record.record_type
        slide = self.presentation.slides.add_slide(self._layout())
        self._fill_slide(slide, record, summary, image, record_type)
        slides_logger.log_info("SLIDE_CREATED", f"Created slide for {record.number}", {
            "slide_index": len(self.presentation.slides) - 1,
            "type": record_type.value,
        })
        return slide

    def update_slide(self, slide, record: Record, summary: Summary,
                     image: Optional[ImageAttachment] = None,
                     record_type: Optional[RecordType] = None):
        """Overwrite a generated slide in place with fresh content."""
        record_type = record_type or record.record_type
        # Picture and notes image line must agree
        self._remove_pictures(slide)
        self._restore_body(self._body_shape(slide))
        self._fill_slide(slide, record, summary, image, record_type)
        slides_logger.log_info("SLIDE_UPDATED", f"Refreshed slide for {record.number}")
        return slide

    def _fill_slide(self, slide, record: Record, summary: Summary,
                    image: Optional[ImageAttachment], record_type: RecordType) -> None:
        self._set_title(slide, record.display_title)
        body = self._write_body(slide, summary.main_content)

        image_name = None
        if image is not None and record_type == RecordType.ITEM:
            image_name = self._attach_image(slide, body, image, record.number)

        metadata = SlideMetadata(
            guid=record.guid,
            record_type=record_type,
            last_updated=utc_now_iso(),
            image_name=image_name,
        )
        self._write_notes(slide, summary.detailed_notes, metadata)

    def find_generated_slides(self) -> List[SlideTarget]:
        """
        Every slide that can be traced back to a record.

        The metadata block wins; slides without one are matched on a
        "PREFIX-NUMBER: rest" title as a legacy fallback.
        """
        targets = []
        for index, slide in enumerate(self.presentation.slides):
            metadata = parse_metadata(self.slide_notes(slide))
            if metadata is not None:
                targets.append(SlideTarget(index=index, slide=slide, record_type=metadata.record_type,
                                           guid=metadata.guid, source="metadata"))
                continue

            legacy = parse_legacy_title(self.slide_title(slide))
            if legacy is not None:
                number, record_type = legacy
                targets.append(SlideTarget(index=index, slide=slide, record_type=record_type,
                                           number=number, source="legacy"))
        return targets

    # =========================================================================
    # COLLECTION SLIDES
    # =========================================================================

    def add_synthesis_slides(self, synthesis: CollectionSynthesis) -> List[object]:
        """Append the AI-proposed collection slides (no per-record metadata)."""
        created = []
        for proposed in synthesis.slides:
            slide = self.presentation.slides.add_slide(self._layout())
            self._set_title(slide, proposed.title)
            self._write_body(slide, proposed.main_content)
            self._write_notes(slide, proposed.detailed_notes, None)
            created.append(slide)
        slides_logger.log_info("SYNTHESIS_SLIDES", f"Added {len(created)} collection slides")
        return created

    @property
    def slide_count(self) -> int:
        return len(self.presentation.slides)

    def save(self, path: Optional[str] = None) -> str:
        target = path or self.path
        if not target:
            raise ValueError("No output path given for the presentation")
        self.presentation.save(target)
        self.path = target
        slides_logger.log_info("DECK_SAVED", f"Saved {self.slide_count} slides", {"path": target})
        return target
