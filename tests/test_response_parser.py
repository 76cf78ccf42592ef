"""
Response Parser Tests

Marker parsing is a pure function; every case here is plain text in,
dataclass out.
"""

import re

import pytest

from arena_slides.ai.response_parser import (
    COLLECTION_FALLBACK_TITLE,
    extract_sections,
    parse_collection_response,
    parse_summary_response,
)


class TestSummaryParsing:

    @pytest.mark.critical
    def test_both_markers(self):
        """
        HAPPY PATH: main content stops at the DETAILED NOTES marker.
        """
        text = (
            "MAIN CONTENT:\n"
            "• Steel bracket for the motor mount\n"
            "• Released to production\n"
            "DETAILED NOTES:\n"
            "Revision B replaced the 2mm plate with 3mm."
        )

        summary = parse_summary_response(text)

        assert summary.main_content == "• Steel bracket for the motor mount\n• Released to production"
        assert "DETAILED NOTES" not in summary.main_content
        assert summary.detailed_notes == "Revision B replaced the 2mm plate with 3mm."

    def test_markers_case_insensitive_and_bold(self):
        text = "**Main Content:**\n• One\n**detailed notes:**\nNotes here"

        summary = parse_summary_response(text)

        assert summary.main_content == "• One"
        assert summary.detailed_notes == "Notes here"

    def test_preamble_before_main_marker_dropped(self):
        summary = parse_summary_response("Sure! Here you go.\nMAIN CONTENT:\n• A\nDETAILED NOTES:\nB")
        assert summary.main_content == "• A"

    @pytest.mark.critical
    @pytest.mark.parametrize("lines,expected_main", [
        (["a", "b", "c", "d"], ["a", "b"]),
        (["a", "b", "c", "d", "e"], ["a", "b"]),
        (["a", "b"], ["a"]),
    ])
    def test_no_markers_split_at_floor_half(self, lines, expected_main):
        summary = parse_summary_response("\n".join(lines))

        assert summary.main_content == "\n".join(expected_main)
        assert summary.detailed_notes == "\n".join(lines[len(expected_main):])

    def test_single_line_without_markers(self):
        """
        EDGE: deliberate exception to the floor(n/2) split. One line stays main
        content, since splitting it would leave the slide body empty.
        """
        summary = parse_summary_response("Just one line")
        assert summary.main_content == "Just one line"
        assert summary.detailed_notes == ""

    def test_only_main_marker(self):
        summary = parse_summary_response("MAIN CONTENT:\n• A\n• B")
        assert summary.main_content == "• A\n• B"
        assert summary.detailed_notes == ""

    def test_only_notes_marker(self):
        summary = parse_summary_response("• A\n• B\nDETAILED NOTES:\nWhy it matters")
        assert summary.main_content == "• A\n• B"
        assert summary.detailed_notes == "Why it matters"

    def test_empty_response(self):
        summary = parse_summary_response("")
        assert summary.main_content == ""
        assert summary.detailed_notes == ""


class TestCollectionParsing:

    def test_full_response(self):
        text = (
            "SYNTHESIS:\n"
            "ECR-12 led to ECO-40, which revised the bracket.\n"
            "PRESENTATION STRUCTURE:\n"
            "1. Problem\n2. Fix\n"
            "SLIDES:\n"
            "SLIDE 1: The Problem\n"
            "MAIN CONTENT:\n"
            "• Bracket cracked in vibration test\n"
            "DETAILED NOTES:\n"
            "Reported by test lab.\n"
            "SLIDE 2: **The Fix**\n"
            "MAIN CONTENT:\n"
            "• Thicker plate\n"
            "DETAILED NOTES:\n"
            "Released under ECO-40."
        )

        result = parse_collection_response(text)

        assert result.synthesis == "ECR-12 led to ECO-40, which revised the bracket."
        assert result.structure == "1. Problem\n2. Fix"
        assert [slide.title for slide in result.slides] == ["The Problem", "The Fix"]
        assert result.slides[0].main_content == "• Bracket cracked in vibration test"
        assert result.slides[0].detailed_notes == "Reported by test lab."
        assert result.slides[1].detailed_notes == "Released under ECO-40."

    def test_prose_mentioning_slides_is_not_a_marker(self):
        text = (
            "SYNTHESIS:\n"
            "Three related records across two slides: all about the bracket.\n"
            "SLIDES:\n"
            "SLIDE 1: Overview\n"
            "MAIN CONTENT:\n• A\nDETAILED NOTES:\nB"
        )

        result = parse_collection_response(text)

        assert result.synthesis.startswith("Three related records")
        assert len(result.slides) == 1

    def test_no_slides_gives_overview(self):
        """
        EDGE: nothing parseable -> a single Collection Overview slide with the synthesis.
        """
        result = parse_collection_response("SYNTHESIS:\nEverything relates to the bracket.")

        assert len(result.slides) == 1
        assert result.slides[0].title == COLLECTION_FALLBACK_TITLE
        assert result.slides[0].main_content == "Everything relates to the bracket."

    def test_no_markers_at_all_uses_raw_text(self):
        result = parse_collection_response("Some free-form answer.")

        assert result.slides[0].title == COLLECTION_FALLBACK_TITLE
        assert result.slides[0].main_content == "Some free-form answer."

    def test_slides_without_header(self):
        text = "SYNTHESIS:\nOverview text\nSLIDE 1: First\nMAIN CONTENT:\n• x\nSLIDE 2: Second\n• y"

        result = parse_collection_response(text)

        assert result.synthesis == "Overview text"
        assert [slide.title for slide in result.slides] == ["First", "Second"]
        assert result.slides[1].main_content == "• y"

    def test_untitled_slide_gets_number(self):
        result = parse_collection_response("SLIDES:\nSLIDE 1:\nMAIN CONTENT:\n• x")
        assert result.slides[0].title == "Slide 1"
        assert result.slides[0].main_content == "• x"


def test_extract_sections_missing_marker_is_none():
    sections = extract_sections("A: one", {"a": re.compile("A:"), "b": re.compile("B:")})
    assert sections == {"a": "one", "b": None}
