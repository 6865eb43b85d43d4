"""
Text Chunker and HTML Normalizer Tests
"""
import re

from pdf2text.utils.text import (
    count_page_markers,
    html_to_markdown,
    looks_like_section_start,
    paginate,
    strip_page_markers,
)

MARKER = re.compile(r"^--- PAGE (\d+) ---$", re.MULTILINE)


def marker_numbers(text):
    return [int(n) for n in MARKER.findall(text)]


def squash(text):
    return re.sub(r"\s+", "", text)


def paragraph(word, n):
    return " ".join([word] * n) + "."


class TestPaginateUnchanged:
    """Inputs that should come back untouched"""

    def test_empty(self):
        assert paginate("") == ""

    def test_whitespace_only(self):
        assert paginate("  \n\n\n\t ") == "  \n\n\n\t "

    def test_short_text_has_no_markers(self):
        text = "Intro paragraph.\n\n\n\nSecond paragraph.\n\n\nTHIRD SECTION HEADING\n\nBody."
        assert paginate(text) == text

    def test_just_under_target(self):
        text = "a" * 2999
        assert paginate(text) == text

    def test_long_text_without_sentence_breaks(self):
        """One unsplittable block stays one page"""
        text = "x" * 9000
        assert paginate(text) == text


class TestPaginateBreaks:
    """Form feeds and length-driven boundaries"""

    def test_two_form_feeds_make_three_pages(self):
        text = "First page text.\fSecond page text.\fThird page text."
        out = paginate(text)
        assert marker_numbers(out) == [1, 2, 3]
        assert "--- PAGE 1 ---\n\nFirst page text." in out
        assert "--- PAGE 3 ---\n\nThird page text." in out

    def test_form_feed_forces_break_on_short_page(self):
        out = paginate("tiny\ftiny again")
        assert count_page_markers(out) == 2

    def test_empty_pages_between_form_feeds_are_skipped(self):
        out = paginate("one\f\f\ftwo")
        assert marker_numbers(out) == [1, 2]

    def test_heading_starts_new_page_after_target(self):
        body = paragraph("alpha", 450)  # ~2700 chars
        text = body + "\n\n\n" + paragraph("beta", 80) + "\n\n\n# Chapter Two\n\n" + paragraph("gamma", 40)
        out = paginate(text)
        pages = MARKER.split(out)
        assert marker_numbers(out) == [1, 2]
        assert out.index("--- PAGE 2 ---") < out.index("# Chapter Two")
        assert "# Chapter Two" not in pages[2]
        assert pages[4].strip().startswith("# Chapter Two")

    def test_plain_paragraph_does_not_break_below_overflow(self):
        """Over target but not a section start and under 1.5x: no break"""
        text = paragraph("alpha", 500) + "\n\n\n" + paragraph("beta", 90)
        assert len(text) < 4500
        assert paginate(text) == text

    def test_overflow_forces_break(self):
        units = [paragraph("word", 90) for _ in range(20)]  # 450 chars, never a section start
        text = "\n\n\n".join(units)
        out = paginate(text)
        numbers = marker_numbers(out)
        assert len(numbers) >= 2
        assert numbers == list(range(1, len(numbers) + 1))

    def test_sentence_fallback_for_single_huge_paragraph(self):
        sentences = [f"Sentence number {i} talks about things at some length here." for i in range(200)]
        text = " ".join(sentences)
        assert len(text) > 6000
        out = paginate(text)
        numbers = marker_numbers(out)
        assert len(numbers) >= 3
        assert numbers == list(range(1, len(numbers) + 1))

    def test_no_characters_lost(self):
        text = (
            "# Report\n\n" + paragraph("lorem", 400)
            + "\n\n\n1. Scope\n\n" + paragraph("ipsum", 400)
            + "\fAPPENDIX MATERIALS\n\n" + paragraph("dolor", 300)
        )
        out = paginate(text)
        assert count_page_markers(out) >= 2
        assert squash(strip_page_markers(out)) == squash(text.replace("\f", ""))

    def test_deterministic(self):
        text = "\f".join(paragraph("w", 100) for _ in range(5))
        assert paginate(text) == paginate(text)


class TestSectionStart:
    """Heading heuristics"""

    def test_markdown_heading(self):
        assert looks_like_section_start("## Results\nbody")

    def test_caps_heading(self):
        assert looks_like_section_start("TERMS AND CONDITIONS")

    def test_short_caps_is_not_heading(self):
        assert not looks_like_section_start("NOTE")

    def test_numbered_section(self):
        assert looks_like_section_start("3.2 Methods")

    def test_long_paragraph(self):
        assert looks_like_section_start("x" * 501)

    def test_plain_sentence(self):
        assert not looks_like_section_start("The committee met on Tuesday.")


class TestHtmlToMarkdown:
    """HTML normalizer"""

    def test_heading_and_paragraph(self):
        assert html_to_markdown("<h1>Title</h1><p>Hello <b>world</b></p>") == "# Title\n\nHello **world**"

    def test_heading_levels(self):
        assert html_to_markdown("<h3 id='x'>Deep</h3>") == "### Deep"
        assert html_to_markdown("<h6>Deepest</h6>") == "###### Deepest"

    def test_emphasis(self):
        assert html_to_markdown("<em>a</em> <i>b</i> <strong>c</strong>") == "*a* *b* **c**"

    def test_line_breaks(self):
        assert html_to_markdown("one<br>two<br/>three") == "one\ntwo\nthree"

    def test_div_and_span_unwrapped(self):
        assert html_to_markdown('<div class="x"><span style="y">inner</span></div>') == "inner"

    def test_other_tags_stripped(self):
        assert html_to_markdown("<table><tr><td>cell</td></tr></table>") == "cell"

    def test_br_is_not_bold(self):
        assert html_to_markdown("<p>a<br>b</p>") == "a\nb"

    def test_collapses_newlines(self):
        assert html_to_markdown("<p>a</p>\n\n\n\n<p>b</p>") == "a\n\nb"

    def test_entities_decoded(self):
        assert html_to_markdown("<p>R&amp;D &lt;2024&gt;</p>") == "R&D <2024>"

    def test_empty(self):
        assert html_to_markdown("") == ""
