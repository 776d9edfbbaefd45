"""
Unit tests for the selector-driven HTML extractor.

Tests cover:
- extract_manga_info: first-match selectors, status normalization, genres in DOM order
- chapter lists: number fallbacks, URL resolution, partial listings
- extract_page_images: attribute fallbacks, placeholder filtering, renumbering
"""

from unittest.mock import patch

import pytest

from manga_scraper.core.extractor import (
    chapter_number_from,
    extract_chapter_list,
    extract_chapter_listing,
    extract_manga_info,
    extract_page_images,
    normalize_status,
    parse_html,
    parse_rating,
)
from manga_scraper.core.source_profiles import SelectorSet, SourceProfile
from manga_scraper.dtos.scrape_dto import ChapterStub


def _profile(**selectors):
    base = {"title": "h1", "chapter_list": "li", "page_images": "img"}
    base.update(selectors)
    return SourceProfile(name="test", base_url="https://example.com/", selectors=SelectorSet(**base))


class TestExtractMangaInfo:
    def test_lekmanga_page(self, lek_profile, manga_page_html):
        info = extract_manga_info(parse_html(manga_page_html), lek_profile)

        assert info.title == "Solo Leveling"
        assert info.cover == "https://lekmanga.net/wp-content/uploads/cover.jpg"
        assert info.description == "A weak hunter becomes the strongest."
        assert info.status == "ongoing"
        assert info.genres == ["Action", "Fantasy", "Action"]
        assert info.author == "Chugong"
        assert info.artist is None
        assert info.rating is None

    def test_first_selector_with_text_wins(self):
        html = "<h1>  </h1><h2 class='t'>Second</h2><h3 class='t'>Third</h3>"
        profile = _profile(title="h1, h2.t, h3.t")

        info = extract_manga_info(parse_html(html), profile)

        assert info.title == "Second"

    def test_missing_fields_stay_empty(self):
        info = extract_manga_info(parse_html("<html><body></body></html>"), _profile())

        assert info.title == ""
        assert info.cover is None
        assert info.description == ""
        assert info.genres == []
        assert info.status == "completed"

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Ongoing", "ongoing"),
            ("  ONGOING  ", "ongoing"),
            ("مستمر", "ongoing"),
            ("Completed", "completed"),
            ("Hiatus", "completed"),
            ("", "completed"),
        ],
    )
    def test_normalize_status(self, text, expected):
        assert normalize_status(text) == expected


class TestChapterList:
    def test_lekmanga_chapters(self, lek_profile, manga_page_html):
        chapters = extract_chapter_list(parse_html(manga_page_html), lek_profile)

        assert [c.chapter_number for c in chapters] == [3.0, 2.0, 1.5]
        assert chapters[0].source_url == "https://lekmanga.net/manga/solo-leveling/chapter-3/"
        assert chapters[0].release_date == "2 days ago"
        assert chapters[1].source_url == "https://lekmanga.net/manga/solo-leveling/chapter-2/"
        assert chapters[1].release_date is None

    def test_number_from_url_when_title_has_none(self):
        html = '<ul><li><a href="/manga/x/chapter-7/">Prologue</a></li></ul>'

        chapters = extract_chapter_list(parse_html(html), _profile())

        assert chapters[0].chapter_number == 7.0

    def test_number_falls_back_to_reverse_position(self):
        html = """
        <ul>
          <li><a href="/manga/x/end/">Finale</a></li>
          <li><a href="/manga/x/start/">Beginning</a></li>
        </ul>
        """

        chapters = extract_chapter_list(parse_html(html), _profile())

        assert [c.chapter_number for c in chapters] == [2.0, 1.0]

    def test_elements_without_link_are_skipped(self):
        html = '<ul><li><span>Coming soon</span></li><li><a href="/c/1">Chapter 1</a></li></ul>'

        chapters = extract_chapter_list(parse_html(html), _profile())

        assert len(chapters) == 1
        assert chapters[0].source_url == "https://example.com/c/1"

    @pytest.mark.parametrize(
        "title,url,fallback,expected",
        [
            ("Chapter 12", "", 1, 12.0),
            ("الفصل 4.5", "", 1, 4.5),
            ("Special", "https://x/manga/y/chapter_9/", 1, 9.0),
            ("Special", "https://x/manga/y/extra/", 5, 5.0),
        ],
    )
    def test_chapter_number_from(self, title, url, fallback, expected):
        assert chapter_number_from(title, url, fallback) == expected


class TestChapterListing:
    def test_complete_listing(self, lek_profile, manga_page_html):
        listing = extract_chapter_listing(parse_html(manga_page_html), lek_profile)

        assert len(listing.chapters) == 3
        assert listing.total_elements == 3
        assert listing.partial is False

    def test_keeps_chapters_parsed_before_a_broken_element(self, lek_profile, manga_page_html):
        first = ChapterStub(chapter_number=3, title="3", source_url="https://lekmanga.net/c/3")

        with patch(
            "manga_scraper.core.extractor._parse_chapter_element",
            side_effect=[first, RuntimeError("broken markup")],
        ):
            listing = extract_chapter_listing(parse_html(manga_page_html), lek_profile)

        assert listing.chapters == [first]
        assert listing.total_elements == 3
        assert listing.partial is True

    def test_raises_when_nothing_parsed(self, lek_profile, manga_page_html):
        with patch(
            "manga_scraper.core.extractor._parse_chapter_element",
            side_effect=RuntimeError("broken markup"),
        ):
            with pytest.raises(RuntimeError, match="broken markup"):
                extract_chapter_listing(parse_html(manga_page_html), lek_profile)


class TestPageImages:
    def test_lekmanga_pages(self, lek_profile, chapter_page_html):
        pages = extract_page_images(parse_html(chapter_page_html), lek_profile)

        assert [(p.page_number, p.image_url) for p in pages] == [
            (1, "https://cdn.lekmanga.net/1.jpg"),
            (2, "https://lekmanga.net/uploads/2.jpg"),
            (3, "https://lekmanga.net/3.jpg"),
        ]

    def test_loading_images_filtered_and_renumbered(self):
        html = """
        <img src="/spin/loading.gif">
        <img src="/a.jpg">
        <img src="/Placeholder-1.png">
        <img src="/b.jpg">
        """

        pages = extract_page_images(parse_html(html), _profile())

        assert [(p.page_number, p.image_url) for p in pages] == [
            (1, "https://example.com/a.jpg"),
            (2, "https://example.com/b.jpg"),
        ]

    def test_first_matching_selector_only(self):
        html = '<div class="r"><img src="/r1.jpg"></div><img class="alt" src="/alt.jpg">'
        profile = _profile(page_images=".r img, img.alt")

        pages = extract_page_images(parse_html(html), profile)

        assert [p.image_url for p in pages] == ["https://example.com/r1.jpg"]

    def test_no_images(self, lek_profile):
        assert extract_page_images(parse_html("<html></html>"), lek_profile) == []


def test_five_images_two_placeholders():
    html = "".join(
        f'<img src="/img/{"placeholder" if n in (2, 4) else "page"}-{n}.jpg">' for n in range(1, 6)
    )

    pages = extract_page_images(parse_html(html), _profile())

    assert [p.page_number for p in pages] == [1, 2, 3]
    assert [p.image_url for p in pages] == [
        "https://example.com/img/page-1.jpg",
        "https://example.com/img/page-3.jpg",
        "https://example.com/img/page-5.jpg",
    ]


def test_title_fallback_is_trimmed():
    html = "<div class='heading'> One Piece </div>"
    profile = _profile(title=".missing, .heading")

    assert extract_manga_info(parse_html(html), profile).title == "One Piece"


@pytest.mark.parametrize(
    "html,expected",
    [
        ('<div class="post-total-rating"><span class="score">4.5</span></div>', 4.5),
        ('<span class="score"> 3 </span>', 3.0),
        ('<span class="score">N/A</span>', None),
        ("<div></div>", None),
    ],
)
def test_rating(lek_profile, html, expected):
    assert extract_manga_info(parse_html(html), lek_profile).rating == expected


def test_parse_rating_ignores_text_around_number():
    assert parse_rating("Average 4.2 / 5") == 4.2
    assert parse_rating("") is None
