from lumenpress.services.page_scanner import find_main_page_file, scan_pages
from lumenpress.storage.base import FileEntry


def scan(storage):
    warnings = []
    return scan_pages(storage, warnings), warnings


class TestPageScanner:
    def test_sample_site(self, sample_site):
        pages, warnings = scan(sample_site)
        assert warnings == []
        assert len(pages) == 1
        about = pages[0]
        assert about.slug == "about"
        assert about.id == "pages/about"
        assert about.title == "About Me"
        assert about.content == "I take photos."
        assert not about.is_html

    def test_html_folder_page_with_css(self, storage):
        storage.put("pages/contact/index.md", "# Markdown")
        storage.put("pages/contact/index.html", "<h1>Contact</h1><p>Write to me.</p>")
        storage.put("pages/contact/style.css", "h1 { color: red; }")
        storage.put("pages/contact/map.png", b"png")

        pages, _ = scan(storage)
        contact = pages[0]
        assert contact.path == "pages/contact/index.html"
        assert contact.is_html
        assert contact.custom_css == "h1 { color: red; }"
        assert contact.images == ["pages/contact/map.png"]
        assert contact.cover == "pages/contact/map.png"
        assert contact.title == "Contact"

    def test_single_file_pages_are_sorted_by_slug(self, storage):
        storage.put("pages/privacy.md", "---\ntitle: Privacy\nhidden: true\nlayout: narrow\n---\nText")
        storage.put("pages/colophon.html", "<p>Made with care</p>")
        storage.put("pages/notes.txt", "ignored")

        pages, _ = scan(storage)
        assert [p.slug for p in pages] == ["colophon", "privacy"]
        assert pages[0].is_html
        assert pages[1].hidden
        assert pages[1].layout == "narrow"

    def test_slug_ignores_front_matter(self, storage):
        storage.put("pages/about.md", "---\nslug: elsewhere\n---\nBody")
        pages, _ = scan(storage)
        assert pages[0].slug == "about"


def test_find_main_page_file_priority():
    def entry(name):
        return FileEntry(name=name, path=f"pages/x/{name}", is_directory=False)

    assert find_main_page_file([entry("b.md"), entry("a.html")]) == (entry("a.html"), True)
    assert find_main_page_file([entry("notes.md"), entry("index.md")]) == (entry("index.md"), False)
    assert find_main_page_file([entry("b.md"), entry("a.md")]) == (entry("a.md"), False)
    assert find_main_page_file([entry("style.css")]) == (None, False)
