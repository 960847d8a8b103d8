import pytest
import yaml

from lumenpress.errors import Forbidden, NotFound, SlugCollision
from lumenpress.schemas import (
    GalleryMetadataWrite,
    PageWrite,
    PhotoOverride,
    PhotoOverridesRequest,
    PostWrite,
)
from lumenpress.services.content_writer import ContentWriter, validate_slug
from tests.conftest import jpeg_bytes


@pytest.fixture
def writer(sample_site, cache):
    return ContentWriter(sample_site, cache, variant_widths=[16], generate_variants_on_upload=True)


def test_validate_slug():
    assert validate_slug("my-post") == "my-post"
    assert validate_slug("travel/japan", nested=True) == "travel/japan"
    for bad in ("My Post", "a--b", "-a", "", "travel/japan"):
        with pytest.raises(ValueError):
            validate_slug(bad)


class TestPosts:
    def test_create_post_invalidates_index(self, writer, cache, sample_site):
        cache.get_index()
        result = writer.create_post("kyoto-nights", PostWrite(title="Kyoto Nights", body="Lanterns.", tags=["japan"]))

        assert result["path"] == "blog/kyoto-nights/index.md"
        assert result["index"] == "invalidated"
        assert cache.is_invalidated()
        post = cache.get_post("kyoto-nights", include_drafts=True)
        assert post.title == "Kyoto Nights"
        assert post.draft
        assert post.tags == ["japan"]
        assert "kyoto-nights" not in [p.slug for p in cache.list_posts()]

    def test_create_existing_slug_collides(self, writer):
        with pytest.raises(SlugCollision):
            writer.create_post("first-post", PostWrite(title="Again"))

    def test_create_rejects_bad_slug(self, writer):
        with pytest.raises(ValueError):
            writer.create_post("Not A Slug", PostWrite(title="x"))

    def test_update_keeps_unmanaged_front_matter(self, writer, cache, sample_site):
        sample_site.put(
            "blog/first-post.md",
            "---\ntitle: First Post\nseries: japan\n---\nOld body\n",
        )
        writer.update_post("first-post", PostWrite(title="First Post, Revised", body="New body", draft=False))

        text = sample_site.get_text("blog/first-post.md")
        assert "series: japan" in text
        post = cache.get_post("first-post")
        assert post.title == "First Post, Revised"
        assert post.content.strip() == "New body"

    def test_update_unknown_post(self, writer):
        with pytest.raises(NotFound):
            writer.update_post("nope", PostWrite(title="x"))

    def test_delete_folder_post(self, writer, cache, sample_site):
        writer.delete_post("trip")
        assert not sample_site.exists("blog/trip")
        assert [p.slug for p in cache.list_posts()] == ["first-post"]

    def test_delete_file_post(self, writer, sample_site):
        writer.delete_post("first-post")
        assert not sample_site.exists("blog/first-post.md")
        assert sample_site.exists("blog/trip/index.md")


class TestPages:
    def test_create_and_update(self, writer, cache, sample_site):
        writer.save_page("contact", PageWrite(title="Contact", body="Say hi.", order=2))
        assert sample_site.exists("pages/contact/index.md")
        assert cache.get_page("contact").order == 2

        writer.save_page("about", PageWrite(title="About", body="Updated.", hidden=True))
        assert cache.get_page("about").hidden
        assert "about" not in [p.slug for p in cache.list_pages()]

    def test_delete(self, writer, cache, sample_site):
        writer.delete_page("about")
        assert not sample_site.exists("pages/about")
        assert cache.list_pages() == []


class TestGalleries:
    def test_metadata_round_trip(self, writer, cache):
        writer.save_gallery_metadata(
            "tokyo-2024",
            GalleryMetadataWrite(title="Tokyo 2024", order=2, tags=["travel", "japan"]),
        )
        gallery = cache.get_gallery("tokyo-2024")
        assert gallery.title == "Tokyo 2024"
        assert gallery.order == 2
        assert gallery.tags == ["travel", "japan"]
        assert gallery.hidden is False

    def test_metadata_creates_new_gallery(self, writer, cache, sample_site):
        writer.save_gallery_metadata("travel/italy", GalleryMetadataWrite(title="Italy"))
        assert sample_site.exists("galleries/travel/italy/gallery.yaml")
        assert cache.get_gallery("travel/italy").title == "Italy"

    def test_password_is_stored_as_hash(self, writer, cache, sample_site):
        writer.save_gallery_metadata("tokyo-2024", GalleryMetadataWrite(password="secret"))
        stored = yaml.safe_load(sample_site.get_text("galleries/tokyo-2024/gallery.yaml"))
        assert stored["password"].startswith("$2")
        assert stored["title"] == "Tokyo 2024"
        assert cache.verify_gallery_password("tokyo-2024", "secret")

        writer.save_gallery_metadata("tokyo-2024", GalleryMetadataWrite(remove_password=True))
        assert not cache.get_gallery("tokyo-2024").is_protected

    def test_include_nested_photos_flag(self, writer, cache, sample_site):
        assert cache.get_gallery("tokyo-2024").include_nested_photos
        writer.save_gallery_metadata("tokyo-2024", GalleryMetadataWrite(include_nested_photos=False))
        stored = yaml.safe_load(sample_site.get_text("galleries/tokyo-2024/gallery.yaml"))
        assert stored["includeNestedPhotos"] is False
        assert "include_nested_photos" not in stored
        assert cache.get_gallery("tokyo-2024").include_nested_photos is False

    def test_photo_overrides(self, writer, cache):
        writer.save_photo_overrides("tokyo-2024", PhotoOverridesRequest(photos=[
            PhotoOverride(filename="b.jpg", title="Shrine"),
            PhotoOverride(filename="a.jpg", hidden=True),
        ]))
        gallery = cache.get_gallery("tokyo-2024")
        assert [(p.filename, p.title) for p in gallery.photos] == [("b.jpg", "Shrine")]

    def test_photo_overrides_unknown_file(self, writer):
        with pytest.raises(NotFound):
            writer.save_photo_overrides(
                "tokyo-2024", PhotoOverridesRequest(photos=[PhotoOverride(filename="zzz.jpg")])
            )

    def test_upload_generates_variants(self, writer, cache, sample_site):
        result = writer.upload_photo("tokyo-2024", "c.jpg", jpeg_bytes(width=32, height=24))
        assert result["path"] == "galleries/tokyo-2024/c.jpg"
        assert result["variants"] == ["galleries/tokyo-2024/c_16w.webp"]
        assert sample_site.exists("galleries/tokyo-2024/c_16w.webp")
        assert [p.filename for p in cache.get_gallery("tokyo-2024").photos] == ["a.jpg", "b.jpg", "c.jpg"]

    @pytest.mark.parametrize("filename", ["notes.txt", "a_400w.webp", "logo.svg", "../x.jpg"])
    def test_upload_rejects_non_originals(self, writer, filename):
        with pytest.raises(Forbidden):
            writer.upload_photo("tokyo-2024", filename, b"data")

    def test_delete_photo_removes_variants(self, writer, sample_site):
        sample_site.put("galleries/tokyo-2024/a_16w.webp", b"variant")
        writer.delete_photo("tokyo-2024", "a.jpg")
        assert not sample_site.exists("galleries/tokyo-2024/a.jpg")
        assert not sample_site.exists("galleries/tokyo-2024/a_16w.webp")

    def test_delete_gallery(self, writer, cache, sample_site):
        writer.delete_gallery("tokyo-2024")
        assert not sample_site.exists("galleries/tokyo-2024")
        with pytest.raises(NotFound):
            cache.get_gallery("tokyo-2024")


def test_rebuild_after_write(sample_site, cache):
    writer = ContentWriter(sample_site, cache, rebuild_after_write=True)
    cache.get_index()
    result = writer.save_page("contact", PageWrite(title="Contact"))
    assert result["index"] == "rebuilt (v2)"
    assert not cache.is_invalidated()
