import json

import pytest

from lumenpress.errors import ContentRootMissing, NotFound, StorageUnavailable
from lumenpress.services.content_index import ContentIndexCache
from lumenpress.services.content_scanner import scan_content
from lumenpress.storage.local_adapter import LocalStorageAdapter
from lumenpress.utils.auth import hash_password

INDEX_PATH = "_content-index.json"


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class CountingScanner:
    def __init__(self, fail: bool = False):
        self.calls = 0
        self.fail = fail

    def __call__(self, storage):
        self.calls += 1
        if self.fail:
            raise StorageUnavailable("bucket unreachable")
        return scan_content(storage, extract_exif_data=False)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scanner():
    return CountingScanner()


@pytest.fixture
def index_cache(sample_site, scanner, clock):
    return ContentIndexCache(sample_site, scanner=scanner, clock=clock)


def comparable(index):
    return index.model_dump(exclude={"updated_at", "version"}, context={"include_secrets": True})


class TestGetIndex:
    def test_builds_once_and_persists(self, index_cache, sample_site, scanner):
        first = index_cache.get_index()
        second = index_cache.get_index()

        assert scanner.calls == 1
        assert first.version == 1
        assert second.version == 1
        assert sample_site.exists(INDEX_PATH)
        assert not sample_site.exists("_content-index.building")

    def test_shared_across_cache_instances(self, index_cache, sample_site, scanner):
        index_cache.get_index()
        other = ContentIndexCache(sample_site, scanner=scanner)
        assert other.get_index().version == 1
        assert scanner.calls == 1

    def test_rebuild_is_deterministic_and_versioned(self, index_cache):
        first = index_cache.rebuild()
        second = index_cache.rebuild()
        assert second.version == first.version + 1
        assert comparable(first) == comparable(second)

    def test_index_is_not_a_content_entry(self, index_cache):
        index_cache.get_index()
        index = index_cache.rebuild()
        assert index.stats.galleries == 2
        assert index.stats.posts == 2
        assert index.stats.pages == 1

    def test_missing_root(self, tmp_path):
        cache = ContentIndexCache(LocalStorageAdapter(tmp_path / "missing"))
        with pytest.raises(ContentRootMissing):
            cache.get_index()
        with pytest.raises(ContentRootMissing):
            cache.rebuild()
        assert not (tmp_path / "missing").exists()


class TestInvalidation:
    def test_invalidate_does_not_scan(self, index_cache, scanner):
        index_cache.get_index()
        index_cache.invalidate()
        assert scanner.calls == 1
        assert index_cache.is_invalidated()

    def test_repeated_invalidate_is_one_rebuild(self, index_cache, scanner):
        index_cache.get_index()
        index_cache.invalidate()
        index_cache.invalidate()

        assert index_cache.get_index().version == 2
        assert index_cache.get_index().version == 2
        assert scanner.calls == 2
        assert not index_cache.is_invalidated()

    def test_invalidate_before_first_build(self, index_cache):
        index_cache.invalidate()
        assert index_cache.get_index().version == 1
        assert not index_cache.is_invalidated()

    def test_content_change_is_visible_after_invalidate(self, index_cache, sample_site):
        index_cache.get_index()
        sample_site.put("blog/new-post.md", "---\ntitle: New\ndate: 2024-06-01\n---\nFresh")
        assert len(index_cache.get_index().posts) == 2

        index_cache.invalidate()
        posts = index_cache.get_index().posts
        assert [p.slug for p in posts][0] == "new-post"

    def test_invalidate_during_rebuild_keeps_index_stale(self, sample_site, clock):
        cache = None

        def scanner(storage):
            cache.invalidate()
            return scan_content(storage, extract_exif_data=False)

        cache = ContentIndexCache(sample_site, scanner=scanner, clock=clock)
        cache.rebuild()
        assert cache.is_invalidated()


class TestRebuildLease:
    def test_stale_index_is_served_while_lease_is_fresh(self, index_cache, scanner, clock):
        index_cache.get_index()
        index_cache.invalidate()
        index_cache._write_marker(index_cache.building_marker_path)

        clock.now += 30
        assert index_cache.get_index().version == 1
        assert scanner.calls == 1

        clock.now += 31
        assert index_cache.get_index().version == 2
        assert scanner.calls == 2

    def test_lease_is_ignored_without_a_stored_index(self, index_cache, scanner):
        index_cache._write_marker(index_cache.building_marker_path)
        assert index_cache.get_index().version == 1
        assert scanner.calls == 1

    def test_rebuild_clears_only_its_own_lease(self, sample_site, clock):
        cache = None

        def scanner(storage):
            # Another process takes over the lease mid-scan
            cache._write_marker(cache.building_marker_path)
            return scan_content(storage, extract_exif_data=False)

        cache = ContentIndexCache(sample_site, scanner=scanner, clock=clock)
        cache.rebuild()
        assert sample_site.exists("_content-index.building")


class TestFailures:
    def test_failed_rebuild_leaves_blob_untouched(self, index_cache, sample_site, clock):
        index_cache.get_index()
        before = sample_site.get(INDEX_PATH)
        index_cache.invalidate()

        failing = ContentIndexCache(sample_site, scanner=CountingScanner(fail=True), clock=clock)
        with pytest.raises(StorageUnavailable):
            failing.get_index()

        assert sample_site.get(INDEX_PATH) == before
        assert failing.is_invalidated()
        assert not sample_site.exists("_content-index.building")

    def test_format_version_mismatch_forces_rebuild(self, index_cache, sample_site, scanner):
        index_cache.get_index()
        blob = json.loads(sample_site.get_text(INDEX_PATH))
        blob["format_version"] = 99
        sample_site.put(INDEX_PATH, json.dumps(blob))

        assert index_cache.read_persisted() is None
        assert index_cache.get_index().format_version != 99
        assert scanner.calls == 2

    def test_unreadable_blob_forces_rebuild(self, index_cache, sample_site, scanner):
        sample_site.put(INDEX_PATH, "{not json")
        assert index_cache.get_index().version == 1
        assert scanner.calls == 1


class TestAccessors:
    def test_public_lists_hide_private_and_drafts(self, sample_site, index_cache):
        sample_site.put("galleries/tokyo-2024/gallery.yaml", "title: Tokyo 2024\nprivate: true\n")
        sample_site.put("blog/draft.md", "---\ntitle: WIP\ndraft: true\n---\nSoon")
        sample_site.put("pages/secret.md", "---\nhidden: true\n---\nShh")

        assert [g.slug for g in index_cache.list_galleries()] == ["travel/japan"]
        assert len(index_cache.list_galleries(include_private=True)) == 2
        assert "draft" not in [p.slug for p in index_cache.list_posts()]
        assert "draft" in [p.slug for p in index_cache.list_posts(include_drafts=True)]
        assert [p.slug for p in index_cache.list_pages()] == ["about"]

        public = index_cache.public_index()
        assert [g.slug for g in public.galleries] == ["travel/japan"]
        assert public.warnings == []

    def test_get_by_slug(self, index_cache):
        assert index_cache.get_gallery("travel/japan").title == "Japan"
        assert index_cache.get_post("trip").title == "The Trip"
        assert index_cache.get_page("about").title == "About Me"
        with pytest.raises(NotFound):
            index_cache.get_gallery("nowhere")
        with pytest.raises(NotFound):
            index_cache.get_post("nowhere")
        with pytest.raises(NotFound):
            index_cache.get_page("nowhere")

    def test_draft_post_needs_include_drafts(self, sample_site, index_cache):
        sample_site.put("blog/draft.md", "---\ndraft: true\n---\nSoon")
        with pytest.raises(NotFound):
            index_cache.get_post("draft")
        assert index_cache.get_post("draft", include_drafts=True).draft

    def test_hidden_photos_are_removed_from_public_view(self, sample_site, index_cache):
        sample_site.put("galleries/tokyo-2024/photos.yaml", "- filename: a.jpg\n  hidden: true\n")
        assert [p.filename for p in index_cache.get_gallery("tokyo-2024").photos] == ["b.jpg"]
        assert len(index_cache.get_gallery("tokyo-2024", include_hidden=True).photos) == 2

    def test_protected_gallery(self, sample_site, index_cache):
        hashed = hash_password("secret", rounds=4)
        sample_site.put("galleries/tokyo-2024/gallery.yaml", f'password: "{hashed}"\n')

        gallery = index_cache.get_gallery("tokyo-2024")
        assert gallery.is_protected
        assert gallery.photos == []
        assert "$2b$" not in index_cache.public_index().model_dump_json()
        assert hashed in sample_site.get_text(INDEX_PATH)

        assert index_cache.verify_gallery_password("tokyo-2024", "secret")
        assert not index_cache.verify_gallery_password("tokyo-2024", "wrong")
        assert index_cache.verify_gallery_password("travel/japan", "anything")

    def test_tags_and_navigation(self, index_cache):
        assert index_cache.get_tags() == {"travel": 2, "japan": 1}
        nav = index_cache.get_navigation()
        assert [(n.slug, n.virtual) for n in nav] == [("tokyo-2024", False), ("travel", True)]
        assert [c.slug for c in nav[1].children] == ["travel/japan"]
