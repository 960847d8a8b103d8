"""
Pydantic schemas for content index entries and API request bodies.
Defines the normalized shape every scanner produces and the cache persists.
"""
from pydantic import BaseModel, ConfigDict, Field, SerializationInfo, field_serializer, field_validator
from datetime import datetime
from typing import Dict, List, Literal, Optional


class ExifData(BaseModel):
    """
    Embedded image attributes extracted best-effort from an original photo.
    Every field is optional; extraction failure leaves fields absent.
    """
    date_taken: Optional[datetime] = None
    make: Optional[str] = None
    model: Optional[str] = None
    lens_model: Optional[str] = None
    focal_length: Optional[float] = None
    aperture: Optional[float] = None
    iso: Optional[int] = None
    exposure_time: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    description: Optional[str] = None
    title: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    artist: Optional[str] = None
    copyright: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def camera(self) -> Optional[str]:
        parts = [p for p in (self.make, self.model) if p]
        return " ".join(parts) if parts else None


class Photo(BaseModel):
    """Single image inside a gallery."""
    id: str
    filename: str
    path: str
    title: str
    description: str = ""
    tags: List[str] = Field(default_factory=list)
    hidden: bool = False
    order: Optional[int] = None
    size: Optional[int] = None
    exif: Optional[ExifData] = None


class ContentEntry(BaseModel):
    """
    Fields shared by galleries, posts and pages.
    `parent_slug` is a relation only; the parent does not own the child.
    """
    id: str
    slug: str
    path: str
    title: str
    description: str = ""
    order: Optional[int] = None
    hidden: bool = False
    private: bool = False
    parent_slug: Optional[str] = None


class Gallery(ContentEntry):
    """
    Folder of photos, optionally nested under another gallery folder.
    The password is only ever held as a bcrypt hash and is dropped from
    serialized output unless the caller passes the `include_secrets` context.
    """
    kind: Literal["gallery"] = "gallery"
    cover_path: Optional[str] = None
    photos: List[Photo] = Field(default_factory=list)
    photo_count: int = 0
    tags: List[str] = Field(default_factory=list)
    category: Optional[str] = None
    date: Optional[datetime] = None
    is_protected: bool = False
    password_hash: Optional[str] = None
    has_custom_metadata: bool = False
    # Gallery pages also show photos of child galleries
    include_nested_photos: bool = True

    @field_serializer("password_hash")
    def _hide_password_hash(self, value: Optional[str], info: SerializationInfo) -> Optional[str]:
        context = info.context or {}
        return value if context.get("include_secrets") else None


class Post(ContentEntry):
    """Blog post parsed from a markdown file or a folder with index.md."""
    kind: Literal["post"] = "post"
    date: Optional[datetime] = None
    draft: bool = False
    tags: List[str] = Field(default_factory=list)
    content: str = ""
    excerpt: str = ""
    reading_time: int = 0
    cover: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    author: Optional[str] = None
    has_front_matter: bool = False


class Page(ContentEntry):
    """Static page (About, Contact). Addressed by path, no date or tags."""
    kind: Literal["page"] = "page"
    draft: bool = False
    content: str = ""
    excerpt: str = ""
    reading_time: int = 0
    cover: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    is_html: bool = False
    custom_css: Optional[str] = None
    layout: Optional[str] = None
    has_front_matter: bool = False


class ParentMetadata(BaseModel):
    """gallery.yaml settings of a folder used for navigation ordering."""
    slug: str
    title: Optional[str] = None
    order: Optional[int] = None


class ScanWarning(BaseModel):
    """Malformed file recovered during a scan."""
    path: str
    message: str


class IndexStats(BaseModel):
    galleries: int = 0
    photos: int = 0
    posts: int = 0
    pages: int = 0
    tags: int = 0


class ContentIndex(BaseModel):
    """
    Aggregate produced by one full scan.
    Replaced wholesale on rebuild, never patched in place.
    """
    format_version: int
    version: int = 0
    updated_at: datetime
    galleries: List[Gallery] = Field(default_factory=list)
    posts: List[Post] = Field(default_factory=list)
    pages: List[Page] = Field(default_factory=list)
    parents: List[ParentMetadata] = Field(default_factory=list)
    tags: Dict[str, int] = Field(default_factory=dict)
    stats: IndexStats = Field(default_factory=IndexStats)
    warnings: List[ScanWarning] = Field(default_factory=list)


class NavNode(BaseModel):
    """
    Navigation tree node.
    `virtual` nodes stand for folders that group galleries but are not galleries themselves.
    """
    slug: str
    title: str
    order: Optional[int] = None
    virtual: bool = False
    children: List["NavNode"] = Field(default_factory=list)


# =============================================================================
# Request bodies
# =============================================================================

class IndexActionRequest(BaseModel):
    """
    Request schema for cache administration.
    Used by POST /api/cms/content-index endpoint.
    """
    action: Literal["rebuild", "invalidate"]


class IndexActionResponse(BaseModel):
    success: bool
    message: str
    version: Optional[int] = None
    updated_at: Optional[datetime] = None
    stats: Optional[IndexStats] = None
    warnings: List[ScanWarning] = Field(default_factory=list)
    rebuild_ms: Optional[int] = None


class PostWrite(BaseModel):
    """
    Request schema for creating or updating a blog post.
    Used by POST/PUT /api/cms/posts/{slug} endpoints.
    """
    title: str
    body: str = ""
    date: Optional[datetime] = None
    description: Optional[str] = None
    excerpt: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    draft: bool = True
    cover: Optional[str] = None
    author: Optional[str] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        if not v.strip():
            raise ValueError("Title must not be empty")
        return v.strip()


class PageWrite(BaseModel):
    """
    Request schema for saving a static page.
    Used by PUT /api/cms/pages/{slug} endpoint.
    """
    title: str
    body: str = ""
    description: Optional[str] = None
    hidden: bool = False
    order: Optional[int] = None
    layout: Optional[str] = None


class GalleryMetadataWrite(BaseModel):
    """
    Request schema for gallery.yaml overrides.
    Used by PUT /api/cms/galleries/{slug}/metadata endpoint.
    A plaintext `password` is hashed before it is written; clearing it
    is done with `remove_password`.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    cover: Optional[str] = None
    tags: Optional[List[str]] = None
    private: Optional[bool] = None
    order: Optional[int] = None
    category: Optional[str] = None
    include_nested_photos: Optional[bool] = Field(default=None, alias="includeNestedPhotos")
    password: Optional[str] = None
    remove_password: bool = False

    model_config = ConfigDict(populate_by_name=True)


class PhotoOverride(BaseModel):
    """
    Per-photo entry of photos.yaml.
    Used by PUT /api/cms/galleries/{slug}/photos endpoint.
    """
    filename: str
    title: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[List[str]] = None
    hidden: Optional[bool] = None
    order: Optional[int] = None

    @field_validator("filename")
    @classmethod
    def validate_filename(cls, v):
        if "/" in v or "\\" in v or v in ("", ".", ".."):
            raise ValueError("Filename must be a bare file name")
        return v


class PhotoOverridesRequest(BaseModel):
    photos: List[PhotoOverride]

    @field_validator("photos")
    @classmethod
    def validate_unique_filenames(cls, v):
        names = [p.filename for p in v]
        if len(names) != len(set(names)):
            raise ValueError("Duplicate filenames are not allowed")
        return v


class GalleryUnlockRequest(BaseModel):
    """
    Request schema for unlocking a password-protected gallery.
    Used by POST /api/galleries/{slug}/unlock endpoint.
    """
    password: str
