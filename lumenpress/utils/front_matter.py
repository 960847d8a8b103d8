"""
Front-matter parsing for posts and pages.

A document may start with a YAML block fenced by `---` lines:

    ---
    title: Tokyo Nights
    tags: [travel, japan]
    ---
    Body text...
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import frontmatter
import yaml

from lumenpress.errors import MalformedContent

_handler = frontmatter.YAMLHandler()


@dataclass
class FrontMatter:
    data: Dict[str, Any] = field(default_factory=dict)
    body: str = ""
    present: bool = False


class MalformedFrontMatter(MalformedContent):
    """Front-matter fence found but its contents are unusable. Carries the best-effort body."""

    def __init__(self, message: str, body: str, path: Optional[str] = None):
        super().__init__(message, path=path)
        self.body = body


def parse_front_matter(text: str, path: Optional[str] = None) -> FrontMatter:
    """
    Split `text` into front-matter data and body.

    Raises MalformedFrontMatter when a fenced block exists but is not closed,
    is not valid YAML, or is not a mapping.
    """
    text = text.lstrip("\ufeff")
    if not _handler.detect(text):
        return FrontMatter(data={}, body=text, present=False)

    try:
        block, body = _handler.split(text)
    except ValueError as e:
        raise MalformedFrontMatter("Front-matter block is not closed", body=text, path=path) from e
    # The closing fence's line break stays on the body
    body = body.lstrip("\r\n")

    try:
        data = _handler.load(block)
    except (yaml.YAMLError, ValueError, TypeError) as e:
        # Timestamps such as 2024-02-30 fail in the constructor, outside YAMLError
        raise MalformedFrontMatter(f"Invalid front-matter YAML: {e}", body=body, path=path) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MalformedFrontMatter("Front-matter must be a key-value mapping", body=body, path=path)

    return FrontMatter(data={str(k): v for k, v in data.items()}, body=body, present=bool(data))


def render_front_matter(data: Dict[str, Any], body: str) -> str:
    """Serialize front-matter and body back into a markdown document."""
    clean = {k: v for k, v in data.items() if v is not None}
    if not clean:
        return body
    post = frontmatter.Post(body.rstrip("\n"), handler=_handler, **clean)
    return frontmatter.dumps(post, sort_keys=False) + "\n"


def parse_yaml_document(text: str, path: Optional[str] = None) -> Any:
    """
    Parse a standalone YAML override file (gallery.yaml, photos.yaml).

    Raises MalformedContent when the text is not valid YAML.
    """
    try:
        return yaml.safe_load(text)
    except (yaml.YAMLError, ValueError, TypeError) as e:
        raise MalformedContent(f"Invalid YAML: {e}", path=path) from e
