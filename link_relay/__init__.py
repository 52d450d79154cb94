"""
LinkRelay package initializer.
Defines package version and exposes the metadata extraction API.
"""
__version__ = "0.1.0"

from link_relay.parser import (
    PageMetadata,
    build_favicon_tag,
    extract_metadata,
    extract_metadata_async,
    resolve_favicon,
)

__all__ = [
    "__version__",
    "PageMetadata",
    "build_favicon_tag",
    "extract_metadata",
    "extract_metadata_async",
    "resolve_favicon",
]
