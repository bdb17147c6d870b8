"""Bitbucket Cloud API bindings.

Endpoint functions take a :class:`BitbucketClient` as their first argument
and return pydantic models decoded from the API's JSON.
"""

from bbagent.features.bitbucket.client import (
    DEFAULT_BASE_URL,
    BitbucketClient,
    BitbucketOptions,
)
from bbagent.features.bitbucket.review import (
    FileView,
    PRView,
    build_file_view,
    build_pr_view,
)
from bbagent.features.bitbucket.validation import ValidationError


__all__ = [
    "DEFAULT_BASE_URL",
    "BitbucketClient",
    "BitbucketOptions",
    "FileView",
    "PRView",
    "ValidationError",
    "build_file_view",
    "build_pr_view",
]
