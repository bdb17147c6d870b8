"""Repository download artifacts."""

from collections.abc import Sequence

from bbagent.features.bitbucket.client import BitbucketClient
from bbagent.features.bitbucket.validation import require
from bbagent.features.transport.models import MultipartFile


DOWNLOADS_FIELD = "files"


def upload_download(
    client: BitbucketClient,
    repo_slug: str,
    files: Sequence[tuple[str, bytes]],
) -> None:
    """Upload one or more files to a repository's Downloads section.

    The multipart payload is buffered so the upload survives retries.

    Args:
        client: Bitbucket client.
        repo_slug: Repository slug.
        files: (file name, content) pairs.

    Raises:
        ValidationError: If the repository slug is empty.
        ConfigurationError: If no files are given or a file has no content.
    """
    require(repo_slug, "repository slug")
    parts = [
        MultipartFile(field_name=DOWNLOADS_FIELD, file_name=name, content=content)
        for name, content in files
    ]
    request = client.http.new_multipart_request(
        "POST", client.repo_path(repo_slug, "downloads"), parts
    )
    client.http.do(request)
