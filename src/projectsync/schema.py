"""Field schema for GitHub project records.

Fields without a source_path are edited locally (URL, presentation flags,
override switches) or written by enrichment (readme, contributors_count)
and are never touched by the field mapper.

Nested values use colon paths, e.g. ``license:name`` or ``owner:login``.
"""

from .fields import FieldKind, FieldSchema, FieldSpec

__all__ = [
    "CONTRIBUTORS_FIELD",
    "PROJECT_SCHEMA",
    "README_FIELD",
    "URL_FIELD",
    "build_project_schema",
]

URL_FIELD = "github_url"
README_FIELD = "readme"
CONTRIBUTORS_FIELD = "contributors_count"


def _api(name: str, default=0, path: str | None = None, **kwargs) -> FieldSpec:
    return FieldSpec(name=name, default=default, source_path=path or name, **kwargs)


def build_project_schema() -> FieldSchema:
    """Build the FieldSchema for a synced GitHub project."""
    return FieldSchema(
        [
            # Local fields
            FieldSpec(URL_FIELD, default="", is_url_field=True),
            FieldSpec("website", default=""),
            FieldSpec("gradient_start", default="#ffffff"),
            FieldSpec("gradient_end", default="#ffffff"),
            FieldSpec("featured", default=0),
            FieldSpec("archive", default=0),
            FieldSpec("override_description", default=0),
            FieldSpec("override_readme", default=0),
            FieldSpec(README_FIELD, default=""),
            FieldSpec(CONTRIBUTORS_FIELD, default=0),
            # Repository payload
            _api("github_id", path="id"),
            _api("name", default="", is_title_field=True),
            _api("full_name", default=""),
            _api("owner", default="", path="owner:login"),
            _api("private"),
            _api("html_url", default=""),
            _api("description", default="", kind=FieldKind.CUSTOM),
            _api("fork"),
            _api("url", default=""),
            _api("created_at", kind=FieldKind.DATETIME),
            _api("updated_at", kind=FieldKind.DATETIME),
            _api("pushed_at", kind=FieldKind.DATETIME),
            _api("git_url", default=""),
            _api("ssh_url", default=""),
            _api("homepage", default=""),
            _api("size"),
            _api("stargazers_count"),
            _api("watchers_count"),
            _api("language"),
            _api("has_issues"),
            _api("has_projects"),
            _api("has_downloads"),
            _api("has_wiki"),
            _api("has_pages"),
            _api("forks_count"),
            _api("mirror_url", default=""),
            _api("archived"),
            _api("open_issues_count"),
            _api("license", default="", path="license:name"),
            _api("forks"),
            _api("open_issues"),
            _api("watchers"),
            _api("default_branch", default="master"),
            _api("network_count"),
            _api("subscribers_count"),
        ]
    )


PROJECT_SCHEMA = build_project_schema()
