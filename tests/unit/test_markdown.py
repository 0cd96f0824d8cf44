"""Tests for README image rewriting."""

from projectsync.markdown import rewrite_relative_images

REPO_API_URL = "https://api.github.com/repos/o/r"


def test_relative_image_rebased_to_raw_url():
    result = rewrite_relative_images(REPO_API_URL, "![alt](img/logo.png)")
    assert result == "![alt](https://github.com/o/r/raw/master/img/logo.png)"


def test_blob_segment_replaced_in_absolute_url():
    markdown = "![shot](https://github.com/o/r/blob/main/docs/shot.gif)"
    result = rewrite_relative_images(REPO_API_URL, markdown)
    assert result == "![shot](https://github.com/o/r/raw/main/docs/shot.gif)"


def test_non_image_link_untouched():
    markdown = "See [text](page.html) for details."
    assert rewrite_relative_images(REPO_API_URL, markdown) == markdown


def test_absolute_image_without_blob_untouched():
    markdown = "![badge](https://img.shields.io/badge/build-passing.png)"
    assert rewrite_relative_images(REPO_API_URL, markdown) == markdown


def test_unsupported_extension_untouched():
    markdown = "![diagram](docs/diagram.svg)"
    assert rewrite_relative_images(REPO_API_URL, markdown) == markdown


def test_surrounding_markdown_preserved():
    markdown = "# Title\n\nIntro text.\n\n![logo](logo.jpg)\n\nMore text.\n"
    result = rewrite_relative_images(REPO_API_URL, markdown)
    assert result == (
        "# Title\n\nIntro text.\n\n"
        "![logo](https://github.com/o/r/raw/master/logo.jpg)\n\nMore text.\n"
    )


def test_each_line_rewritten_independently():
    markdown = "![a](a.png)\n![b](https://github.com/o/r/blob/master/b.jpeg)"
    result = rewrite_relative_images(REPO_API_URL, markdown)
    assert result.splitlines() == [
        "![a](https://github.com/o/r/raw/master/a.png)",
        "![b](https://github.com/o/r/raw/master/b.jpeg)",
    ]


def test_branch_is_configurable():
    result = rewrite_relative_images(REPO_API_URL, "![x](x.png)", branch="main")
    assert result == "![x](https://github.com/o/r/raw/main/x.png)"


def test_title_text_after_extension_kept():
    result = rewrite_relative_images(REPO_API_URL, '![x](x.png "Logo")')
    assert result == '![x](https://github.com/o/r/raw/master/x.png "Logo")'


def test_two_images_on_one_line_both_rewritten():
    result = rewrite_relative_images(REPO_API_URL, "![a](img/a.png) ![b](img/b.png)")
    assert result == (
        "![a](https://github.com/o/r/raw/master/img/a.png) "
        "![b](https://github.com/o/r/raw/master/img/b.png)"
    )


def test_badge_row_rewrites_only_relative_images():
    markdown = (
        "[![ci](https://img.shields.io/ci.png)](https://ci.example.com) "
        "![shot](docs/shot.gif) [docs](docs/index.html)"
    )
    result = rewrite_relative_images(REPO_API_URL, markdown)
    assert result == (
        "[![ci](https://img.shields.io/ci.png)](https://ci.example.com) "
        "![shot](https://github.com/o/r/raw/master/docs/shot.gif) [docs](docs/index.html)"
    )
