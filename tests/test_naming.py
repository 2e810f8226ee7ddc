"""Tests for mdlayer.naming module."""

from __future__ import annotations

import pytest

from mdlayer.naming import (
    generate_type_name,
    get_data_variable_name,
    get_document_id_and_slug,
    id_to_file_name,
    make_variable_name,
    pluralize,
    singularize,
    slugify,
    to_pascal_case,
    unique_variable_names,
)


class TestDocumentIdAndSlug:
    def test_id_preserves_relative_path(self):
        doc_id, _ = get_document_id_and_slug("blog/Guide One.md")
        assert doc_id == "blog/Guide One.md"

    def test_slug_per_segment(self):
        _, slug = get_document_id_and_slug("blog/Guide One.md")
        assert slug == "blog/guide-one"

    def test_index_segment_dropped(self):
        _, slug = get_document_id_and_slug("blog/index.md")
        assert slug == "blog"

    def test_index_only_dropped_at_end(self):
        _, slug = get_document_id_and_slug("index/post.md")
        assert slug == "index/post"

    def test_backslashes_normalized(self):
        doc_id, slug = get_document_id_and_slug("blog\\Post.md")
        assert doc_id == "blog/Post.md"
        assert slug == "blog/post"


class TestSlugify:
    def test_lowercase_hyphenated(self):
        assert slugify("Hello World") == "hello-world"

    def test_strips_punctuation(self):
        assert slugify("What's new?") == "whats-new"

    def test_keeps_unicode_letters(self):
        assert slugify("Café Olé") == "café-olé"


class TestFileAndVariableNames:
    def test_id_to_file_name_flattens(self):
        assert id_to_file_name("blog/nested/post.md") == "blog__nested__post.md"

    def test_id_to_file_name_pads_digit(self):
        assert id_to_file_name("2024/post.md") == "_2024__post.md"

    def test_variable_name_is_identifier(self):
        name = make_variable_name("blog/Guide One.md")
        assert name == "blogGuideOneMd"
        assert name.isidentifier()

    def test_variable_name_pads_digit(self):
        assert make_variable_name("2024-recap.md").startswith("_")

    def test_variable_name_is_stable(self):
        assert make_variable_name("a/b.md") == make_variable_name("a/b.md")

    def test_unique_names_avoid_collisions(self):
        names = unique_variable_names(["a-b.md", "a_b.md", "c.md"])
        assert len(set(names)) == 3
        assert names[0] == make_variable_name("a-b.md")
        assert names[1] == names[0] + "_2"


class TestTypeNames:
    def test_pascal_case(self):
        assert to_pascal_case("blog-post") == "BlogPost"

    def test_data_variable_name(self):
        assert get_data_variable_name("blog-post") == "allBlogPosts"

    def test_data_variable_name_y_ending(self):
        assert get_data_variable_name("category") == "allCategories"

    def test_type_name_singular(self):
        assert generate_type_name("blog-posts") == "BlogPost"

    @pytest.mark.parametrize(
        ("singular", "plural"),
        [("Post", "Posts"), ("Box", "Boxes"), ("Story", "Stories"), ("Person", "People")],
    )
    def test_pluralize_round_trip(self, singular: str, plural: str):
        assert pluralize(singular) == plural
        assert singularize(plural) == singular

    def test_uncountable(self):
        assert pluralize("Data") == "Data"
