"""Tests for the documentation comment lexer and tag grammar parser."""

from flashdoc.comments import (
    DocComment,
    TagKind,
    TokenKind,
    parse_doc_comment,
    strip_comment_markers,
    tokenize,
)


class TestStripCommentMarkers:
    """Comment syntax removal."""

    def test_line_comments(self):
        """/// prefixes are removed and the text dedented."""
        assert strip_comment_markers("/// one\n///   two") == ["one", "  two"]

    def test_block_comment_with_stars(self):
        """Leading * decoration is removed from block comment lines."""
        raw = "/**\n * First line.\n *\n * Second.\n */"
        assert strip_comment_markers(raw) == ["First line.", "", "Second."]

    def test_single_line_block(self):
        """A one-line /** */ comment keeps only its text."""
        assert strip_comment_markers("/** Just this. */") == ["Just this."]

    def test_decoration_lines_dropped(self):
        """Lines made of only stars and slashes become blank and are trimmed."""
        raw = "/*********\n * Boxed\n *********/"
        assert strip_comment_markers(raw) == ["Boxed"]


class TestLexer:
    """Token stream."""

    def test_tags_and_text(self):
        """A marker at line start is a TAG followed by its TEXT."""
        tokens = tokenize("/// @param x the value")
        assert [t.kind for t in tokens] == [TokenKind.TAG, TokenKind.TEXT]
        assert tokens[0].value == "param"

    def test_blank_lines_collapse(self):
        """Several blank lines produce a single BLANK token."""
        tokens = tokenize("/// a\n///\n///\n/// b")
        assert [t.kind for t in tokens] == [TokenKind.TEXT, TokenKind.BLANK, TokenKind.TEXT]

    def test_direction_glued_to_marker(self):
        """@param[in,out] keeps its direction inside the TAG token."""
        tokens = tokenize("/// @param[in,out] buf data")
        assert tokens[0].value == "param[in,out]"

    def test_no_tags_inside_fence(self):
        """Markers inside a fenced block are plain text."""
        tokens = tokenize("/// ```\n/// @param x\n/// ```")
        assert TokenKind.TAG not in [t.kind for t in tokens]


class TestBriefAndDetailed:
    """Leading untagged paragraphs."""

    def test_first_paragraph_is_brief(self):
        """Text up to the first blank line is the brief; the rest is detailed."""
        doc = parse_doc_comment("/// Adds numbers.\n///\n/// Longer text\n/// over two lines.")
        assert doc.brief == "Adds numbers."
        assert doc.detailed == "Longer text\nover two lines."

    def test_explicit_brief_tag(self):
        """@brief ends at the paragraph break; later text is detailed."""
        doc = parse_doc_comment("/// @brief Short.\n///\n/// More.")
        assert doc.brief == "Short."
        assert doc.detailed == "More."

    def test_multiline_brief(self):
        """A brief may span lines until the first blank line."""
        doc = parse_doc_comment("/// One\n/// two.")
        assert doc.brief == "One\ntwo."
        assert doc.detailed == ""

    def test_inline_commands_become_markdown(self):
        """@c and @b are rewritten to markdown code and bold."""
        doc = parse_doc_comment("/// Use @c foo and @b bar here.")
        assert doc.brief == "Use `foo` and **bar** here."

    def test_empty_comment(self):
        """A comment without text has no tags."""
        doc = parse_doc_comment("///")
        assert doc.is_empty
        assert doc.error is None


class TestTags:
    """Tag fields and payloads."""

    def test_param_and_returns(self):
        """@param names and @returns text are captured in order."""
        doc = parse_doc_comment(
            "/// Adds.\n"
            "/// @param a first operand\n"
            "/// @param[out] b second operand\n"
            "/// @returns the sum"
        )
        params = doc.params
        assert [p.name for p in params] == ["a", "b"]
        assert params[0].text == "first operand"
        assert params[0].direction is None
        assert params[1].direction == "out"
        assert doc.returns == "the sum"

    def test_backslash_markers(self):
        """\\param works like @param."""
        doc = parse_doc_comment("/// \\param count how many")
        assert doc.params[0].name == "count"

    def test_param_names_are_never_empty(self):
        """Every parsed parameter tag has a non-empty name."""
        doc = parse_doc_comment("/// @param x one\n/// @param y, two\n/// @param ... rest")
        assert [p.name for p in doc.params] == ["x", "y", "..."]
        assert all(p.name for p in doc.params)

    def test_tparam_retval_throws_see(self):
        """Field-carrying tags read their first word."""
        doc = parse_doc_comment(
            "/// @tparam T element type\n"
            "/// @retval nullptr on failure\n"
            "/// @throws std::out_of_range if empty\n"
            "/// @see ns::Other::method()"
        )
        assert doc.of_kind(TagKind.TPARAM)[0].name == "T"
        assert doc.of_kind(TagKind.RETVAL)[0].name == "nullptr"
        assert doc.of_kind(TagKind.THROWS)[0].name == "std::out_of_range"
        assert doc.of_kind(TagKind.THROWS)[0].text == "if empty"
        assert doc.see_also[0].name == "ns::Other::method()"

    def test_deprecated_and_notes(self):
        """@deprecated, @note, @warning and @since are recorded."""
        doc = parse_doc_comment(
            "/// @deprecated use other()\n/// @note careful\n/// @warning hot\n/// @since 1.2"
        )
        assert doc.deprecated is not None
        assert doc.deprecated.text == "use other()"
        kinds = [t.kind for t in doc.tags]
        assert kinds == [TagKind.DEPRECATED, TagKind.NOTE, TagKind.WARNING, TagKind.SINCE]

    def test_group(self):
        """@ingroup names a group."""
        doc = parse_doc_comment("/// @ingroup io")
        assert doc.groups == ("io",)

    def test_unknown_tag_kept(self):
        """Unrecognized markers become UNKNOWN tags with their marker."""
        doc = parse_doc_comment("/// @frobnicate with care")
        tag = doc.tags[0]
        assert tag.kind is TagKind.UNKNOWN
        assert tag.marker == "frobnicate"
        assert tag.text == "with care"

    def test_email_is_not_a_tag(self):
        """An @ inside a word does not start a tag."""
        doc = parse_doc_comment("/// Mail user@example.com for help.")
        assert doc.brief == "Mail user@example.com for help."


class TestGrammarErrors:
    """Recovery from malformed comments."""

    def test_missing_param_name(self):
        """@param without a name records an error and keeps earlier tags."""
        doc = parse_doc_comment("/// @brief Hi.\n/// @param")
        assert doc.brief == "Hi."
        assert doc.params == ()
        assert "expected parameter name" in doc.error

    def test_invalid_param_name(self):
        """A parameter name must be an identifier."""
        doc = parse_doc_comment("/// @param 3d coordinates")
        assert doc.error is not None
        assert "invalid parameter name" in doc.error

    def test_unterminated_fence(self):
        """An unclosed code block is reported and closed."""
        doc = parse_doc_comment("/// Brief.\n///\n/// ```\n/// int x;")
        assert doc.error == "unterminated code block"
        assert doc.detailed.endswith("```")


class TestCodeBlocks:
    """Fenced and @code blocks."""

    def test_fence_contents_verbatim(self):
        """A tag marker inside a fence stays in the detailed text."""
        doc = parse_doc_comment("/// Brief.\n///\n/// ```\n/// @param x\n/// ```")
        assert doc.params == ()
        assert "@param x" in doc.detailed

    def test_code_endcode_becomes_fence(self):
        """@code/@endcode is rewritten to a cpp fence."""
        doc = parse_doc_comment("/// Brief.\n///\n/// @code\n/// f();\n/// @endcode")
        assert doc.detailed.startswith("```cpp")
        assert "f();" in doc.detailed
        assert doc.detailed.endswith("```")


class TestSerialization:
    """DocComment JSON form."""

    def test_json_round_trip(self):
        """to_json/from_json preserve tags and error."""
        doc = parse_doc_comment("/// Brief.\n/// @param[in] x value\n/// @param")
        restored = DocComment.from_json(doc.to_json())
        assert restored == doc
