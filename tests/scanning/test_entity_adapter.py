"""Tests for the tree-sitter AST adapter."""

import pytest

from flashdoc.exceptions import ErrorCode, ParseError
from flashdoc.model.entities import ANONYMOUS, Access, EntityKind
from flashdoc.scanning import CompileArgs, apply_defines, is_doc_comment, squash

WIDGET = """\
namespace ns {

/// A widget.
class Widget : public Base {
public:
    /// Resize it.
    /// @param w new width
    void resize(int w, const char* name) const;

    int size() const { return size_; }

protected:
    /// Called on change.
    virtual void changed();

private:
    int size_;
};

}  // namespace ns
"""


class TestHelpers:
    """Module-level helpers."""

    def test_doc_comment_markers(self):
        """Only doc comment openers count."""
        assert is_doc_comment("/// x")
        assert is_doc_comment("//! x")
        assert is_doc_comment("/** x */")
        assert is_doc_comment("/*! x */")
        assert not is_doc_comment("// x")
        assert not is_doc_comment("/* x */")
        assert not is_doc_comment("//// banner")
        assert not is_doc_comment("/**/")

    def test_squash(self):
        """Whitespace is collapsed and tidied around punctuation."""
        assert squash("void  f( int a ,\n  int b )") == "void f(int a, int b)"
        assert squash("ns :: Foo") == "ns::Foo"

    def test_apply_defines_whole_words(self):
        """Macros are substituted as whole words only."""
        source = b"API_EXPORT void f(); void API_EXPORT_X();"
        out = apply_defines(source, (("API_EXPORT", ""),))
        assert out == b" void f(); void API_EXPORT_X();"


class TestClassMembers:
    """Classes, access levels and member functions."""

    def test_entities_and_ids(self, adapt, entities_of):
        """Namespace, class, members and overload-discriminated ids."""
        entities = entities_of(adapt(WIDGET))
        assert entities["ns"].kind is EntityKind.NAMESPACE
        assert entities["ns::Widget"].kind is EntityKind.CLASS
        assert "ns::Widget::resize(int, const char *) const" in entities
        assert "ns::Widget::size() const" in entities
        assert entities["ns::Widget::size_"].kind is EntityKind.FIELD

    def test_access_levels(self, adapt, entities_of):
        """Access specifiers apply to the members that follow them."""
        entities = entities_of(adapt(WIDGET))
        assert entities["ns::Widget::resize(int, const char *) const"].access is Access.PUBLIC
        assert entities["ns::Widget::changed()"].access is Access.PROTECTED
        assert entities["ns::Widget::size_"].access is Access.PRIVATE

    def test_default_access(self, adapt, entities_of):
        """Class members default to private, struct members to public."""
        entities = entities_of(adapt("class C { int a; };\nstruct S { int b; };"))
        assert entities["C::a"].access is Access.PRIVATE
        assert entities["S::b"].access is Access.PUBLIC
        assert entities["S"].kind is EntityKind.STRUCT

    def test_bases_and_references(self, adapt, entities_of):
        """Base classes are recorded separately from signature references."""
        entities = entities_of(adapt(WIDGET))
        widget = entities["ns::Widget"]
        assert widget.bases == ("Base",)
        assert "Base" not in widget.references

    def test_docs_attached(self, adapt, entities_of):
        """Consecutive /// lines form one doc block for the next declaration."""
        entities = entities_of(adapt(WIDGET))
        assert entities["ns::Widget"].doc.brief == "A widget."
        resize = entities["ns::Widget::resize(int, const char *) const"]
        assert resize.doc.brief == "Resize it."
        assert resize.doc.params[0].name == "w"
        assert entities["ns::Widget::size() const"].doc is None

    def test_inline_definition_has_body(self, adapt, entities_of):
        """In-class definitions have a body; declarations do not."""
        entities = entities_of(adapt(WIDGET))
        assert entities["ns::Widget::size() const"].has_body
        assert not entities["ns::Widget::resize(int, const char *) const"].has_body

    def test_signature_excludes_body(self, adapt, entities_of):
        """Signatures stop before the function body."""
        entities = entities_of(adapt(WIDGET))
        signature = entities["ns::Widget::size() const"].signature
        assert signature == "int size() const"

    def test_spans_are_one_based(self, adapt, entities_of):
        """Spans use 1-based lines."""
        entities = entities_of(adapt(WIDGET))
        assert entities["ns::Widget"].span.start_line == 4
        assert entities["ns"].span.start_line == 1


class TestFunctions:
    """Free functions and overloads."""

    def test_overloads_have_distinct_ids(self, adapt, entities_of):
        """Parameter types discriminate overloads; names and defaults do not."""
        entities = entities_of(
            adapt("void f(int a = 1);\nvoid f(double);\nvoid f(void);\nvoid f(int* p, int& r);")
        )
        assert set(entities) == {"f(int)", "f(double)", "f()", "f(int *, int &)"}

    def test_references_from_signature(self, adapt, entities_of):
        """Type names in the signature are collected, including template arguments."""
        entities = entities_of(adapt("Result parse(const std::vector<Token>& tokens, Options o);"))
        refs = entities["parse(const std::vector<Token> &, Options)"].references
        assert "Result" in refs
        assert "std::vector<Token>" in refs
        assert "Token" in refs
        assert "Options" in refs

    def test_out_of_line_definition(self, adapt, entities_of):
        """A qualified definition belongs to its class scope."""
        entities = entities_of(adapt("namespace ns {\nvoid Foo::bar(int x) { }\n}"))
        bar = entities["ns::Foo::bar(int)"]
        assert bar.scope == ("ns", "Foo")
        assert bar.out_of_line
        assert bar.has_body

    def test_template_function(self, adapt, entities_of):
        """Template parameters are recorded and not treated as references."""
        entities = entities_of(adapt("template <typename T, int N>\nT first(const T* items);"))
        first = entities["first(const T *)"]
        assert first.template_params == "template<typename T, int N>"
        assert first.template_names == ("T", "N")
        assert "T" not in first.references
        assert first.signature.startswith("template<typename T, int N>")

    def test_operator_names(self, adapt, entities_of):
        """Operators keep a compact name."""
        entities = entities_of(adapt("struct V { bool operator == (const V& o) const; };"))
        assert "V::operator==(const V &) const" in entities


class TestOtherKinds:
    """Enums, typedefs, variables and namespaces."""

    def test_enum_and_enumerators(self, adapt, entities_of):
        """Enumerators are fields of their enum."""
        entities = entities_of(adapt("/// Colors.\nenum class Color { Red, /// Green!\nGreen };"))
        assert entities["Color"].kind is EntityKind.ENUM
        assert entities["Color"].doc.brief == "Colors."
        assert entities["Color::Red"].kind is EntityKind.FIELD
        assert entities["Color::Green"].doc.brief == "Green!"

    def test_typedef_and_alias(self, adapt, entities_of):
        """typedef and using declarations become typedef entities."""
        entities = entities_of(adapt("typedef unsigned long Size;\nusing Handle = Widget*;"))
        assert entities["Size"].kind is EntityKind.TYPEDEF
        assert entities["Handle"].kind is EntityKind.TYPEDEF
        assert entities["Handle"].references == ("Widget",)

    def test_typedef_struct_emits_both(self, adapt, entities_of):
        """A typedef of a named struct produces the struct and the alias."""
        entities = entities_of(adapt("typedef struct point { int x; } point_t;"))
        assert entities["point"].kind is EntityKind.STRUCT
        assert entities["point_t"].kind is EntityKind.TYPEDEF
        assert "{ ... }" in entities["point_t"].signature

    def test_variable(self, adapt, entities_of):
        """Namespace-scope variables are variables; initializers are not references."""
        entities = entities_of(adapt("namespace cfg { const int limit = compute(); }"))
        assert entities["cfg::limit"].kind is EntityKind.VARIABLE

    def test_nested_namespace_specifier(self, adapt, entities_of):
        """namespace a::b produces both namespaces."""
        entities = entities_of(adapt("namespace a::b { struct S {}; }"))
        assert entities["a"].kind is EntityKind.NAMESPACE
        assert entities["a::b"].scope == ("a",)
        assert "a::b::S" in entities

    def test_anonymous_namespace(self, adapt, entities_of):
        """Unnamed namespaces get the anonymous placeholder name."""
        entities = entities_of(adapt("namespace { void hidden(); }"))
        assert entities[ANONYMOUS].kind is EntityKind.NAMESPACE
        assert entities[f"{ANONYMOUS}::hidden()"].is_anonymous

    def test_extern_c_is_transparent(self, adapt, entities_of):
        """Declarations inside extern "C" stay in the enclosing scope."""
        entities = entities_of(adapt('extern "C" {\n/// C api.\nint c_api(void);\n}'))
        assert entities["c_api()"].doc.brief == "C api."


class TestCommentAssociation:
    """Doc comment attachment rules."""

    def test_blank_line_detaches(self, adapt, entities_of):
        """A blank line between comment and declaration detaches the comment."""
        entities = entities_of(adapt("/// Orphan.\n\nvoid f();"))
        assert entities["f()"].doc is None

    def test_plain_comment_breaks_block(self, adapt, entities_of):
        """A plain // comment between doc comment and declaration breaks the block."""
        entities = entities_of(adapt("/// Doc.\n// note\nvoid f();"))
        assert entities["f()"].doc is None

    def test_trailing_comment(self, adapt, entities_of):
        """///< on the same line documents the preceding declaration."""
        entities = entities_of(adapt("struct P {\n    int x; ///< The x.\n};"))
        assert entities["P::x"].doc.brief == "The x."

    def test_block_comment(self, adapt, entities_of):
        """/** */ comments attach like /// comments."""
        entities = entities_of(adapt("/**\n * @brief Sum.\n * @returns total\n */\nint sum();"))
        assert entities["sum()"].doc.brief == "Sum."
        assert entities["sum()"].doc.returns == "total"

    def test_grammar_error_becomes_diagnostic(self, adapt):
        """Malformed tags are recorded per unit, the entity keeps its partial doc."""
        unit = adapt("/// Brief.\n/// @param\nvoid f(int x);")
        assert [d.code for d in unit.diagnostics] == [ErrorCode.FD200]
        assert unit.diagnostics[0].entity_id == "f(int)"
        assert unit.entities[0].doc.brief == "Brief."


class TestSyntaxErrors:
    """Recovery and strict mode."""

    BROKEN = "void ok();\nclass { int ;; @@@ \nvoid also_ok();\n"

    def test_recovery_records_diagnostic(self, adapt):
        """Non-strict mode keeps what it can and reports FD102."""
        unit = adapt(self.BROKEN)
        assert unit.diagnostics[0].code is ErrorCode.FD102
        assert "ok()" in {e.id for e in unit.entities}

    def test_strict_mode_raises(self, adapt):
        """Strict mode fails the file."""
        with pytest.raises(ParseError):
            adapt(self.BROKEN, args=CompileArgs(strict=True))

    def test_defines_applied_before_parsing(self, adapt, entities_of):
        """Export macros are removed so declarations parse cleanly."""
        unit = adapt(
            "class MYLIB_API Engine { };", args=CompileArgs(defines=(("MYLIB_API", ""),))
        )
        assert "Engine" in entities_of(unit)
        assert unit.diagnostics == ()


class TestBackend:
    """TreeSitterBackend file handling."""

    def test_missing_file(self, cpp_backend, tmp_path):
        """Unreadable files raise ParseError."""
        with pytest.raises(ParseError) as exc:
            cpp_backend.parse_translation_unit(tmp_path / "nope.hpp", CompileArgs())
        assert exc.value.reason.startswith("cannot read file")

    def test_content_hash_of_raw_bytes(self, cpp_backend, tmp_path):
        """The content hash covers the file as stored, before define substitution."""
        path = tmp_path / "a.hpp"
        path.write_text("API void f();")
        plain = cpp_backend.parse_translation_unit(path, CompileArgs())
        defined = cpp_backend.parse_translation_unit(path, CompileArgs(defines=(("API", ""),)))
        assert plain.content_hash == defined.content_hash
        assert defined.source == b" void f();"
