"""Tests for the whole-graph reference resolver."""

from conftest import make_entity, make_unit

from flashdoc.comments import parse_doc_comment
from flashdoc.config import ExternalLib
from flashdoc.exceptions import ErrorCode, Severity
from flashdoc.model import Access, EntityKind, EntityModel
from flashdoc.resolve import RefOrigin, ReferenceResolver, unresolved_diagnostics


def frozen(*entities):
    model = EntityModel()
    model.add_unit(make_unit("lib.hpp", *entities))
    return model.freeze()


def fn(entity_id, **fields):
    return make_entity(entity_id, kind=EntityKind.FUNCTION, **fields)


class TestLookup:
    """Mention lookup order."""

    def test_exact_qualified_path(self):
        model = frozen(make_entity("ns::Foo"), fn("use()", references=("ns::Foo",)))
        index = ReferenceResolver(model).resolve()
        assert index.link("use()", "ns::Foo").target == "ns::Foo"

    def test_enclosing_scopes_searched_outward(self):
        """An unqualified name is looked up from the innermost scope outward."""
        model = frozen(
            make_entity("ns::Foo"),
            fn("ns::detail::helper()", references=("Foo",)),
        )
        ref = ReferenceResolver(model).resolve().references("ns::detail::helper()")[0]
        assert ref.target == "ns::Foo"
        assert ref.origin is RefOrigin.SIGNATURE

    def test_enclosing_scope_hides_global_name(self):
        """ns::Foo is found before ::Foo for a mention inside ns."""
        model = frozen(
            make_entity("Foo"),
            make_entity("ns::Foo"),
            fn("ns::f()", references=("Foo",)),
        )
        assert ReferenceResolver(model).resolve().link("ns::f()", "Foo").target == "ns::Foo"

    def test_global_scope_is_outermost(self):
        """A name missing from every enclosing scope falls back to the global one."""
        model = frozen(
            make_entity("Foo"),
            make_entity("ns::Bar"),
            fn("ns::f()", references=("Foo",)),
        )
        assert ReferenceResolver(model).resolve().link("ns::f()", "Foo").target == "Foo"

    def test_qualified_mention_from_enclosing_scope(self):
        """detail::Impl inside ns names ns::detail::Impl."""
        model = frozen(
            make_entity("ns::detail::Impl"),
            make_entity("detail::Impl"),
            fn("ns::f()", references=("detail::Impl",)),
        )
        index = ReferenceResolver(model).resolve()
        assert index.link("ns::f()", "detail::Impl").target == "ns::detail::Impl"

    def test_injected_class_name(self):
        """A member naming its own class links the class, not a constructor."""
        model = frozen(
            make_entity("ns::Widget"),
            fn("ns::Widget::Widget()"),
            fn("ns::Widget::operator=(const Widget &)", references=("Widget",)),
        )
        index = ReferenceResolver(model).resolve()
        assert index.link("ns::Widget::operator=(const Widget &)", "Widget").target == "ns::Widget"

    def test_leading_colons_are_absolute(self):
        """::Foo skips the scope walk."""
        model = frozen(make_entity("Foo"), fn("ns::f()", references=("::Foo",)))
        assert ReferenceResolver(model).resolve().link("ns::f()", "::Foo").target == "Foo"

    def test_template_arguments_stripped(self):
        model = frozen(make_entity("Box"), fn("f()", references=("Box<int>",)))
        assert ReferenceResolver(model).resolve().link("f()", "Box<int>").target == "Box"

    def test_std_goes_to_cppreference(self):
        """std:: names resolve to an external URL, not an entity."""
        model = frozen(fn("f()", references=("std::string",)))
        ref = ReferenceResolver(model).resolve().references("f()")[0]
        assert ref.target is None
        assert ref.is_external
        assert ref.url == "https://en.cppreference.com/mwiki/index.php?search=std::string"

    def test_custom_external_lib(self):
        boost = ExternalLib("boost", "https://boost.example/{path}.html")
        model = frozen(fn("f()", references=("boost::asio::io_context",)))
        ref = ReferenceResolver(model, external_libs=[boost]).resolve().references("f()")[0]
        assert ref.url == "https://boost.example/boost/asio/io_context.html"

    def test_project_entity_beats_external_rule(self):
        model = frozen(make_entity("std::Thing"), fn("f()", references=("std::Thing",)))
        assert ReferenceResolver(model).resolve().link("f()", "std::Thing").target == "std::Thing"

    def test_unresolved(self):
        """Unknown names stay unresolved and become FD300 info diagnostics."""
        model = frozen(fn("f()", references=("Mystery",)))
        index = ReferenceResolver(model).resolve()
        assert [r.text for r in index.unresolved()] == ["Mystery"]
        diagnostics = unresolved_diagnostics(index, model)
        assert [d.code for d in diagnostics] == [ErrorCode.FD300]
        assert diagnostics[0].severity is Severity.INFO
        assert diagnostics[0].path == "lib.hpp"
        assert diagnostics[0].entity_id == "f()"

    def test_see_and_throws_tags(self):
        """@see and @throws names are resolved like signature mentions."""
        doc = parse_doc_comment("/// Does it.\n/// @see Other\n/// @throws Oops on failure")
        model = frozen(make_entity("Other"), make_entity("Oops"), fn("f()", doc=doc))
        refs = ReferenceResolver(model).resolve().references("f()")
        assert [(r.origin, r.target) for r in refs] == [
            (RefOrigin.SEE, "Other"),
            (RefOrigin.THROWS, "Oops"),
        ]

    def test_types_preferred_over_functions_in_signatures(self):
        model = frozen(
            make_entity("ns::Size", kind=EntityKind.TYPEDEF),
            fn("ns::Size()"),
            fn("ns::f()", references=("Size",)),
        )
        assert ReferenceResolver(model).resolve().link("ns::f()", "Size").target == "ns::Size"


class TestInheritance:
    """Bases, derived classes and inherited members."""

    def test_bases_and_derived(self):
        model = frozen(
            make_entity("Base", has_body=True),
            make_entity("Left", bases=("Base",)),
            make_entity("Right", bases=("Base",)),
        )
        index = ReferenceResolver(model).resolve()
        assert index.resolved_bases("Left") == ("Base",)
        assert index.derived_classes("Base") == ("Left", "Right")

    def test_typedef_base_followed(self):
        """A base named through an alias resolves to the aliased class."""
        model = frozen(
            make_entity("Impl"),
            make_entity("Alias", kind=EntityKind.TYPEDEF, references=("Impl",)),
            make_entity("User", bases=("Alias",)),
        )
        assert ReferenceResolver(model).resolve().resolved_bases("User") == ("Impl",)

    def test_alias_cycle_is_dropped(self):
        model = frozen(
            make_entity("A", kind=EntityKind.TYPEDEF, references=("B",)),
            make_entity("B", kind=EntityKind.TYPEDEF, references=("A",)),
            make_entity("User", bases=("A",)),
        )
        assert ReferenceResolver(model).resolve().resolved_bases("User") == ()

    def test_inherited_members_with_hiding(self):
        """Members redeclared in the derived class, private members and constructors are not inherited."""
        model = frozen(
            make_entity("Base"),
            fn("Base::Base()"),
            fn("Base::~Base()"),
            fn("Base::run()"),
            fn("Base::stop()"),
            make_entity("Base::secret", kind=EntityKind.FIELD, access=Access.PRIVATE),
            make_entity("Derived", bases=("Base",)),
            fn("Derived::run()"),
        )
        inherited = ReferenceResolver(model).resolve().inherited_members("Derived")
        assert [(m.member, m.via) for m in inherited] == [("Base::stop()", "Base")]

    def test_diamond_visits_shared_base_once(self):
        model = frozen(
            make_entity("Base"),
            fn("Base::m()"),
            make_entity("Left", bases=("Base",)),
            make_entity("Right", bases=("Base",)),
            fn("Right::r()"),
            make_entity("Bottom", bases=("Left", "Right")),
        )
        inherited = ReferenceResolver(model).resolve().inherited_members("Bottom")
        assert [m.member for m in inherited] == ["Base::m()", "Right::r()"]

    def test_cycle_terminates_with_diagnostic(self):
        """A inherits B inherits A: the walk stops and FD301 is reported."""
        model = frozen(
            make_entity("A", bases=("B",)),
            fn("A::a()"),
            make_entity("B", bases=("A",)),
            fn("B::b()"),
        )
        index = ReferenceResolver(model).resolve()
        assert [m.member for m in index.inherited_members("A")] == ["B::b()"]
        assert {d.entity_id for d in index.diagnostics} == {"A", "B"}
        assert all(d.code is ErrorCode.FD301 for d in index.diagnostics)

    def test_unresolved_base(self):
        model = frozen(make_entity("D", bases=("Nowhere",)))
        index = ReferenceResolver(model).resolve()
        assert index.resolved_bases("D") == ()
        assert index.unresolved()[0].origin is RefOrigin.BASE


class TestDeterminism:
    """The index does not depend on how the pass is scheduled."""

    def test_parallel_matches_serial(self):
        entities = [make_entity(f"ns::C{i}", bases=(f"C{i - 1}",) if i else ()) for i in range(20)]
        entities += [fn(f"ns::f{i}()", references=(f"C{i}", "std::vector<int>")) for i in range(20)]
        model = frozen(*entities)
        serial = ReferenceResolver(model).resolve().to_json()
        parallel = ReferenceResolver(model, max_workers=8).resolve().to_json()
        assert serial == parallel
