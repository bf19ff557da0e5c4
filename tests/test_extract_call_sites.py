from __future__ import annotations

import pytest

from contract.errors import ParseError
from contract.models import Variant
from parse.factory_calls import _factory_name, extract_call_sites

SPEC = """\
describe "accounts" do
  let(:user) { create(:user, name: "create(:ghost)") }
  let!(:admin) { FactoryBot.build :user, :admin }
  subject { build_stubbed(:account) }
  # create(:commented_out)

  it "works" do
    post = create("post")
    @draft = build(:"draft-post")
  end

  def create(attrs)
  end
end
"""


def test_extracts_sites_in_text_order() -> None:
    sites = extract_call_sites(SPEC)

    assert [(site.variant, site.schema_name) for site in sites] == [
        (Variant.PERSISTED, "user"),
        (Variant.TRANSIENT, "user"),
        (Variant.STUB_PERSISTED, "account"),
        (Variant.PERSISTED, "post"),
        (Variant.TRANSIENT, "draft-post"),
    ]
    assert [site.source_span.start for site in sites] == sorted(
        site.source_span.start for site in sites
    )
    assert len({site.id for site in sites}) == len(sites)


def test_resolves_bindings() -> None:
    sites = extract_call_sites(SPEC)

    assert [site.binding_name for site in sites] == [
        "user",
        "admin",
        "subject",
        "post",
        "@draft",
    ]


def test_callee_span_covers_strategy_name_only() -> None:
    for site in extract_call_sites(SPEC):
        span = site.callee_span
        assert SPEC[span.start : span.end] == site.variant.value
        assert site.source_span.contains(span)


def test_receiver_and_paren_less_arguments() -> None:
    site = extract_call_sites(SPEC)[1]

    assert SPEC[site.source_span.start : site.source_span.end] == (
        "FactoryBot.build :user, :admin"
    )
    assert site.argument_text == ":user, :admin"


def test_site_id_and_line_numbers() -> None:
    site = extract_call_sites("let(:user) { create(:user) }\n")[0]

    assert site.id == "site:L1:C14:create:user"
    assert site.source_span.start_line == 1
    assert site.source_span.start_col == 14
    assert site.argument_text == ":user"


def test_nested_call_records_enclosing_variant() -> None:
    text = "let(:post) { create(:post, author: build_stubbed(:user)) }\n"
    outer, inner = extract_call_sites(text)

    assert outer.enclosing_variant is None
    assert outer.binding_name == "post"
    assert inner.enclosing_variant is Variant.PERSISTED
    assert inner.binding_name is None
    assert not outer.callee_span.overlaps(inner.callee_span)


def test_non_literal_factory_name_is_a_parse_error() -> None:
    (site,) = extract_call_sites("record = create(factory_name, title: 'x')\n")

    assert site.parse_error == "first argument is not a factory name literal"
    assert site.schema_name is None
    assert site.id.endswith(":create:<unparsed>")
    assert not site.parsed


def test_unbalanced_arguments_are_a_parse_error() -> None:
    (site,) = extract_call_sites("let(:user) { create(:user, name: 'x' }\n")

    assert site.parse_error == "unbalanced parentheses in argument list"
    assert site.binding_name is None


@pytest.mark.parametrize(
    ("args", "expected"),
    [(":user, name: 1", "user"), (':"draft-post"', "draft-post"), ("'admin'", "admin")],
)
def test_factory_name_literals(args: str, expected: str) -> None:
    assert _factory_name(args, 0, len(args)) == expected


def test_factory_name_rejects_expressions() -> None:
    with pytest.raises(ParseError, match="not a factory name literal"):
        _factory_name("factory_name, title: 1", 0, 22)


def test_ignores_lookalikes() -> None:
    text = (
        "post.comments.create(body: 'hi')\n"
        "Comment.create!(post: post)\n"
        "rebuild(:thing)\n"
        "create_list(:user, 3)\n"
        "create user_attributes\n"
        "created = :create\n"
    )

    assert extract_call_sites(text) == []
