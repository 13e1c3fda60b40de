import copy

import pytest

from netflix_session import config, resolver
from netflix_session.auth import ContextBootstrapper
from netflix_session.exceptions import InactiveAccountError, MissingProfileError, StructuralMismatch
from netflix_session.extractor import extract_context
from netflix_session.session import SessionContext
from fakes import BUILD_ID, API_ROOT, context_data_page, context_page, react_context_models, react_context_page


def test_classify_variants():
    react = extract_context(react_context_page())
    data = extract_context(context_data_page())

    assert isinstance(resolver.classify(react), resolver.ReactContextVariant)
    assert isinstance(resolver.classify(data), resolver.ContextDataVariant)
    assert resolver.classify({"window": {}, "netflix": {"other": 1}}) == resolver.Unrecognized(("other",))
    assert resolver.classify({}) == resolver.Unrecognized(())


def test_resolve_react_context():
    tree = extract_context(react_context_page(auth_url="tok", identifiers={"/profiles": "abc"}))

    resolved = resolver.resolve(tree, "/YourAccount")

    assert resolved.api_root == API_ROOT
    assert resolved.api_root == config.API_PREFIX + BUILD_ID
    assert resolved.build_id == BUILD_ID
    assert resolved.endpoint_identifiers == {"/profiles": "abc"}
    assert resolved.auth_token == "tok"
    assert resolved.bootstrap_url == "/YourAccount"


def test_resolve_context_data_has_no_identifiers():
    tree = extract_context(context_data_page(build_id="v42", auth_url="legacy"))

    resolved = resolver.resolve(tree, "/ManageProfiles")

    assert resolved.api_root == config.API_PREFIX + "v42"
    assert resolved.endpoint_identifiers == {}
    assert resolved.auth_token == "legacy"


def test_inactive_account():
    tree = extract_context(react_context_page(current_member=False))

    with pytest.raises(InactiveAccountError):
        resolver.resolve(tree, "/YourAccount")


def test_missing_member_context():
    tree = extract_context(react_context_page(member_context=False))

    with pytest.raises(MissingProfileError):
        resolver.resolve(tree, "/YourAccount")


def test_missing_build_identifier():
    tree = extract_context(context_page('netflix.contextData = {"serverDefs": {}, "authURL": "x"};'))

    with pytest.raises(StructuralMismatch, match="BUILD_IDENTIFIER"):
        resolver.resolve(tree, "/YourAccount")


def test_unrecognized_shape_is_fatal():
    tree = extract_context(context_page('netflix.somethingNew = {"models": {}};'))

    with pytest.raises(StructuralMismatch, match="somethingNew"):
        resolver.resolve(tree, "/YourAccount")


def test_apply_keys_tokens_by_bootstrap_url():
    context = SessionContext()
    first = resolver.resolve(extract_context(react_context_page(auth_url="a")), "/YourAccount")
    second = resolver.resolve(extract_context(context_data_page(auth_url="b")), "/ManageProfiles")

    resolver.apply(context, first)
    resolver.apply(context, second)

    assert context.auth_tokens == {"/YourAccount": "a", "/ManageProfiles": "b"}
    assert context.auth_token("/YourAccount") == "a"
    assert context.is_bootstrapped


def test_failed_bootstrap_leaves_context_untouched(fake):
    context = SessionContext(
        api_root="https://old.example/api",
        build_id="vold",
        endpoint_identifiers={"/profiles": "old"},
        auth_tokens={"/YourAccount": "old-token"},
    )
    before = copy.deepcopy(context)
    fake.pages["/YourAccount"] = "<html><body><p>No state here</p></body></html>"

    with fake.client() as client:
        with pytest.raises(StructuralMismatch):
            ContextBootstrapper(client, context).bootstrap_url("/YourAccount")

    assert context == before
    assert context.models == before.models


@pytest.mark.parametrize("identifiers", ["abc", ["/profiles", "abc"], 7])
def test_endpoint_identifiers_must_be_an_object(identifiers):
    models = react_context_models()
    models["serverDefs"]["data"]["endpointIdentifiers"] = identifiers
    tree = {"window": {}, "netflix": {"reactContext": {"models": models}}}

    with pytest.raises(StructuralMismatch, match="endpointIdentifiers"):
        resolver.resolve(tree, "/YourAccount")
