import pytest

from social_wallet.core.exceptions import InvalidScopeError
from social_wallet.schemas.oauth import Scope, join_scopes, parse_scopes


def test_parse_space_delimited_and_list_forms():
    assert parse_scopes("profile gifts") == [Scope.PROFILE, Scope.GIFTS]
    assert parse_scopes(["wallet", "analytics"]) == [Scope.WALLET, Scope.ANALYTICS]


def test_duplicates_and_blanks_dropped_in_request_order():
    assert parse_scopes("gifts  profile gifts") == [Scope.GIFTS, Scope.PROFILE]
    assert parse_scopes(None) == []


def test_unknown_scope_lists_offenders():
    with pytest.raises(InvalidScopeError) as exc:
        parse_scopes("profile admin root")
    assert exc.value.details == {"invalid": ["admin", "root"]}


def test_join_scopes():
    assert join_scopes([Scope.PROFILE, "gifts"]) == "profile gifts"
