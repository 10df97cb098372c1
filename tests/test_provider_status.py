from __future__ import annotations

import itertools

from src.domain.provider_catalog import extract_provider_catalog
from src.domain.provider_status import (
    create_provider_status_resolver,
    resolve_custom_values_sync_action,
    resolve_custom_values_sync_readiness,
)
from src.models.accounts import AccountData
from src.models.providers import ProviderConnectionStatus


GHL_CATALOG = extract_provider_catalog(
    {
        "providers": [
            {
                "provider": "ghl",
                "oauthSupported": True,
                "oauthMode": "agency",
                "capabilities": {"auth": "both", "customValues": True},
            }
        ]
    }
)


def _account(**fields) -> AccountData:
    return AccountData.model_validate({"key": "acme", **fields})


def test_oauth_connection_wins_over_api_key_connection():
    account = _account(
        oauthConnections=[
            {
                "provider": "GHL",
                "locationId": "loc-1",
                "locationName": "Acme Motors",
                "scopes": ["locations.readonly"],
                "installedAt": "2026-02-01T10:00:00Z",
            }
        ],
        espConnections=[{"provider": "ghl", "accountId": "acct-9"}],
    )
    resolver = create_provider_status_resolver(GHL_CATALOG, account)

    status = resolver.get_provider_status(" GHL ")

    assert status.connected is True
    assert status.connection_type == "oauth"
    assert status.oauth_connected is True
    assert status.scopes == ["locations.readonly"]
    assert status.location_id == "loc-1"
    assert status.location_name == "Acme Motors"
    assert status.installed_at == "2026-02-01T10:00:00Z"


def test_oauth_connection_without_scopes_yields_empty_list():
    account = _account(oauthConnections=[{"provider": "ghl"}])

    status = create_provider_status_resolver(GHL_CATALOG, account).get_provider_status("ghl")

    assert status.scopes == []
    assert status.connected is True


def test_oauth_scopes_stored_as_json_string_are_parsed():
    account = _account(oauthConnections=[{"provider": "ghl", "scopes": '["a.read", "b.write"]'}])

    status = create_provider_status_resolver(GHL_CATALOG, account).get_provider_status("ghl")

    assert status.scopes == ["a.read", "b.write"]


def test_api_key_connection_has_no_scopes():
    account = _account(espConnections=[{"provider": "ghl", "accountId": "acct-9", "accountName": "Acme"}])

    status = create_provider_status_resolver(GHL_CATALOG, account).get_provider_status("ghl")

    assert status.connection_type == "api-key"
    assert status.oauth_connected is False
    assert status.connected is True
    assert status.scopes == []
    assert status.account_id == "acct-9"
    assert status.account_name == "Acme"


def test_no_connection_resolves_to_none():
    resolver = create_provider_status_resolver(GHL_CATALOG, _account(connectedProviders=["ghl"]))

    status = resolver.get_provider_status("ghl")

    assert status.connection_type == "none"
    assert status.connected is False
    assert status.scopes == []
    assert resolver.has_any_provider_connection is False


def test_active_connection_fills_location_from_account():
    account = _account(
        activeConnection={"provider": "ghl", "connected": True, "connectionType": "oauth", "scopes": "a b"},
        activeLocationId="loc-active",
    )

    status = create_provider_status_resolver(GHL_CATALOG, account).get_provider_status("ghl")

    assert status.connection_type == "oauth"
    assert status.scopes == ["a", "b"]
    assert status.location_id == "loc-active"


def test_disconnected_active_connection_is_ignored():
    account = _account(activeConnection={"provider": "ghl", "connected": False, "connectionType": "oauth"})

    status = create_provider_status_resolver(GHL_CATALOG, account).get_provider_status("ghl")

    assert status.connected is False


def test_catalog_status_hint_is_used_when_account_has_no_records():
    catalog = extract_provider_catalog(
        {
            "providers": [
                {
                    "provider": "klaviyo",
                    "connected": True,
                    "connectionType": "api-key",
                    "accountId": "kl-1",
                }
            ]
        }
    )

    status = create_provider_status_resolver(catalog, _account()).get_provider_status("klaviyo")

    assert status.connection_type == "api-key"
    assert status.account_id == "kl-1"


def test_has_any_provider_connection_checks_whole_catalog():
    catalog = extract_provider_catalog({"providers": [{"provider": "ghl"}, {"provider": "klaviyo"}]})
    account = _account(espConnections=[{"provider": "klaviyo"}])

    assert create_provider_status_resolver(catalog, account).has_any_provider_connection is True


def test_provider_by_id_indexes_normalized_keys():
    resolver = create_provider_status_resolver(GHL_CATALOG, _account())

    assert set(resolver.provider_by_id) == {"ghl"}


def test_required_scopes_subset_check():
    status = ProviderConnectionStatus(
        provider="ghl", connected=True, connection_type="oauth", oauth_connected=True, scopes=["a", "b"]
    )

    assert resolve_custom_values_sync_readiness(True, status, ["a"]).has_required_scopes is True
    assert resolve_custom_values_sync_readiness(True, status, ["a", "c"]).has_required_scopes is False
    assert resolve_custom_values_sync_readiness(True, status, []).has_required_scopes is True
    assert resolve_custom_values_sync_readiness(True, status, None).has_required_scopes is True


def test_empty_required_scopes_with_no_granted_scopes_is_ready():
    status = ProviderConnectionStatus(provider="ghl", connected=True, connection_type="api-key")

    readiness = resolve_custom_values_sync_readiness(True, status, [])

    assert readiness.ready_for_sync is True
    assert readiness.needs_reauthorization is False


def test_readiness_states_are_mutually_exclusive():
    statuses = [
        ProviderConnectionStatus(provider="ghl", connected=False, connection_type="none"),
        ProviderConnectionStatus(provider="ghl", connected=True, connection_type="api-key"),
        ProviderConnectionStatus(
            provider="ghl", connected=True, connection_type="oauth", oauth_connected=True, scopes=["a"]
        ),
        ProviderConnectionStatus(
            provider="ghl", connected=True, connection_type="oauth", oauth_connected=True, scopes=["a", "b"]
        ),
    ]
    scope_sets = [[], ["a"], ["a", "b"], ["c"]]

    for supports, status, required in itertools.product([True, False], statuses, scope_sets):
        readiness = resolve_custom_values_sync_readiness(supports, status, required)
        assert not (readiness.ready_for_sync and readiness.needs_reauthorization)
        assert readiness.ready_for_sync == (supports and status.connected and readiness.has_required_scopes)

        action = resolve_custom_values_sync_action(readiness, status)
        assert action in {"push", "reauthorize", "unsupported", "not_connected"}
        assert (action == "push") == readiness.ready_for_sync
        if readiness.needs_reauthorization:
            assert action == "reauthorize"
        if not supports:
            assert action == "unsupported"
        elif not status.connected:
            assert action == "not_connected"


def test_ghl_agency_connection_missing_scope_needs_reauthorization():
    account = _account(oauthConnections=[{"provider": "ghl", "scopes": ["locations.readonly"]}])
    resolver = create_provider_status_resolver(GHL_CATALOG, account)
    status = resolver.get_provider_status("ghl")

    readiness = resolve_custom_values_sync_readiness(
        supports_custom_values=resolver.provider_by_id["ghl"].capabilities.custom_values,
        provider_status=status,
        required_scopes=["locations.readonly", "contacts.write"],
    )

    assert status.connected is True
    assert readiness.needs_reauthorization is True
    assert readiness.ready_for_sync is False
    assert resolve_custom_values_sync_action(readiness, status) == "reauthorize"


def test_ghl_agency_connection_with_all_scopes_is_ready():
    account = _account(
        oauthConnections=[{"provider": "ghl", "scopes": ["locations.readonly", "contacts.write"]}]
    )
    resolver = create_provider_status_resolver(GHL_CATALOG, account)
    status = resolver.get_provider_status("ghl")

    readiness = resolve_custom_values_sync_readiness(
        supports_custom_values=True,
        provider_status=status,
        required_scopes=["locations.readonly", "contacts.write"],
    )

    assert readiness.ready_for_sync is True
    assert readiness.needs_reauthorization is False
    assert resolve_custom_values_sync_action(readiness, status) == "push"
