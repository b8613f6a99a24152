from zapdesk.outbound.factory import ProviderSelector, build_provider, config_hash
from zapdesk.outbound.settings import WHATSAPP_CONFIG_KEY, ProviderConfig
from zapdesk.outbound.ultramsg import UltraMsgProvider
from zapdesk.outbound.zapi import ZAPIProvider
from zapdesk.services.settings_service import save_document
from tests.fakes import FakeHTTP


def make_selector():
    return ProviderSelector(session_factory=FakeHTTP)


def test_build_provider_by_name():
    assert isinstance(build_provider(ProviderConfig(provider="zapi")), ZAPIProvider)
    assert isinstance(build_provider(ProviderConfig(provider="official")), ZAPIProvider)
    assert isinstance(build_provider(ProviderConfig(provider="ultramsg")), UltraMsgProvider)
    assert build_provider(ProviderConfig(provider="carrier-pigeon")) is None


def test_config_hash_ignores_key_order():
    assert config_hash({"a": 1, "b": 2}) == config_hash({"b": 2, "a": 1})
    assert config_hash({"a": 1}) != config_hash({"a": 2})


def test_same_document_reuses_adapter(db):
    save_document(db, WHATSAPP_CONFIG_KEY, {"provider": "ultramsg", "instanceId": "i1", "token": "t"})
    selector = make_selector()

    first = selector.get_active_provider(db)
    second = selector.get_active_provider(db)

    assert isinstance(first, UltraMsgProvider)
    assert first is second


def test_changed_document_rebuilds_adapter(db):
    save_document(db, WHATSAPP_CONFIG_KEY, {"provider": "ultramsg", "instanceId": "i1", "token": "t"})
    selector = make_selector()
    first = selector.get_active_provider(db)

    save_document(db, WHATSAPP_CONFIG_KEY, {"provider": "zapi", "instanceId": "i2", "token": "t"})
    second = selector.get_active_provider(db)

    assert isinstance(second, ZAPIProvider)
    assert second is not first


def test_refresh_forces_rebuild(db):
    save_document(db, WHATSAPP_CONFIG_KEY, {"provider": "zapi", "instanceId": "i1", "token": "t"})
    selector = make_selector()
    first = selector.get_active_provider(db)

    selector.refresh()

    assert selector.get_active_provider(db) is not first


def test_env_fallback_without_document(db, monkeypatch):
    monkeypatch.setenv("WHATSAPP_PROVIDER", "ultramsg")
    monkeypatch.setenv("ULTRAMSG_INSTANCE_ID", "env-instance")
    monkeypatch.setenv("ULTRAMSG_TOKEN", "env-token")

    provider = make_selector().get_active_provider(db)

    assert isinstance(provider, UltraMsgProvider)
    assert provider.base_url.endswith("/env-instance")


def test_unknown_provider_falls_back_to_env(db, monkeypatch):
    monkeypatch.setenv("WHATSAPP_PROVIDER", "zapi")
    monkeypatch.setenv("ZAPI_INSTANCE_ID", "env-zapi")
    monkeypatch.setenv("ZAPI_TOKEN", "tok")
    save_document(db, WHATSAPP_CONFIG_KEY, {"provider": "carrier-pigeon"})

    provider = make_selector().get_active_provider(db)

    assert isinstance(provider, ZAPIProvider)
    assert "env-zapi" in provider.base_url


def test_corrupt_document_falls_back_to_env(db, monkeypatch):
    from zapdesk.models import SystemSetting

    monkeypatch.setenv("WHATSAPP_PROVIDER", "zapi")
    db.add(SystemSetting(key=WHATSAPP_CONFIG_KEY, value="{not json"))
    db.commit()

    assert isinstance(make_selector().get_active_provider(db), ZAPIProvider)
