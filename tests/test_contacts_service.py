from zapdesk.models import Contact
from zapdesk.services.contacts_service import (
    add_contact,
    list_contacts,
    remove_contact,
    run_contact_sync,
    sync_contacts,
)


class BrokenProvider:
    name = "broken"

    def get_contacts(self):
        raise RuntimeError("vendor exploded")


def test_sync_accepts_vendor_field_variants(db, provider):
    provider.contacts = [
        {"phone": "5511988887777", "name": "Ana", "profilePicUrl": "https://img/ana.jpg"},
        {"id": "5511977776666@c.us", "pushname": "Bruno"},
        {"number": "+55 (11) 96666-5555", "notifyName": "Carla", "image": "https://img/carla.jpg"},
    ]

    result = sync_contacts(db, provider)

    assert (result.success, result.count, result.failed) == (True, 3, 0)
    contacts = {c.phone: c for c in db.query(Contact).all()}
    assert contacts["5511988887777"].profile_pic_url == "https://img/ana.jpg"
    assert contacts["5511977776666"].name == "Bruno"
    assert contacts["5511966665555"].name == "Carla"


def test_sync_skips_groups_and_broadcasts(db, provider):
    provider.contacts = [
        {"id": "120363@g.us", "name": "Family"},
        {"phone": "5511", "name": "Group flag", "isGroup": True},
        {"id": "status@broadcast"},
        {"phone": "5511911112222", "name": "Real"},
    ]

    result = sync_contacts(db, provider)

    assert result.count == 1
    assert result.failed == 0
    assert [c.phone for c in db.query(Contact).all()] == ["5511911112222"]


def test_sync_counts_bad_records(db, provider):
    provider.contacts = [{"name": "no phone"}, "garbage", {"phone": "abc"}, {"phone": "5511"}]

    result = sync_contacts(db, provider)

    assert (result.count, result.failed) == (1, 3)


def test_sync_updates_existing_contact(db, provider):
    add_contact(db, phone="5511988887777", name="Old")
    provider.contacts = [{"phone": "5511988887777", "name": "New"}]

    sync_contacts(db, provider)

    db.expire_all()
    assert db.query(Contact).count() == 1
    assert db.query(Contact).one().name == "New"


def test_sync_provider_failure_is_reported(db):
    result = sync_contacts(db, BrokenProvider())
    assert result.success is False
    assert "exploded" in result.error


def test_run_contact_sync_owns_its_session(db, session_factory, selector, provider):
    provider.contacts = [{"phone": "5511988887777", "name": "Ana"}]

    result = run_contact_sync(session_factory, selector)

    assert result.count == 1
    assert db.query(Contact).count() == 1


def test_manual_contact_crud(db):
    assert add_contact(db, phone="5511988887777", name="Ana", tags=["vip"]).tags == ["vip"]
    assert add_contact(db, phone="5511988887777", name="Dup") is None

    add_contact(db, phone="5511900000000")
    assert [c.name for c in list_contacts(db)] == ["5511900000000", "Ana"]

    assert remove_contact(db, phone="5511988887777") is True
    assert remove_contact(db, phone="5511988887777") is False
