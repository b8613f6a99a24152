import pytest

from zapdesk.models import Conversation, Message
from zapdesk.outbound.gateway import ProviderError
from zapdesk.services.message_service import MessageService

PHONE = "5511988887777"


def test_create_then_reuse_conversation(db):
    service = MessageService(db=db)

    created = service.get_or_create_conversation(PHONE, name="Ana")
    again = service.get_or_create_conversation(PHONE, name="Other")

    assert created.id == again.id
    assert again.name == "Ana"
    assert again.status == "active"


def test_concurrent_create_reuses_winning_row(session_factory):
    winner_session = session_factory()
    loser_session = session_factory()
    winner = MessageService(db=winner_session)
    loser = MessageService(db=loser_session)

    lookups = []
    real_find = loser.find_conversation

    def find_racing_with_winner(phone):
        lookups.append(phone)
        if len(lookups) == 1:
            # the other request inserts between our lookup and our insert
            winner.get_or_create_conversation(phone, name="Winner")
            return None
        return real_find(phone)

    loser.find_conversation = find_racing_with_winner
    try:
        conversation = loser.get_or_create_conversation(PHONE, name="Loser")
        winning_row = winner.find_conversation(PHONE)

        assert conversation.id == winning_row.id
        assert conversation.name == "Winner"
        assert loser_session.query(Conversation).count() == 1
        assert len(lookups) == 2
    finally:
        winner_session.close()
        loser_session.close()


def test_recent_history_is_chronological_and_capped(db):
    service = MessageService(db=db)
    conversation = service.get_or_create_conversation(PHONE)
    for i in range(5):
        service.record_message(conversation, f"m{i}", from_me=bool(i % 2))

    history = service.recent_history(conversation, limit=3)

    assert [m.content for m in history] == ["m2", "m3", "m4"]


def test_non_string_content_is_serialized(db):
    service = MessageService(db=db)
    conversation = service.get_or_create_conversation(PHONE)

    message = service.record_message(conversation, {"caption": "foto"}, from_me=False)

    assert message.content == '{"caption": "foto"}'


def test_agent_send_failure_stores_nothing(db, provider):
    provider.fail_send = True

    with pytest.raises(ProviderError):
        MessageService(db=db).send_from_agent(provider, PHONE, "Olá")

    assert db.query(Conversation).count() == 0
    assert db.query(Message).count() == 0
