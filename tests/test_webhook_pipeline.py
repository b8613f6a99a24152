from zapdesk.models import Appointment, Contact, Conversation, Message
from zapdesk.services.settings_service import AI_CONFIG_KEY, save_document

PHONE = "5511988887777"


def ultramsg_payload(body="Hi", sender=f"{PHONE}@c.us", from_me=False):
    return {
        "event_type": "message_received",
        "data": {"from": sender, "body": body, "pushname": "Tester", "fromMe": from_me},
    }


def messages(db):
    return db.query(Message).order_by(Message.timestamp.asc()).all()


def test_ultramsg_message_creates_conversation_and_replies(client, db, provider, responder):
    resp = client.post("/api/webhook", json=ultramsg_payload())

    assert resp.status_code == 200
    assert resp.json() == {"success": True}

    conversation = db.query(Conversation).one()
    assert (conversation.phone, conversation.name, conversation.status) == (PHONE, "Tester", "active")

    inbound, outbound = messages(db)
    assert (inbound.content, inbound.from_me, inbound.delivery_status) == ("Hi", False, None)
    assert (outbound.content, outbound.from_me, outbound.delivery_status) == (responder.reply, True, "sent")

    assert provider.sent == [(PHONE, responder.reply)]
    assert responder.calls == [("Hi", [(False, "Hi")])]


def test_zapi_message_on_alias_route(client, db, provider):
    payload = {"phone": "+55 11 98888-7777", "text": {"message": "Oi"}, "senderName": "Ana"}

    resp = client.post("/api/webhook/message", json=payload)

    assert resp.json() == {"success": True}
    assert db.query(Conversation).one().phone == PHONE
    assert provider.sent[0][0] == PHONE


def test_human_takeover_keeps_bot_silent(client, db, provider, responder):
    client.post("/api/webhook", json=ultramsg_payload("first"))
    client.patch(f"/api/conversations/{PHONE}/status", json={"status": "human"})
    provider.sent.clear()

    resp = client.post("/api/webhook", json=ultramsg_payload("second"))

    assert resp.json() == {"success": True}
    assert provider.sent == []
    assert len(responder.calls) == 1
    assert messages(db)[-1].content == "second"


def test_disabled_ai_stores_inbound_only(client, db, provider, responder):
    save_document(db, AI_CONFIG_KEY, {"enabled": False})

    client.post("/api/webhook", json=ultramsg_payload())

    assert [m.from_me for m in messages(db)] == [False]
    assert provider.sent == []
    assert responder.calls == []


def test_dashboard_ai_switch_turns_bot_off(client, db, provider, responder):
    saved = client.post("/api/settings/zapai_ai_config", json={"enabled": False})
    assert saved.json() == {"success": True}

    client.post("/api/webhook", json=ultramsg_payload())

    assert db.query(Message).filter(Message.from_me.is_(True)).count() == 0
    assert [m.from_me for m in messages(db)] == [False]
    assert provider.sent == []
    assert responder.calls == []


def test_dashboard_admin_phone_receives_booking_notice(client, provider, responder):
    client.post("/api/settings/zapai_ai_config", json={"adminPhone": "5511900001111"})
    responder.reply = 'Marcado! ||AGENDAMENTO: {"client": "Ana", "service": "Unha", "date": "Sábado 10h"}||'

    client.post("/api/webhook", json=ultramsg_payload())

    assert provider.sent[0][0] == "5511900001111"


def test_own_echo_is_stored_but_not_answered(client, db, provider, responder):
    client.post("/api/webhook", json=ultramsg_payload("sent from phone", from_me=True))

    assert [m.content for m in messages(db)] == ["sent from phone"]
    assert responder.calls == []


def test_group_and_broadcast_are_ignored(client, db, provider):
    group = client.post("/api/webhook", json=ultramsg_payload(sender="120363041@g.us"))
    broadcast = client.post("/api/webhook", json=ultramsg_payload(sender="status@broadcast"))

    assert group.json() == {"status": "ignored_group"}
    assert broadcast.json() == {"status": "ignored_broadcast"}
    assert db.query(Conversation).count() == 0
    assert db.query(Message).count() == 0
    assert provider.sent == []


def test_unknown_shape_and_non_json_are_ignored(client, db):
    assert client.post("/api/webhook", json={"hello": "world"}).json() == {"status": "ignored"}

    resp = client.post("/api/webhook", content=b"not json", headers={"content-type": "text/plain"})
    assert resp.status_code == 200
    assert resp.json() == {"status": "ignored"}
    assert db.query(Message).count() == 0


def test_booking_marker_creates_appointment_and_notifies_admin(client, db, provider, responder):
    save_document(db, AI_CONFIG_KEY, {"adminPhone": "+55 (11) 90000-1111"})
    responder.reply = (
        "Perfeito, está marcado!\n"
        '||AGENDAMENTO: {"client": "Tester", "service": "Corte", "date": "Sexta 15h"}||'
    )

    client.post("/api/webhook", json=ultramsg_payload("Quero cortar sexta 15h"))

    appointment = db.query(Appointment).one()
    assert (appointment.phone, appointment.client, appointment.service, appointment.date) == (
        PHONE,
        "Tester",
        "Corte",
        "Sexta 15h",
    )
    assert appointment.completed is False

    admin, customer = provider.sent
    assert admin == ("5511900001111", "🔔 *NOVO AGENDAMENTO*\n👤 Tester\n💼 Corte\n📅 Sexta 15h")
    assert customer == (PHONE, "Perfeito, está marcado!")
    assert messages(db)[-1].content == "Perfeito, está marcado!"


def test_marker_fields_fall_back_to_defaults(client, db, responder):
    responder.reply = "Ok ||AGENDAMENTO: {}||"

    client.post("/api/webhook", json=ultramsg_payload())

    appointment = db.query(Appointment).one()
    assert (appointment.client, appointment.service, appointment.date) == (
        "Tester",
        "Serviço não especificado",
        "Data não especificada",
    )


def test_malformed_marker_is_sent_verbatim(client, db, provider, responder):
    responder.reply = "Combinado ||AGENDAMENTO: {client: Ana}||"

    client.post("/api/webhook", json=ultramsg_payload())

    assert db.query(Appointment).count() == 0
    assert provider.sent == [(PHONE, responder.reply)]


def test_send_failure_still_records_reply(client, db, provider, responder):
    provider.fail_send = True

    resp = client.post("/api/webhook", json=ultramsg_payload())

    assert resp.json() == {"success": True}
    outbound = messages(db)[-1]
    assert (outbound.from_me, outbound.content, outbound.delivery_status) == (True, responder.reply, "failed")


def test_back_to_back_messages_share_one_conversation(client, db, responder):
    client.post("/api/webhook", json=ultramsg_payload("one"))
    client.post("/api/webhook", json={"phone": PHONE, "message": {"text": "two"}})

    assert db.query(Conversation).count() == 1
    assert db.query(Message).count() == 4
    # the second turn sees the first exchange as history
    assert responder.calls[1][1][:2] == [(False, "one"), (True, responder.reply)]


def test_history_is_capped_at_ten(client, db, responder):
    for i in range(7):
        client.post("/api/webhook", json=ultramsg_payload(f"msg {i}"))

    _, history = responder.calls[-1]
    assert len(history) == 10
    assert history[-1] == (False, "msg 6")


def test_connection_event_starts_contact_sync(client, db, provider):
    provider.contacts = [{"phone": "5511977776666", "name": "Bruno"}]

    resp = client.post("/api/webhook", json={"type": "status-change", "status": "connected"})

    assert resp.json() == {"status": "sync_started"}
    assert db.query(Contact).one().phone == "5511977776666"


def test_internal_failure_answers_200(client, provider, responder):
    def boom(*args, **kwargs):
        raise RuntimeError("model exploded")

    responder.generate_reply = boom

    resp = client.post("/api/webhook", json=ultramsg_payload())

    assert resp.status_code == 200
    assert resp.json() == {"status": "error"}
