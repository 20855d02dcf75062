import json

from nsems.services.serial_service import SerialService


def test_parse_line_accepts_raw_payload_and_json():
    raw = SerialService.parse_line("STU-01|5|ab\n")
    assert (raw.t, raw.qr) == ("req", "STU-01|5|ab")

    msg = SerialService.parse_line('{"t": "req", "id": 7, "dev": "door-2", "qr": "STU-01|5|ab"}')
    assert (msg.id, msg.dev, msg.qr) == (7, "door-2", "STU-01|5|ab")


def test_parse_line_ignores_noise():
    assert SerialService.parse_line("   ") is None
    assert SerialService.parse_line("{not json") is None


def test_process_line_verifies_and_builds_reply(device, token):
    service = SerialService(device.verifier, "gate-1")
    reply = service.process_line(json.dumps({"t": "req", "id": 3, "qr": token}))
    assert reply["t"] == "resp"
    assert reply["id"] == 3
    assert reply["status"] == 1
    assert reply["result"] == "valid"
    assert reply["name"] == "Ada Perera"
    assert service.encode(reply).endswith(b"\n")


def test_process_line_skips_non_requests(device):
    service = SerialService(device.verifier, "gate-1")
    assert service.process_line('{"t": "ping"}') is None
    assert device.events.count() == 0


def test_bad_payload_gets_a_denied_reply(device):
    service = SerialService(device.verifier, "gate-1")
    reply = service.process_line("STU-01|abc")
    assert (reply["status"], reply["reason"], reply["name"]) == (0, "malformed", "Unknown")
