import logging

from collab.logger import get_logger, room_logger, log_warning


def test_child_logger_names():
    assert get_logger("events").name == "collab.events"


def test_room_logger_prefixes_room_and_sid(caplog):
    with caplog.at_level(logging.INFO, logger="collab"):
        room_logger("events", "ab12cd34", "sid-9").info('"Alice" joined (admitted)')

    assert caplog.records[-1].getMessage() == 'room=ab12cd34 sid=sid-9 | "Alice" joined (admitted)'


def test_room_logger_without_context(caplog):
    with caplog.at_level(logging.INFO, logger="collab"):
        room_logger("events").info("boot")

    assert caplog.records[-1].getMessage() == "room=- sid=- | boot"


def test_shorthand_uses_module_logger(caplog):
    with caplog.at_level(logging.WARNING, logger="collab"):
        log_warning("storage", "disk almost full")

    assert caplog.records[-1].name == "collab.storage"
