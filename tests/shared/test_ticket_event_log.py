import logging

from shared.logs import fmt_kvs, log_ticket_event


def test_fmt_kvs_skips_blank_values():
    assert fmt_kvs({"channel_id": 10, "error": None, "tag": "", "ok": True}) == "channel_id=10 • ok=True"


def test_ticket_event_line_and_structured_fields(caplog):
    caplog.set_level(logging.INFO, logger="intake.test")
    logger = logging.getLogger("intake.test")

    line = log_ticket_event(logger, "greeting_sent", channel_id=10, user_tag="<@42>", name="x")

    assert line == "📤 Ticket — event=greeting_sent • channel_id=10 • user_tag=<@42> • name=x"
    record = caplog.records[-1]
    assert record.getMessage() == line
    assert record.event == "greeting_sent"
    assert record.channel_id == 10
    assert record.name == "intake.test"


def test_logger_failures_do_not_propagate():
    class Broken:
        def log(self, *_args, **_kwargs):
            raise ValueError("handler exploded")

    assert log_ticket_event(Broken(), "closure_sent", channel_id=1, level=logging.WARNING)
