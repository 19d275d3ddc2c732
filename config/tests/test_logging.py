import json
import logging
import sys

from config.logging import JsonFormatter, SamplingFilter


def _record(msg="cart.item_added", level=logging.INFO, **extra):
    record = logging.LogRecord("storefront.cart", level, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_merges_extra_fields():
    out = json.loads(JsonFormatter().format(_record(event="cart.item_added", cart_id=3, guest=True)))

    assert out["message"] == "cart.item_added"
    assert out["level"] == "INFO"
    assert out["name"] == "storefront.cart"
    assert out["event"] == "cart.item_added"
    assert out["cart_id"] == 3
    assert out["guest"] is True
    assert out["time"].endswith("Z")
    assert "pathname" not in out


def test_json_formatter_merges_json_object_messages_and_stringifies_unknown_values():
    out = json.loads(JsonFormatter().format(_record(msg='{"event": "x", "n": 1}', blob=object())))

    assert out["event"] == "x"
    assert out["n"] == 1
    assert out["blob"].startswith("<object")


def test_json_formatter_includes_exception_text():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        exc_info = sys.exc_info()
    record = logging.LogRecord("storefront.orders", logging.ERROR, __file__, 1, "checkout.failed", None, exc_info)

    out = json.loads(JsonFormatter().format(record))

    assert "RuntimeError: boom" in out["exc_info"]


def test_sampling_filter_never_drops_allow_listed_events():
    f = SamplingFilter(rate=0.0, levels=["INFO"], allow_events=["order.created"])

    assert f.filter(_record(msg="order.created", event="order.created")) is True
    assert f.filter(_record(msg="cart.item_added", event="cart.item_added")) is False
    assert f.filter(_record(msg="cart.merge_failed", level=logging.ERROR)) is True


def test_sampling_filter_full_rate_keeps_everything():
    assert SamplingFilter(rate=1.0).filter(_record()) is True
