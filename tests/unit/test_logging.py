# tests/unit/test_logging.py
import ast
import json
import logging
from pathlib import Path

import padelbot
from padelbot.logging import JsonFormatter

PACKAGE_DIR = Path(padelbot.__file__).parent

# atributos que logging.makeRecord recusa em extra={...}
RECORD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def _extra_keys(path: Path):
    tree = ast.parse(path.read_text(encoding="utf-8"))
    for node in ast.walk(tree):
        if not isinstance(node, ast.Call):
            continue
        for kw in node.keywords:
            if kw.arg == "extra" and isinstance(kw.value, ast.Dict):
                for key in kw.value.keys:
                    if isinstance(key, ast.Constant) and isinstance(key.value, str):
                        yield node.lineno, key.value


def test_extra_keys_never_overwrite_log_record_attributes():
    clashes = [
        f"{path.relative_to(PACKAGE_DIR)}:{lineno} {key}"
        for path in PACKAGE_DIR.rglob("*.py")
        for lineno, key in _extra_keys(path)
        if key in RECORD_ATTRS
    ]
    assert clashes == []


def test_registration_log_line_is_emitted_as_json(caplog):
    logger = logging.getLogger("padelbot.blueprints.bookings")
    with caplog.at_level(logging.INFO, logger="padelbot.blueprints.bookings"):
        logger.info("bookings.registered", extra={"booking_id": 1, "user_id": 5, "registered": True})

    record = caplog.records[-1]
    line = json.loads(JsonFormatter().format(record))
    assert line["msg"] == "bookings.registered"
    assert line["registered"] is True
    assert line["user_id"] == 5
