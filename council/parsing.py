"""Pull a JSON object out of free-form model output."""

import json
import re

_FENCED_BLOCK = re.compile(r"```(?:json|JSON)?[ \t]*\n?(.*?)```", re.DOTALL)


class ModelOutputParseError(ValueError):
    """Raised when model output holds no usable JSON object."""


def extract_json_block(text: str) -> dict:
    """Return the first well-formed JSON object in ``text``.

    Fenced blocks are tried first, in order; a bare top-level object is the
    last resort. Prose around either is ignored.
    """
    if not text:
        raise ModelOutputParseError("Empty model output")

    for match in _FENCED_BLOCK.finditer(text):
        try:
            parsed = json.loads(match.group(1).strip())
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    decoder = json.JSONDecoder()
    for start in (m.start() for m in re.finditer(r"\{", text)):
        try:
            parsed, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    raise ModelOutputParseError("No JSON object found in model output")
