from typing import Any

import msgspec

# JSON decoder
msgspec_decoder = msgspec.json.Decoder()


def sort_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively sort a dictionary by its keys.

    Parameters
    ----------
    data : dict[str, Any]
        The dictionary to sort.

    Returns
    -------
    dict[str, Any]
        A new dictionary with keys sorted recursively.
    """
    if not isinstance(data, dict):
        return data
    return {key: sort_dict(data[key]) for key in sorted(data)}


def _encode_fallback(obj: Any) -> Any:
    """Render values msgspec does not know natively (datetimes from boto3 are fine)."""
    if isinstance(obj, BaseException):
        return {"type": type(obj).__name__, "message": str(obj)}
    return str(obj)


def dumps_report(report: dict[str, Any]) -> bytes:
    """Encode a task report as JSON with sorted keys.

    Parameters
    ----------
    report : dict[str, Any]
        Report produced by the CLI.

    Returns
    -------
    bytes
        The JSON document.
    """
    encoder = msgspec.json.Encoder(enc_hook=_encode_fallback)
    return encoder.encode(sort_dict(report))


def loads_json(data: bytes | str) -> Any:
    """Decode a JSON document, e.g. a task configuration file."""
    return msgspec_decoder.decode(data)
