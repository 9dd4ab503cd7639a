from flask import jsonify


def success(data=None, message=None, status=200, **extra):
    """Successful envelope: ``{success: true, data?, message?}``."""
    body = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    body.update(extra)
    return jsonify(body), status
