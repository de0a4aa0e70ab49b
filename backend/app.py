"""Local development server.

Wraps Flask requests into API Gateway proxy events and dispatches them
through the same router and handlers the Lambda function uses, so local
runs exercise exactly the production code path.
"""
import base64
import logging
import os

from flask import Flask, Response, request
from flask_cors import CORS

from lambda_function import HANDLERS, router


app = Flask(__name__)
CORS(
    app,
    resources={r"/api/*": {"origins": "*"}},
    supports_credentials=False,
    expose_headers=["Content-Disposition", "X-Document-Renderer", "X-Document-Truncated"],
    allow_headers=["Content-Type", "Authorization"],
)

logger = logging.getLogger(__name__)


def _to_event() -> dict:
    body = request.get_data() or b""
    return {
        "httpMethod": request.method,
        "path": request.path,
        "headers": dict(request.headers),
        "queryStringParameters": request.args.to_dict() or None,
        "body": base64.b64encode(body).decode("ascii") if body else "",
        "isBase64Encoded": bool(body),
    }


def _to_response(result: dict) -> Response:
    body = result.get("body") or ""
    if result.get("isBase64Encoded"):
        payload = base64.b64decode(body)
    else:
        payload = body.encode("utf-8") if isinstance(body, str) else body
    headers = dict(result.get("headers") or {})
    mimetype = headers.pop("Content-Type", None)
    return Response(payload, status=result.get("statusCode", 200), headers=headers, content_type=mimetype)


@app.route("/api/<path:_subpath>", methods=["GET", "POST", "OPTIONS"])
def dispatch(_subpath):
    return _to_response(router.handle(_to_event(), HANDLERS))


if __name__ == "__main__":
    port = int(os.environ.get("PORT", "5002"))
    logger.info("Starting local document service on port %s", port)
    app.run(host="0.0.0.0", port=port, debug=os.environ.get("FLASK_DEBUG") == "1")
