import os

from flask import Flask, request, jsonify
from flask_cors import CORS

import kalipso

app = Flask(__name__)
CORS(app)  # allow cross-origin requests


def empty_response(errors):
    return {
        "tokens": [],
        "generated": [],
        "program": None,
        "symbol_table": {},
        "errors": errors,
    }


@app.route("/compile", methods=["POST"])
def compile_code():
    try:
        data = request.get_json(silent=True) or {}
        code = data.get("code", "")
        result = kalipso.compile_source(code, verbose=app.debug)
        if result["errors"]:
            app.logger.info("translation failed: %s", result["errors"][0])
        # Prepare response
        response = {
            "tokens": result["tokens"],
            "generated": result["generated"],
            "program": result["program"],
            "symbol_table": result["symbol_table"],
            "errors": result["errors"],
        }
        return jsonify(response)
    except Exception as e:
        app.logger.exception("unexpected failure in /compile")
        return jsonify(empty_response([f"Unexpected error: {str(e)}"])), 500


if __name__ == "__main__":
    app.run(debug=os.environ.get("KALIPSO_DEBUG") == "1")
