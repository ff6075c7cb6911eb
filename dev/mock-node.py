#!/usr/bin/env python3
"""Mock target node for local development.

Serves ledger info (/v1) and a metrics dump (/metrics) on one port, and a silent TCP listener
on the noise port. Point the checker at it with the same port for --api-port and --metrics-port:

  python dev/mock-node.py
  python main.py --check-node http://localhost --baseline devnet_fullnode --api-port 18080 --metrics-port 18080 --noise-port 16180
"""

import socket
import sys
import threading
import time

from flask import Flask, Response, jsonify

HTTP_PORT = 18080
NOISE_PORT = 16180
START = time.time()

app = Flask(__name__)


@app.route("/v1", methods=["GET"])
def ledger_info():
    """Ledger info that advances roughly one version per second."""
    now = time.time()
    return jsonify(
        {
            "chain_id": "devnet",
            "epoch": "1",
            "ledger_version": str(int(now - START) + 1),
            "ledger_timestamp": str(int(now * 1_000_000)),
            "node_role": "full_node",
            "block_height": str(int(now - START)),
            "git_hash": "aptos-node-v1.3.0",
        }
    )


@app.route("/metrics", methods=["GET"])
def metrics():
    body = "\n".join(
        [
            "# TYPE aptos_state_sync_version gauge",
            f'aptos_state_sync_version{{type="synced"}} {int(time.time() - START) + 1}',
            'aptos_connections{direction="inbound",network_id="Public",role_type="full_node"} 3',
            f"aptos_storage_ledger_version {int(time.time() - START) + 1}",
            "",
        ]
    )
    return Response(body, mimetype="text/plain")


@app.route("/healthz")
def health():
    """Health check endpoint."""
    return jsonify({"status": "ok"})


def _silent_noise_listener() -> None:
    # Accept connections and never speak first, like a noise responder awaiting the initiator.
    srv = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    srv.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    srv.bind(("0.0.0.0", NOISE_PORT))
    srv.listen()
    held = []
    while True:
        conn, _ = srv.accept()
        held.append(conn)
        if len(held) > 64:
            held.pop(0).close()


if __name__ == "__main__":
    threading.Thread(target=_silent_noise_listener, daemon=True).start()
    print(f"Mock node starting on http://0.0.0.0:{HTTP_PORT} (noise port {NOISE_PORT})", file=sys.stderr)
    app.run(host="0.0.0.0", port=HTTP_PORT, debug=False)
