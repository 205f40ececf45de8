#!/usr/bin/env python3
"""
Interactive Management Client for MC-Admin

A command-line client for driving the MC-Admin management server by hand.

Usage:
    python scripts/client.py                  # Connect to localhost:5000
    python scripts/client.py --host 1.2.3.4   # Connect to specific host
    python scripts/client.py --port 8080      # Connect to specific port

Commands:
    connect <address>         - Point the service at a memcached server
    set <key> <value>         - Store a value
    get <key>                 - Retrieve a value
    mget <key> [key ...]      - Retrieve several values
    delete <key>              - Delete a key
    flush                     - Remove every item (asks for confirmation)
    keys                      - List all keys
    help                      - Show this help
    exit                      - Exit client
"""

import argparse
import json
import socket
import sys

# Enable command history with arrow keys (works on Unix systems)
try:
    import readline  # noqa: F401
except ImportError:
    pass  # readline not available on Windows by default


class AdminClient:
    """Simple TCP client for the MC-Admin management protocol."""

    def __init__(self, host: str, port: int, timeout: float = 10.0):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.socket = None
        self._buffer = b''

    def connect(self) -> bool:
        """Connect to the management server."""
        try:
            self.socket = socket.create_connection((self.host, self.port), self.timeout)
            return True
        except OSError as e:
            print(f"Connection error: {e}")
            return False

    def disconnect(self):
        """Disconnect from the server."""
        if self.socket:
            try:
                self.socket.close()
            except OSError:
                pass
            self.socket = None

    def request(self, op: str, **fields) -> dict:
        """Send one request and return the decoded response."""
        if not self.socket:
            return {"success": False, "error": "Not connected"}

        payload = dict(fields, op=op)
        try:
            self.socket.sendall(json.dumps(payload).encode('utf-8') + b'\n')

            while b'\n' not in self._buffer:
                chunk = self.socket.recv(4096)
                if not chunk:
                    return {"success": False, "error": "Connection closed by server"}
                self._buffer += chunk

            line, _, self._buffer = self._buffer.partition(b'\n')
            return json.loads(line.decode('utf-8'))

        except socket.timeout:
            return {"success": False, "error": "Request timed out"}
        except (OSError, ValueError) as e:
            return {"success": False, "error": str(e)}

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()


def print_help():
    """Print help message."""
    print("""
MC-Admin Commands:
------------------
  connect <address>         Point the service at memcached (host[:port])
  set <key> <value>         Store a value (no expiration)
  get <key>                 Retrieve the value for a key
  mget <key> [key ...]      Retrieve several values, skipping missing keys
  delete <key>              Delete a key
  flush                     Remove every item on the server
  keys                      List every key on the server

Client Commands:
----------------
  help                      Show this help message
  exit                      Exit the client
  reconnect                 Reconnect to the management server

Examples:
---------
  connect memcached         Connect to localhost:11211
  set greeting hello world  Store "hello world" under "greeting"
  mget greeting missing     Returns only "greeting"
""")


def print_response(response: dict):
    """Print a management response."""
    if not response.get("success"):
        print(f"ERROR: {response.get('error', '')}")
        return

    if response.get("message"):
        print(response["message"])
    for item in response.get("items", []):
        if "value" in item:
            print(f"  {item['key']} = {item['value']}")
        else:
            print(f"  {item['key']}")


def build_request(command: str):
    """Translate a typed command into (op, fields), or None if unrecognized."""
    parts = command.split(None, 2)
    name = parts[0].lower()
    args = parts[1:]

    if name == "connect" and len(args) == 1:
        return "connect", {"url": args[0]}
    if name == "set" and len(args) == 2:
        return "set", {"key": args[0], "value": args[1]}
    if name == "get" and len(args) == 1:
        return "get", {"key": args[0]}
    if name == "mget" and args:
        return "getMultiple", {"keys": command.split()[1:]}
    if name == "delete" and len(args) == 1:
        return "delete", {"key": args[0]}
    if name == "flush" and not args:
        return "flush", {}
    if name == "keys" and not args:
        return "listKeys", {}
    return None


def main():
    parser = argparse.ArgumentParser(
        description="Interactive client for MC-Admin"
    )
    parser.add_argument(
        "--host",
        type=str,
        default="localhost",
        help="Server host (default: localhost)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=5000,
        help="Server port (default: 5000)"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=10.0,
        help="Socket timeout in seconds (default: 10.0)"
    )

    args = parser.parse_args()

    print("MC-Admin Client")
    print("===============")
    print(f"Connecting to {args.host}:{args.port}...")

    client = AdminClient(args.host, args.port, args.timeout)

    if not client.connect():
        print("Failed to connect. Is the server running?")
        print(f"  Try: python -m mcadmin.server --port {args.port}")
        sys.exit(1)

    print("Connected! Type 'help' for commands.\n")

    try:
        while True:
            try:
                command = input(">>> ").strip()

                if not command:
                    continue

                lower_cmd = command.lower()

                if lower_cmd == "help":
                    print_help()
                    continue

                if lower_cmd in ("exit", "quit"):
                    print("Goodbye!")
                    break

                if lower_cmd == "reconnect":
                    client.disconnect()
                    if client.connect():
                        print("Reconnected!")
                    else:
                        print("Reconnection failed.")
                    continue

                request = build_request(command)
                if request is None:
                    print("Unrecognized command. Type 'help' for commands.")
                    continue

                op, fields = request
                if op == "flush":
                    answer = input("Remove ALL items from memcached? [y/N] ").strip().lower()
                    if answer != "y":
                        print("Cancelled.")
                        continue

                print_response(client.request(op, **fields))

            except EOFError:
                print("\nGoodbye!")
                break

    except KeyboardInterrupt:
        print("\n\nInterrupted. Goodbye!")
    finally:
        client.disconnect()


if __name__ == "__main__":
    main()
