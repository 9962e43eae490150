"""
Basic usage examples for fetch_builder.

Runs a small in-process "persons" service and drives it with the builder:
add two persons, list them, modify one, remove one and list again.
"""
import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, List

from fetch_builder import CONTENT_TYPE_JSON, new

persons: List[Dict[str, Any]] = []


class PersonsHandler(BaseHTTPRequestHandler):
    def _read_person(self) -> Any:
        length = int(self.headers.get("Content-Length") or 0)
        try:
            return json.loads(self.rfile.read(length))
        except json.JSONDecodeError:
            return None

    def _send(self, status: int, body: bytes = b"") -> None:
        self.send_response(status)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self) -> None:
        self._send(200, json.dumps(persons).encode())

    def do_PUT(self) -> None:
        person = self._read_person()
        if person is None:
            self._send(406, b"body in request is not a person")
            return
        persons.append(person)
        self._send(200)

    def do_POST(self) -> None:
        person = self._read_person()
        if person is None:
            self._send(406, b"body in request is not a person")
            return
        for index, existing in enumerate(persons):
            if existing["name"] == person["name"]:
                persons[index] = person
                self._send(200)
                return
        self._send(404, b"the person not found")

    def do_DELETE(self) -> None:
        person = self._read_person()
        remaining = [p for p in persons if p["name"] != (person or {}).get("name")]
        if len(remaining) == len(persons) - 1:
            persons[:] = remaining
            self._send(200)
        else:
            self._send(404, b"the person not found")

    def log_message(self, format: str, *args: Any) -> None:
        pass


# =============================================================================
# Example 1: PUT a JSON body, ignore the response
# =============================================================================
def add_person(url: str, person: Dict[str, Any]) -> None:
    def on_done(response, error):
        if error is not None:
            print("add a person failed:", error)

    new().put(url).content_type(CONTENT_TYPE_JSON).body(person).do(on_done)


# =============================================================================
# Example 2: GET and decode the JSON response
# =============================================================================
def query_persons(url: str) -> None:
    response, error = new().get(url).go()
    if error is not None:
        print("query persons failed:", error)
        return
    print("queried persons:", response.json())


# =============================================================================
# Example 3: POST with a status check in the callback
# =============================================================================
def modify_person_age(url: str, person: Dict[str, Any], age: int) -> None:
    def on_done(response, error):
        if error is not None:
            print("modify person failed:", error)
        elif response.status_code != 200:
            print("modify person failed:", response.status_code, response.text)

    new().post(url).body({**person, "age": age}).do(on_done)


# =============================================================================
# Example 4: DELETE with a body, reusing one builder
# =============================================================================
def remove_person(url: str, person: Dict[str, Any]) -> None:
    with new() as builder:
        result = builder.delete(url).body(person).go()
        if result.error is not None or result.response.status_code != 200:
            print("remove person failed:", result.error or result.response.text)


def main() -> None:
    server = ThreadingHTTPServer(("127.0.0.1", 0), PersonsHandler)
    threading.Thread(target=server.serve_forever, daemon=True).start()
    host, port = server.server_address[:2]
    base = f"http://{host}:{port}"

    tom = {"age": 27, "name": "Tom", "pet": {"name": "wangwang", "color": "black"}}
    joe = {"age": 3, "name": "Joe", "pet": {"name": "miumu", "color": "white"}}

    try:
        add_person(f"{base}/add", tom)
        add_person(f"{base}/add", joe)
        query_persons(f"{base}/persons")
        modify_person_age(f"{base}/modify", joe, 5)
        remove_person(f"{base}/remove", tom)
        query_persons(f"{base}/persons")
    finally:
        server.shutdown()
        server.server_close()


if __name__ == "__main__":
    main()
