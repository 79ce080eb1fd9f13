# /// script
# requires-python = ">=3.12"
# dependencies = [
#     "restmux @ file:///${PROJECT_ROOT}/..",
#     "granian>=2.6.0,<3.0.0",
# ]
# ///
"""REST function demo.

Serves an in-memory attribute store with Granian + restmux. Try:

    curl -X POST localhost:8000/api/colors/attribute.ws.json -d '{"name": "red"}'
    curl localhost:8000/api/colors/attribute/1.ws.json
"""

import asyncio
import json
import logging
import sqlite3
from json.decoder import JSONDecodeError

from granian.server.embed import Server

from restmux import (
    Dispatcher,
    RegistryService,
    RestResponse,
    RestService,
    RestServiceError,
    path_params,
    rest_function,
)
from restmux.rsgi import HTTPProtocol, HTTPScope

ADDRESS = "127.0.0.1"
PORT = 8000


class AttributeService(RestService):
    def __init__(self, db: sqlite3.Connection) -> None:
        self.db = db
        self.db.executescript("""
        CREATE TABLE IF NOT EXISTS attribute (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            grp TEXT NOT NULL,
            name TEXT NOT NULL
        );
        """)

    @rest_function("GET:/api/{group}/attribute")
    async def list_attributes(self, s: HTTPScope, p: HTTPProtocol) -> str:
        rows = self.db.execute(
            "SELECT id, name FROM attribute WHERE grp = ?",
            (path_params.get()["ws.group"],),
        ).fetchall()
        return json.dumps([{"id": row[0], "name": row[1]} for row in rows])

    @rest_function("GET:/api/{group}/attribute/{attributeId}")
    async def get_attribute(self, s: HTTPScope, p: HTTPProtocol) -> str:
        params = path_params.get()
        try:
            attribute_id = int(params["ws.attributeId"])
        except ValueError:
            msg = "Attribute id must be a number"
            raise RestServiceError(msg, category="validation") from None
        row = self.db.execute(
            "SELECT id, name FROM attribute WHERE grp = ? AND id = ?",
            (params["ws.group"], attribute_id),
        ).fetchone()
        if row is None:
            raise RestServiceError("No such attribute", category="not_found", status=404)
        return json.dumps({"id": row[0], "name": row[1]})

    @rest_function("POST:/api/{group}/attribute")
    async def create_attribute(self, s: HTTPScope, p: HTTPProtocol) -> RestResponse:
        try:
            name = json.loads(await p())["name"]
        except (JSONDecodeError, KeyError, TypeError):
            msg = "Body must be a JSON object with a name"
            raise RestServiceError(msg, category="validation", code="E_BODY") from None
        row = self.db.execute(
            "INSERT INTO attribute (grp, name) VALUES (?, ?) RETURNING id, name",
            (path_params.get()["ws.group"], name),
        ).fetchone()
        return RestResponse(json.dumps({"id": row[0], "name": row[1]}), status=201)

    @rest_function("DELETE:/api/{group}/attribute/{attributeId}")
    async def delete_attribute(self, s: HTTPScope, p: HTTPProtocol) -> None:
        params = path_params.get()
        self.db.execute(
            "DELETE FROM attribute WHERE grp = ? AND id = ?",
            (params["ws.group"], params["ws.attributeId"]),
        )
        p.response_empty(204, [])


class PingService(RestService):
    @rest_function("GET:/ping")
    async def ping(self, s: HTTPScope, p: HTTPProtocol) -> str:
        return '{"pong": true}'


async def main() -> None:
    logging.basicConfig(level=logging.INFO)

    registry = RegistryService(
        [AttributeService(sqlite3.connect(":memory:")), PingService()]
    )
    registry.rebuild_if_needed()
    print(registry.format_routes())  # noqa: T201

    server = Server(Dispatcher(registry), address=ADDRESS, port=PORT, log_access=True)
    try:
        await server.serve()
    except asyncio.CancelledError:
        pass


if __name__ == "__main__":
    asyncio.run(main())
