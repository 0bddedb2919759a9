from __future__ import annotations

import socket
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

import anyio
import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse, PlainTextResponse, Response
from starlette.routing import Route, WebSocketRoute
from starlette.websockets import WebSocket, WebSocketDisconnect
from typing_extensions import assert_never

from mdr.bus import Closed, Lagged, Reload, ReloadBus
from mdr.messages import ArtifactUnavailable, ClientConnected, ClientDisconnected, Message

LIVE_SCRIPT_TAG = '<script src="/live.js"></script>'

LIVE_SCRIPT = """(() => {
const proto = location.protocol === "https:" ? "wss://" : "ws://";
const ws = new WebSocket(proto + location.host + "/ws");
ws.onmessage = () => location.reload();
ws.onclose = () => setTimeout(() => location.reload(), 1000);
})();"""

RELOAD = "reload"


def inject_live_script(html: str) -> str:
    if "/live.js" in html:
        return html

    return f"{html}\n{LIVE_SCRIPT_TAG}\n"


async def serve_output(request: Request) -> Response:
    output_path: Path = request.app.state.output_path

    # Read on every request, so the page always reflects the latest successful render.
    try:
        html = await anyio.Path(output_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        request.app.state.report(ArtifactUnavailable(output_path=output_path, text=str(e)))
        return PlainTextResponse("output not found", status_code=404)

    return HTMLResponse(inject_live_script(html))


async def live_js(request: Request) -> Response:
    return Response(LIVE_SCRIPT, media_type="application/javascript")


async def live_reload(websocket: WebSocket) -> None:
    bus: ReloadBus = websocket.app.state.bus
    report: Callable[[Message], None] = websocket.app.state.report
    client = describe_client(websocket)

    # Subscribed before the handshake, so every reload after it is seen.
    with bus.subscribe() as subscription:
        await websocket.accept()
        report(ClientConnected(client=client))

        try:
            while True:
                match await subscription.recv():
                    case Reload():
                        await websocket.send_text(RELOAD)
                    case Lagged():
                        continue
                    case Closed():
                        await websocket.close()
                        break
                    case never:
                        assert_never(never)
        except (WebSocketDisconnect, RuntimeError, OSError):
            # the browser went away mid-send
            pass
        finally:
            report(ClientDisconnected(client=client))


def describe_client(websocket: WebSocket) -> str:
    if websocket.client is None:
        return "unknown client"

    return f"{websocket.client.host}:{websocket.client.port}"


def create_app(
    output_path: Path,
    bus: ReloadBus,
    report: Callable[[Message], None],
) -> Starlette:
    app = Starlette(
        routes=[
            Route("/", serve_output, methods=["GET"]),
            Route("/live.js", live_js, methods=["GET"]),
            WebSocketRoute("/ws", live_reload),
        ],
    )

    app.state.output_path = output_path
    app.state.bus = bus
    app.state.report = report

    return app


def bind_socket(host: str, port: int) -> socket.socket:
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    return socket.create_server((host, port), family=family)


def server_url(sock: socket.socket) -> str:
    host, port, *_ = sock.getsockname()
    if ":" in host:
        host = f"[{host}]"
    return f"http://{host}:{port}/"


class PreviewServer(uvicorn.Server):
    """
    A uvicorn server that leaves signal handling to the orchestrator,
    which owns shutdown for the whole watch/serve session.
    """

    def install_signal_handlers(self) -> None:
        pass

    @contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield

    def abort(self) -> None:
        self.should_exit = True
        self.force_exit = True

    @classmethod
    def for_app(cls, app: Starlette) -> PreviewServer:
        return cls(
            uvicorn.Config(
                app,
                lifespan="off",
                log_level="warning",
                access_log=False,
            )
        )
