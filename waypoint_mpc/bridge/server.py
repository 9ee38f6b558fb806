"""
FastAPI websocket server between the simulator and the MPC controller.

Each connection handles its frames strictly in order; the solve runs in the
threadpool so other connections and I/O keep going meanwhile.
"""
import argparse
import asyncio
import logging
import time
from typing import Optional

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import HTMLResponse
from starlette.concurrency import run_in_threadpool

from waypoint_mpc.config.params import load_config
from waypoint_mpc.control.pipeline import MPCController
from waypoint_mpc.bridge.messages import handle_frame

logger = logging.getLogger(__name__)

DEFAULT_PORT = 4567
# Log slow cycles to spot solves that eat the control period.
SLOW_CYCLE_SECONDS = 0.1


def create_app(controller: Optional[MPCController] = None, pace_latency: bool = False) -> FastAPI:
    """
    Build the app around one controller.

    Args:
        controller: shared, stateless controller; built from defaults when omitted
        pace_latency: sleep for the configured latency before replying, to
            emulate actuation delay when driving a simulator
    """
    controller = controller or MPCController()
    app = FastAPI(title="Waypoint MPC Bridge")
    app.state.controller = controller

    @app.get("/", response_class=HTMLResponse)
    async def root():
        return "<h1>Hello world!</h1>"

    @app.websocket("/socket.io/")
    async def telemetry_socket(websocket: WebSocket):
        await websocket.accept()
        logger.info("Connected: %s", websocket.client)
        try:
            while True:
                frame = await websocket.receive_text()
                start_time = time.time()
                reply = await run_in_threadpool(handle_frame, controller, frame)
                duration = time.time() - start_time
                if duration > SLOW_CYCLE_SECONDS:
                    logger.warning("[SLOW] control cycle duration=%.3fs", duration)
                if reply is None:
                    continue
                if pace_latency and controller.config.latency > 0.0:
                    await asyncio.sleep(controller.config.latency)
                await websocket.send_text(reply)
        except WebSocketDisconnect:
            logger.info("Disconnected: %s", websocket.client)

    return app


def main():
    parser = argparse.ArgumentParser(description="Waypoint MPC simulator bridge")
    parser.add_argument("--host", type=str, default="0.0.0.0")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--config", type=str, default=None,
                        help="YAML config (defaults to the bundled one)")
    parser.add_argument("--pace", action="store_true",
                        help="Delay replies by the configured actuation latency")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    controller = MPCController(load_config(args.config))
    app = create_app(controller, pace_latency=args.pace)
    logger.info("Listening to port %d", args.port)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
