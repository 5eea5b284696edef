import argparse
import logging

from nicegui import Client
from nicegui import app as ng_app
from nicegui import ui

from gzteleop.common.logging_config import TRACE, configure_logging
from gzteleop.config import config
from gzteleop.constants import GZTELEOP_DOC_URL, LOG_LEVEL, SERVER_HOST, SERVER_PORT
from gzteleop.pages.visualization import VisualizationPage

# Pages with a live session; closed on client disconnect or app shutdown
live_pages: set[VisualizationPage] = set()


def build_header() -> None:
    with ui.header().classes("items-center justify-between px-3 py-1"):
        ui.label("Gazebo Web Teleop").classes("text-lg font-medium")
        ui.button(
            "?",
            on_click=lambda: ui.run_javascript(
                f"window.open('{GZTELEOP_DOC_URL}', '_blank')"
            ),
        ).props("round unelevated")


def release_page(page: VisualizationPage) -> None:
    live_pages.discard(page)
    try:
        page.close()
    except Exception as e:
        logging.error("Session teardown failed: %s", e)


@ui.page("/")
def index(client: Client) -> None:
    page = VisualizationPage(config)
    live_pages.add(page)
    client.on_disconnect(lambda: release_page(page))
    build_header()
    page.build()


async def _app_shutdown() -> None:
    for page in list(live_pages):
        release_page(page)


ng_app.on_shutdown(_app_shutdown)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Gazebo web viewer with keyboard teleoperation")
    parser.add_argument("--host", default=SERVER_HOST, help="Webserver bind host")
    parser.add_argument("--port", type=int, default=SERVER_PORT, help="Webserver bind port")
    parser.add_argument("--scene-url", default=config.SCENE_URL, help="Scene websocket URL")
    parser.add_argument("--scene-key", default=config.SCENE_KEY, help="Scene authorization key")
    parser.add_argument("--ros-url", default=config.ROS_URL, help="rosbridge websocket URL")
    parser.add_argument(
        "--cmd-vel-topic", default=config.CMD_VEL_TOPIC, help="Velocity command topic"
    )
    parser.add_argument(
        "--log-level",
        choices=["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set log level",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity; -v=INFO, -vv=DEBUG, -vvv=TRACE",
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Only log warnings and errors"
    )
    args, _ = parser.parse_known_args(argv)
    return args


def resolve_log_level(args: argparse.Namespace) -> int:
    """Priority: --log-level, then -v/-q, then GZTELEOP_LOG_LEVEL."""
    if args.log_level:
        if args.log_level == "TRACE":
            return TRACE
        return getattr(logging, args.log_level)
    if args.verbose >= 3:
        return TRACE
    if args.verbose == 2:
        return logging.DEBUG
    if args.verbose == 1:
        return logging.INFO
    if args.quiet:
        return logging.WARNING
    return LOG_LEVEL


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)

    config.SCENE_URL = args.scene_url
    config.SCENE_KEY = args.scene_key
    config.ROS_URL = args.ros_url
    config.CMD_VEL_TOPIC = args.cmd_vel_topic

    configure_logging(resolve_log_level(args))
    logging.info("Webserver bind: host=%s port=%s", args.host, args.port)
    logging.info("Scene: %s  rosbridge: %s  topic: %s", config.SCENE_URL, config.ROS_URL, config.CMD_VEL_TOPIC)

    ui.run(
        title="Gazebo Web Teleop",
        host=args.host,
        port=int(args.port),
        reload=False,
        show=False,
    )


if __name__ in {"__main__", "__mp_main__"}:
    main()
