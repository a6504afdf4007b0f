"""
Run with: python -m becidashboard [--theme ID] [--sub-theme ID]

Boots a headless session against the in-memory surface and logs the
reconciled view.
"""
from __future__ import annotations

import argparse
import logging
import sys

from becidashboard.app.application import create_app, create_session
from becidashboard.config import load_config
from becidashboard.logging_config import LOGGER_NAME, setup_logging

logger = logging.getLogger(LOGGER_NAME)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="becidashboard", description="Headless BECI dashboard session")
    parser.add_argument("--theme", help="theme id to select after start-up")
    parser.add_argument("--sub-theme", help="sub-theme id of --theme")
    parser.add_argument("--config", help="path to a dashboard configuration JSON")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-file")
    args = parser.parse_args(argv)

    setup_logging(args.log_level, args.log_file)
    create_app()

    session = create_session(load_config(args.config))
    controller = session.controller
    controller.start()

    ok = True
    if args.theme:
        if args.sub_theme:
            ok = controller.select_sub_theme(args.theme, args.sub_theme)
        else:
            ok = controller.select_theme(args.theme)

    surface = session.surface
    theme = controller.theme
    logger.info(f"Theme: {theme.title} ({controller.state.theme_id} / {controller.state.sub_theme_id})")
    if theme.content:
        logger.info(theme.content)
    labels = [c.label for c in session.registry.controls() if c.layer and surface.layers.get(c.layer)]
    logger.info(f"Active layer controls: {labels}")
    logger.info(f"Visible layers: {surface.visible_layers()}")
    logger.info(f"Visible panels: {[p for p, v in surface.panels.items() if v]}")
    logger.info(f"Time binding: {controller.binder.binding}")
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
