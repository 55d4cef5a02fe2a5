"""CLI entry point for the clinic concierge agent.

A terminal chat for development; production traffic comes through the
WhatsApp webhook (src/server.py).

Usage:
    python -m src.main            # normal mode (quiet)
    python -m src.main --debug    # debug mode (shows tool and HTTP calls)
"""

from __future__ import annotations

import argparse
import logging

from dotenv import load_dotenv

from src.agent import Orchestrator, create_concierge_agent
from src.prompts import get_system_prompt

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool = False) -> None:
    """WARNING by default, DEBUG when --debug is passed."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
    )
    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("src").setLevel(logging.DEBUG if debug else logging.INFO)


def main():
    """Run the interactive CLI chat loop."""
    parser = argparse.ArgumentParser(description="Clinic concierge agent CLI")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including HTTP requests",
    )
    args = parser.parse_args()

    load_dotenv()
    _configure_logging(debug=args.debug)

    print("\n" + "=" * 60)
    print("  Clinic Concierge - CLI Chat")
    print("=" * 60)
    print("  Type your message and press Enter.")
    print("  Commands: 'quit' to exit, 'new' for a new conversation.")
    print("=" * 60 + "\n")

    agent = create_concierge_agent()
    service_names = agent.tool_context.directory.names if agent.tool_context else []
    context = Orchestrator.create_context()
    logger.info("Started new conversation: %s", context.conversation_id)

    while True:
        try:
            user_input = input("You: ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\n\nGoodbye!")
            break

        if not user_input:
            continue

        if user_input.lower() in ("exit", "quit", "q"):
            print("\nGoodbye! Take care!")
            break

        if user_input.lower() == "new":
            context = Orchestrator.create_context()
            print(f"\n>> New conversation started: {context.conversation_id[:8]}...\n")
            continue

        try:
            result = agent.function_calling(
                user_input, get_system_prompt(service_names=service_names), context,
            )
        except KeyboardInterrupt:
            print("\n\nGoodbye!")
            break

        if result.functions_executed:
            logger.info("Tools used: %s", ", ".join(r.name for r in result.functions_executed))
        print(f"\nSerena: {result.final_response}\n")


if __name__ == "__main__":
    main()
