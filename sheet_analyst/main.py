"""Entry point for the Sheet Analyst command line.

Run ``sheet-analyst`` (or ``python -m sheet_analyst.main``) to start an
interactive session about a spreadsheet.  The dataset path can be given
with ``--data`` or the ``SHEET_ANALYST_DATA_PATH`` environment variable;
``--url`` / ``SHEET_ANALYST_DATA_URL`` is read when the local file is
missing.

Example:

    sheet-analyst --data ~/Downloads/sales.xlsx --sheet Q1 --stats

Environment variables:

    GEMINI_API_KEY               Key for the model provider (GOOGLE_API_KEY also works).
    GEMINI_MODEL                 Model name, defaults to gemini-1.5-flash.
    SHEET_ANALYST_INSTRUCTIONS   Replaces the default system instructions.
    SHEET_ANALYST_SAVE_HISTORY   Set to 0/false to keep history in memory only.
    SHEET_ANALYST_LOG_LEVEL      Logging level when --debug is not given.
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from sheet_analyst import AIGateway, ChatAgent, DataHandler, JsonHistoryStore


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Chat with an AI analyst about a spreadsheet")
    parser.add_argument(
        "--data",
        type=str,
        default=os.getenv("SHEET_ANALYST_DATA_PATH"),
        help="Path to the CSV or XLSX file. If omitted, SHEET_ANALYST_DATA_PATH env var is used.",
    )
    parser.add_argument(
        "--url",
        type=str,
        default=os.getenv("SHEET_ANALYST_DATA_URL"),
        help="Remote URL to read the dataset from when the local path is missing.",
    )
    parser.add_argument("--sheet", type=str, default=None, help="Worksheet name for Excel files.")
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Include column statistics and correlations in the prompt.",
    )
    parser.add_argument(
        "--history-file",
        type=str,
        default=None,
        help="JSON file in which to keep the conversation between sessions.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log prompts and requests for debugging purposes.",
    )
    return parser.parse_args(argv)


def configure_logging(debug: bool) -> None:
    level = "DEBUG" if debug else os.getenv("SHEET_ANALYST_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.debug)

    handler = None
    if args.data or args.url:
        handler = DataHandler(dataset_path=args.data or "", dataset_url=args.url, sheet_name=args.sheet)
    else:
        print("No dataset given; questions will be sent without sheet context.")
    store = JsonHistoryStore(args.history_file) if args.history_file else None
    agent = ChatAgent(
        data_handler=handler,
        gateway=AIGateway(),
        history_store=store,
        include_statistics=args.stats,
        debug=args.debug,
    )

    print("\nSheet Analyst ready. Type /help for commands, 'exit' to quit.\n")
    while True:
        try:
            question = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nExiting.")
            break
        if not question:
            continue
        if question.lower() in {"exit", "quit"}:
            print("Goodbye!")
            break
        result = agent.ask(question)
        if result.success:
            print(result.text)
        else:
            print(f"[{result.error_kind.value}] {result.text}")
            if args.debug and result.raw_error:
                print("Details:", result.raw_error)
    return 0


if __name__ == "__main__":
    sys.exit(main())
