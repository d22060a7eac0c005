#!/usr/bin/env python3
"""
Snowman command line.

Usage:
    snowman play story.html [--save-dir DIR] [--restart]
    snowman render story.html "Passage Name"

During play, enter a link number to follow it, or one of:
    b  back      s  save      r  restore
    x  reset     q  quit
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, TextIO

from .display import TerminalDisplay, html_to_text
from .errors import SnowmanError
from .history import MemoryHistory
from .links import find_passage_links
from .navigation import NavigationEngine
from .parse_story import load_story
from .persistence import JsonFileStore, MemoryStore

EXIT_SUCCESS = 0
EXIT_ERROR = 1

COMMANDS_HELP = "[number] follow link  b back  s save  r restore  x reset  q quit"


def print_links(engine: NavigationEngine, out: TextIO) -> list:
    links = find_passage_links(engine.display.passage or '')
    for number, link in enumerate(links, 1):
        print(f"  {number}. {link.display_text}", file=out)
    return links


def run_session(engine: NavigationEngine, history: MemoryHistory, lines, out: TextIO) -> None:
    """Drive a play session from an iterable of input lines."""
    engine.play()
    links = print_links(engine, out)

    for line in lines:
        choice = line.strip().lower()
        if not choice:
            continue

        if choice == 'q':
            break
        elif choice == 'b':
            if not history.back():
                print("Nothing to go back to.", file=out)
        elif choice == 's':
            engine.save()
            print("✓ Saved", file=sys.stderr)
        elif choice == 'r':
            if engine.restore():
                print("✓ Restored", file=sys.stderr)
            else:
                print("No saved game to restore.", file=out)
        elif choice == 'x':
            engine.reset()
            print("✓ Save deleted", file=sys.stderr)
        elif choice.isdigit() and 1 <= int(choice) <= len(links):
            link = links[int(choice) - 1]
            if link.show:
                print(html_to_text(engine.follow_link(link.target, show=True)), file=out)
                continue
            engine.follow_link(link.target)
        else:
            print(COMMANDS_HELP, file=out)
            continue

        links = print_links(engine, out)


def cmd_play(args: argparse.Namespace) -> int:
    story = load_story(args.story)
    store = JsonFileStore(args.save_dir) if args.save_dir else MemoryStore()
    history = MemoryHistory()
    engine = NavigationEngine(story, display=TerminalDisplay(), history=history, store=store)

    if args.restart:
        engine.reset()

    print(f"✓ Loaded '{story.name}' ({len(story.passages)} passages)", file=sys.stderr)
    print(COMMANDS_HELP, file=sys.stderr)
    run_session(engine, history, sys.stdin, sys.stdout)
    return EXIT_SUCCESS


def cmd_render(args: argparse.Namespace) -> int:
    story = load_story(args.story)
    engine = NavigationEngine(story)
    query = int(args.passage) if args.passage.isdigit() and story.find_passage(args.passage) is None else args.passage
    print(engine.show_passage(query))
    return EXIT_SUCCESS


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for command-line usage."""
    parser = argparse.ArgumentParser(
        description='Play or render a published Twine story'
    )
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    play_parser = subparsers.add_parser('play', help='Play a story in the terminal')
    play_parser.add_argument('story', type=Path, help='Path to published story HTML')
    play_parser.add_argument('--save-dir', type=Path, default=None,
                             help='Directory for save files (default: keep saves in memory)')
    play_parser.add_argument('--restart', action='store_true', help='Delete any save before playing')
    play_parser.set_defaults(func=cmd_play)

    render_parser = subparsers.add_parser('render', help='Print the HTML of one passage')
    render_parser.add_argument('story', type=Path, help='Path to published story HTML')
    render_parser.add_argument('passage', help='Passage name or id')
    render_parser.set_defaults(func=cmd_render)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    if not args.story.exists():
        print(f"Error: Input file not found: {args.story}", file=sys.stderr)
        return EXIT_ERROR

    try:
        return args.func(args)
    except (SnowmanError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == '__main__':
    sys.exit(main())
