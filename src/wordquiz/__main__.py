"""Command line entry point for the quiz."""
import argparse
import asyncio
import json
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from wordquiz.config import ensure_directories, settings
from wordquiz.logging_config import setup_logging
from wordquiz.models.word_models import EndOfCategory
from wordquiz.monitoring import start_monitoring
from wordquiz.services.quiz_service import QuizService

logger = logging.getLogger("wordquiz")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="wordquiz", description="Vocabulary quiz")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    play = subparsers.add_parser("play", help="Play in the terminal")
    play.add_argument("--difficulty", choices=settings.game.difficulties)
    play.add_argument("--category", choices=settings.game.categories)
    play.add_argument("--again", action="store_true", help="Reshuffle the category before playing")

    subparsers.add_parser("stats", help="Show overall statistics")

    progress = subparsers.add_parser("progress", help="Show progress for one category")
    progress.add_argument("--difficulty", choices=settings.game.difficulties)
    progress.add_argument("--category", choices=settings.game.categories)

    subparsers.add_parser("preload", help="Load every word bank")

    reset = subparsers.add_parser("reset", help="Reset progress")
    reset.add_argument("--categories", action="store_true", help="Also reset category completion")

    export = subparsers.add_parser("export", help="Export saved data to a JSON file")
    export.add_argument("path", type=Path)

    restore = subparsers.add_parser("import", help="Import saved data from a JSON file")
    restore.add_argument("path", type=Path)

    subparsers.add_parser("storage-info", help="Show storage usage")
    return parser


async def play(quiz: QuizService, difficulty: Optional[str], category: Optional[str], again: bool) -> None:
    if difficulty:
        quiz.change_difficulty(difficulty)
    if category:
        quiz.change_category(category)
    if again:
        quiz.play_again()

    duration = settings.game.timer_duration
    print(f"Playing {quiz.difficulty}/{quiz.category}. Answer with 1-4, q to quit. {duration}s per word.")
    while True:
        word = await quiz.get_next_word()
        if isinstance(word, EndOfCategory):
            print(f"\n{word.message}")
            break
        if word is None:
            print("\nNo words available.")
            break

        print(f"\n{word.term} {word.pronunciation}  ({word.meta.remaining} left)")
        for number, option in enumerate(word.options, start=1):
            print(f"  {number}. {option}")

        started = time.monotonic()
        answer = (await asyncio.to_thread(input, "> ")).strip().lower()
        if answer == "q":
            break
        time_left = max(0, duration - int(time.monotonic() - started))

        if time_left == 0:
            outcome = quiz.handle_timeout()
            print(f"Time's up! The correct answer is: {word.correct_answer}")
        elif answer.isdigit() and 1 <= int(answer) <= len(word.options):
            outcome = quiz.submit_answer(word.options[int(answer) - 1], time_left)
            if outcome.correct:
                print(f"Correct! +{outcome.points} points, streak {outcome.streak}")
            else:
                print(f"Wrong. The correct answer is: {word.correct_answer}")
        else:
            outcome = quiz.record_answer(word.term, False, time_left)
            print(f"Skipped. The correct answer is: {word.correct_answer}")

        if outcome and outcome.leveled_up:
            print(f"Level up! You're now level {outcome.level}!")

    print_stats(quiz)


def print_stats(quiz: QuizService) -> None:
    stats = quiz.get_stats()
    print(json.dumps({"stats": stats.to_dict(), "categories": quiz.get_completion_stats()}, indent=2))


async def run(args: argparse.Namespace) -> int:
    quiz = QuizService()
    try:
        if args.command == "play":
            await play(quiz, args.difficulty, args.category, args.again)
        elif args.command == "stats":
            print_stats(quiz)
        elif args.command == "progress":
            progress = await quiz.get_progress(args.difficulty, args.category)
            print(json.dumps(progress.to_dict(), indent=2))
        elif args.command == "preload":
            def report(update):
                item = update["current_item"]
                print(f"[{update['current']}/{update['total']}] {item['difficulty']}/{item['category']}")

            result = await quiz.preload_all(report)
            print(f"Loaded {result.success_count}, fell back for {result.failed_count}")
        elif args.command == "reset":
            quiz.reset_progress()
            if args.categories:
                quiz.ledger.reset_category_completion()
            print("Progress reset.")
        elif args.command == "export":
            args.path.write_text(json.dumps(quiz.export_data(), indent=2, ensure_ascii=False), encoding="utf-8")
            print(f"Exported to {args.path}")
        elif args.command == "import":
            data = json.loads(args.path.read_text(encoding="utf-8"))
            if not quiz.import_data(data):
                print("Import failed.", file=sys.stderr)
                return 1
            print(f"Imported {len(data)} keys")
        elif args.command == "storage-info":
            print(json.dumps(quiz.storage_info(), indent=2))
    finally:
        await quiz.aclose()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    ensure_directories()
    setup_logging("Starting wordquiz ...", level=args.log_level)

    if settings.monitoring.enabled:
        start_monitoring(settings.monitoring.port)
        logger.info(f"Metrics exported on port {settings.monitoring.port}")

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")
        return 130


if __name__ == "__main__":
    sys.exit(main())
