import argparse
import asyncio
import json
import sys
import logging
import time
from typing import Callable, List, Optional

from moodmix.crosscutting.config import ConfigError, Settings
from moodmix.crosscutting.logging import setup_logging
from moodmix.domain.entities import PlaylistItem
from moodmix.domain.errors import ValidationFailure
from moodmix.interfaces.services import Services, build_services

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INVALID_INPUT = 2


class CLI:
    """Command Line Interface for MoodMix."""

    def __init__(self, services_factory: Optional[Callable[[Settings], Services]] = None):
        """Initialize CLI.

        Args:
            services_factory: Builds services from settings (tests inject fakes here)
        """
        self.parser = self._create_parser()
        self._services_factory = services_factory or (lambda settings: build_services(settings))
        self._start_time = None

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        parser = argparse.ArgumentParser(
            prog='moodmix',
            description='Generate playlists from Spotify and YouTube by mood, genre or artist'
        )
        parser.add_argument(
            '--log-level',
            choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
            default='WARNING',
            help='Set logging level (default: WARNING)'
        )
        parser.add_argument(
            '--env-file',
            help='Load environment variables from this .env file first'
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        generate_parser = subparsers.add_parser('generate', help='Generate a playlist')
        generate_parser.add_argument(
            'input',
            help='Request such as "mood=happy, genre=pop" or free text'
        )
        generate_parser.add_argument(
            '--user-id',
            help='Use the stored provider sessions of this user'
        )

        workout_parser = subparsers.add_parser('workout', help='Recommendations for a workout')
        workout_parser.add_argument('workout', help='Workout name, e.g. "running" or "yoga"')

        weather_parser = subparsers.add_parser('weather', help='Recommendations for the weather in a city')
        weather_parser.add_argument('city', help='City name')

        subparsers.add_parser('surprise', help='Surprise video feed')

        serve_parser = subparsers.add_parser('serve', help='Run the HTTP server')
        serve_parser.add_argument('--host', default='localhost', help='Bind address (default: localhost)')
        serve_parser.add_argument('--port', type=int, default=3001, help='Port (default: 3001)')
        serve_parser.add_argument('--debug', action='store_true', help='Enable Flask debug mode')

        return parser

    def _print_items(self, items: List[PlaylistItem]) -> None:
        print(json.dumps({
            'items': [item.to_dict() for item in items],
            'count': len(items),
        }, indent=2, ensure_ascii=False))

    def _generate(self, services: Services, args: argparse.Namespace) -> None:
        generator = services.generator_for(args.user_id)
        auth = services.auth_for(args.user_id)
        self._print_items(asyncio.run(generator.generate(args.input, auth)))

    def _workout(self, services: Services, args: argparse.Namespace) -> None:
        if not args.workout.strip():
            raise ValidationFailure("Workout name must not be empty")
        generator = services.generator_for(None)
        self._print_items(asyncio.run(generator.recommend(
            'recommendations.for_workout', services.builder.for_workout, args.workout)))

    def _weather(self, services: Services, args: argparse.Namespace) -> None:
        if not args.city.strip():
            raise ValidationFailure("City must not be empty")
        generator = services.generator_for(None)
        self._print_items(asyncio.run(generator.recommend(
            'recommendations.for_weather', services.builder.for_weather, args.city)))

    def _surprise(self, services: Services, args: argparse.Namespace) -> None:
        self._print_items(asyncio.run(services.generator_for(None).surprise()))

    def _serve(self, services: Services, args: argparse.Namespace) -> None:
        from moodmix.interfaces.http import HTTPServer

        HTTPServer(services=services, host=args.host, port=args.port, debug=args.debug).run()

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Run the CLI and return the process exit code."""
        self._start_time = time.time()
        logger = logging.getLogger(__name__)
        args = self.parser.parse_args(argv)

        if not args.command:
            self.parser.print_help()
            return EXIT_ERROR

        setup_logging(args.log_level)

        commands = {
            'generate': self._generate,
            'workout': self._workout,
            'weather': self._weather,
            'surprise': self._surprise,
            'serve': self._serve,
        }

        try:
            services = self._services_factory(Settings.from_env(args.env_file))
            commands[args.command](services, args)
            return EXIT_OK
        except ValidationFailure as e:
            print(f"Invalid input: {e}", file=sys.stderr)
            return EXIT_INVALID_INPUT
        except ConfigError as e:
            logger.error(f"Configuration error: {e}")
            return EXIT_ERROR
        except KeyboardInterrupt:
            logger.warning("Operation cancelled by user")
            return 130
        finally:
            duration = time.time() - self._start_time
            logger.debug(f"CLI execution time: {duration:.2f}s")


def main():
    """Main entry point."""
    sys.exit(CLI().run())


if __name__ == '__main__':
    main()
