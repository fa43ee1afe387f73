import argparse
import asyncio
import json
import logging
import sys
import time
from typing import Any, List, Optional

from soundscope.application.dashboard import build_dashboard, genre_tracks
from soundscope.application.quality import validate_artists, validate_tracks
from soundscope.crosscutting.config import ConfigError, ConfigManager, get_config_manager
from soundscope.crosscutting.logging import CorrelationContext, setup_logging
from soundscope.domain.entities import TimeDimension, snapshot_to_dict
from soundscope.domain.errors import PermanentFailure, SoundScopeError
from soundscope.domain.ports import DataSource
from soundscope.infrastructure.factory import SourceMode, create_session

logger = logging.getLogger(__name__)

LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR']


class CLI:
    """Command Line Interface for SoundScope."""

    def __init__(self, config: Optional[ConfigManager] = None):
        self.config = config or get_config_manager()
        self.parser = self._create_parser()
        self._start_time = None

    def _add_common_arguments(self, parser: argparse.ArgumentParser, with_dimension: bool = True) -> None:
        parser.add_argument(
            '--source',
            choices=[mode.value for mode in SourceMode],
            default=None,
            help='Data source (default from SOUNDSCOPE_SOURCE or sandbox)'
        )
        if with_dimension:
            parser.add_argument(
                '--dimension',
                choices=[dimension.value for dimension in TimeDimension],
                default=TimeDimension.ALL_TIME.value,
                help='Time window (default: all_time)'
            )
        parser.add_argument(
            '--limit',
            type=int,
            default=50,
            help='Maximum number of items to fetch (default: 50)'
        )
        parser.add_argument(
            '--log-level',
            choices=LOG_LEVELS,
            default=None,
            help='Set logging level'
        )

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        parser = argparse.ArgumentParser(
            prog='soundscope',
            description='Listening history dashboard from Spotify or bundled sandbox data'
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        dashboard_parser = subparsers.add_parser('dashboard', help='Full dashboard snapshot')
        self._add_common_arguments(dashboard_parser)

        stats_parser = subparsers.add_parser('stats', help='Library statistics')
        self._add_common_arguments(stats_parser)

        genres_parser = subparsers.add_parser('genres', help='Genre breakdown')
        self._add_common_arguments(genres_parser)

        genre_parser = subparsers.add_parser('genre', help='Top tracks for one genre')
        genre_parser.add_argument('name', help='Genre label or fragment, e.g. "rock"')
        self._add_common_arguments(genre_parser)

        health_parser = subparsers.add_parser('health', help='Library health and data quality report')
        self._add_common_arguments(health_parser)

        top_parser = subparsers.add_parser('top', help='Top tracks or artists')
        top_parser.add_argument('kind', choices=['tracks', 'artists'], help='What to rank')
        self._add_common_arguments(top_parser)

        recent_parser = subparsers.add_parser('recent', help='Recently played tracks')
        self._add_common_arguments(recent_parser, with_dimension=False)

        config_parser = subparsers.add_parser('config', help='Show configuration summary')
        config_parser.add_argument(
            '--log-level',
            choices=LOG_LEVELS,
            default=None,
            help='Set logging level'
        )

        return parser

    def _validate_arguments(self, args: argparse.Namespace) -> None:
        """Validate CLI arguments."""
        if getattr(args, 'limit', 1) < 1:
            raise ValueError("--limit must be a positive integer")

    async def _open_source(self, args: argparse.Namespace) -> DataSource:
        """Build the source and sign in through the auth provider that shares its session."""
        auth, source = create_session(args.source, self.config)
        if auth.get_user() is None:
            await auth.login()
            if auth.get_error():
                raise PermanentFailure(auth.get_error())
        return source

    def _emit(self, payload: Any) -> None:
        print(json.dumps(snapshot_to_dict(payload), indent=2, ensure_ascii=False))

    async def _dashboard(self, args: argparse.Namespace) -> None:
        snapshot = await build_dashboard(await self._open_source(args), args.dimension, args.limit)
        self._emit(snapshot)

    async def _stats(self, args: argparse.Namespace) -> None:
        snapshot = await build_dashboard(await self._open_source(args), args.dimension, args.limit)
        self._emit({'stats': snapshot.stats, 'listening': snapshot.listening})

    async def _genres(self, args: argparse.Namespace) -> None:
        snapshot = await build_dashboard(await self._open_source(args), args.dimension, args.limit)
        self._emit(snapshot.genres)

    async def _top(self, args: argparse.Namespace) -> None:
        source = await self._open_source(args)
        if args.kind == 'tracks':
            items = await source.get_top_tracks(args.limit, args.dimension)
        else:
            items = await source.get_top_artists(args.limit, args.dimension)
        self._emit(items)

    async def _recent(self, args: argparse.Namespace) -> None:
        source = await self._open_source(args)
        self._emit(await source.get_recently_played(args.limit))

    async def _genre(self, args: argparse.Namespace) -> None:
        source = await self._open_source(args)
        self._emit(await genre_tracks(source, args.name, args.dimension, args.limit))

    async def _health(self, args: argparse.Namespace) -> None:
        source = await self._open_source(args)
        snapshot = await build_dashboard(source, args.dimension, args.limit)
        tracks = validate_tracks(snapshot.top_tracks)
        artists = validate_artists(snapshot.top_artists)
        self._emit({
            'health': snapshot.health,
            'tracks': {'valid': len(tracks.valid_items), 'errors': tracks.errors, 'warnings': tracks.warnings},
            'artists': {'valid': len(artists.valid_items), 'errors': artists.errors, 'warnings': artists.warnings},
        })

    def _show_config(self) -> None:
        self._emit(self.config.get_config_summary())

    def _dispatch(self, args: argparse.Namespace) -> None:
        if args.command == 'config':
            self._show_config()
            return

        handlers = {
            'dashboard': self._dashboard,
            'stats': self._stats,
            'genres': self._genres,
            'genre': self._genre,
            'health': self._health,
            'top': self._top,
            'recent': self._recent,
        }
        with CorrelationContext(source=args.source, operation=args.command,
                                dimension=getattr(args, 'dimension', None)):
            asyncio.run(handlers[args.command](args))

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Run the CLI and return the process exit code."""
        self._start_time = time.time()
        args = self.parser.parse_args(argv)

        if not args.command:
            self.parser.print_help()
            return 2

        try:
            setup_logging(args.log_level or self.config.get_log_level())
            self._validate_arguments(args)
            self._dispatch(args)
            return 0
        except KeyboardInterrupt:
            logger.warning("Operation cancelled by user")
            return 130
        except (ConfigError, SoundScopeError, ValueError) as e:
            logger.error(f"CLI error: {e}")
            return 1
        finally:
            logger.debug(f"CLI execution time: {time.time() - self._start_time:.2f}s")


def main():
    """Main entry point."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == '__main__':
    main()
