import argparse
import json
import logging
from unittest.mock import AsyncMock, Mock, patch

import pytest

from soundscope.crosscutting.config import ConfigManager
from soundscope.domain.errors import PermanentFailure
from soundscope.interfaces.cli import CLI, main


class TestCLI:
    """Tests for CLI functionality."""

    @pytest.fixture(autouse=True)
    def _cli(self, tmp_path):
        self.config = ConfigManager(str(tmp_path), environ={'SOUNDSCOPE_LOG_LEVEL': 'WARNING'})
        self.cli = CLI(self.config)
        yield
        logging.getLogger('soundscope').handlers.clear()

    def _run_json(self, capsys, argv):
        code = self.cli.run(argv)
        out = capsys.readouterr().out
        return code, json.loads(out) if out.strip() else None

    def test_create_parser(self):
        parser = self.cli._create_parser()

        assert isinstance(parser, argparse.ArgumentParser)

        args = parser.parse_args(['dashboard', '--source', 'sandbox', '--dimension', 'month', '--limit', '5'])
        assert args.command == 'dashboard'
        assert args.source == 'sandbox'
        assert args.dimension == 'month'
        assert args.limit == 5

        args = parser.parse_args(['top', 'artists'])
        assert args.kind == 'artists'
        assert args.dimension == 'all_time'
        assert args.source is None

    def test_usage_errors_exit_with_two(self):
        with pytest.raises(SystemExit) as exc_info:
            self.cli.run(['top', 'albums'])
        assert exc_info.value.code == 2

        with pytest.raises(SystemExit) as exc_info:
            self.cli.run(['dashboard', '--dimension', 'decade'])
        assert exc_info.value.code == 2

    def test_no_command_prints_help(self, capsys):
        assert self.cli.run([]) == 2
        assert 'usage' in capsys.readouterr().out

    def test_dashboard_sandbox(self, capsys):
        code, data = self._run_json(capsys, ['dashboard', '--dimension', 'month', '--limit', '5'])

        assert code == 0
        assert data['time_dimension'] == 'month'
        assert len(data['top_tracks']) <= 5
        assert data['stats']['has_data'] is True
        assert {'top_artists', 'recently_played', 'genres', 'listening'} <= set(data)

    def test_stats(self, capsys):
        code, data = self._run_json(capsys, ['stats', '--dimension', 'year'])

        assert code == 0
        assert data['stats']['time_dimension'] == 'year'
        assert 'total_plays' in data['listening']

    def test_genres(self, capsys):
        code, data = self._run_json(capsys, ['genres'])

        assert code == 0
        assert data
        assert round(sum(g['percentage'] for g in data)) == 100

    def test_top_tracks(self, capsys):
        code, data = self._run_json(capsys, ['top', 'tracks', '--limit', '3'])

        assert code == 0
        assert len(data) == 3
        popularity = [t['popularity'] for t in data]
        assert popularity == sorted(popularity, reverse=True)

    def test_recent(self, capsys):
        code, data = self._run_json(capsys, ['recent', '--limit', '4'])

        assert code == 0
        assert len(data) == 4
        assert all('played_at' in r for r in data)

    def test_genre(self, capsys):
        code, data = self._run_json(capsys, ['genre', 'rock', '--limit', '50'])

        assert code == 0
        assert data
        popularity = [t['popularity'] for t in data]
        assert popularity == sorted(popularity, reverse=True)

    def test_health(self, capsys):
        code, data = self._run_json(capsys, ['health'])

        assert code == 0
        assert 0 <= data['health']['overall_score'] <= 100
        assert data['tracks']['valid'] > 0
        assert data['artists']['errors'] == []

    def test_config(self, capsys):
        code, data = self._run_json(capsys, ['config'])

        assert code == 0
        assert data['source_mode'] == 'sandbox'
        assert data['live_ready'] is False

    def test_invalid_limit(self, capsys):
        assert self.cli.run(['top', 'tracks', '--limit', '0']) == 1

    def test_live_without_credentials_fails(self, capsys):
        assert self.cli.run(['dashboard', '--source', 'live']) == 1
        assert capsys.readouterr().out == ''

    @patch('soundscope.interfaces.cli.create_session')
    def test_provider_errors_exit_with_one(self, mock_create, capsys):
        auth = Mock()
        auth.get_user.return_value = Mock()
        source = Mock()
        source.get_recently_played = AsyncMock(side_effect=PermanentFailure("revoked"))
        mock_create.return_value = (auth, source)

        assert self.cli.run(['recent', '--source', 'live']) == 1
        mock_create.assert_called_once_with('live', self.config)

    @patch('soundscope.interfaces.cli.create_session')
    def test_signs_in_before_fetching(self, mock_create, capsys):
        auth = Mock()
        auth.get_user.return_value = None
        auth.login = AsyncMock()
        auth.get_error.return_value = None
        source = Mock()
        source.get_recently_played = AsyncMock(return_value=[])
        mock_create.return_value = (auth, source)

        code, data = self._run_json(capsys, ['recent', '--source', 'live'])

        assert code == 0
        assert data == []
        auth.login.assert_awaited_once()

    @patch('soundscope.interfaces.cli.create_session')
    def test_failed_login_exits_with_one(self, mock_create, capsys):
        auth = Mock()
        auth.get_user.return_value = None
        auth.login = AsyncMock()
        auth.get_error.return_value = "Login failed: denied"
        source = Mock()
        source.get_recently_played = AsyncMock(return_value=[])
        mock_create.return_value = (auth, source)

        assert self.cli.run(['recent', '--source', 'live']) == 1
        source.get_recently_played.assert_not_called()

    @patch('soundscope.interfaces.cli.CLI.run', return_value=0)
    def test_main_exits_with_run_code(self, mock_run):
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 0
