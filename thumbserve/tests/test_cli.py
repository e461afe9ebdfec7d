"""Tests for CLI module."""

import os
import signal
from unittest.mock import patch

import pytest

from thumbserve.cli import create_parser, get_config, main, setup_logging
from thumbserve.generator import Generator

from conftest import image_size, make_image_bytes


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep THUMB_* and S3_* variables from the outer environment out of tests."""
    for name in list(os.environ):
        if name.startswith(('THUMB_', 'S3_')):
            monkeypatch.delenv(name)


@pytest.fixture
def clean_source(tmp_path):
    """A source directory without undecodable images."""
    root = tmp_path / 'clean'
    root.mkdir()
    (root / 'cat.jpg').write_bytes(make_image_bytes((800, 600), 'JPEG'))
    (root / 'dog.png').write_bytes(make_image_bytes((640, 480), 'PNG'))
    return root


class TestCreateParser:
    """Tests for argument parser creation."""

    def test_parser_created(self):
        """Test parser is created successfully."""
        parser = create_parser()
        assert parser is not None

    def test_serve_command(self):
        """Test serve command parsing."""
        parser = create_parser()
        args = parser.parse_args([
            'serve', '--width', '120', '--height', '80', '--extension', 'jpg',
            '-p', '9000', '--peer', 'http://a:9000', '--peer', 'http://b:9000',
        ])

        assert args.command == 'serve'
        assert args.width == 120
        assert args.port == 9000
        assert args.peer == ['http://a:9000', 'http://b:9000']

    def test_warm_command(self):
        """Test warm command parsing."""
        parser = create_parser()
        args = parser.parse_args(['warm', '--cadence', '0.5', '-n', '--limit', '10'])

        assert args.command == 'warm'
        assert args.cadence == 0.5
        assert args.dry_run is True
        assert args.limit == 10

    def test_variant_choices(self):
        """Test unknown variants are rejected by the parser."""
        parser = create_parser()

        with pytest.raises(SystemExit):
            parser.parse_args(['serve', '--variant', 'redis'])


class TestGetConfig:
    """Tests for merging environment and CLI settings."""

    def test_cli_overrides_env(self, monkeypatch):
        """Test CLI values win over THUMB_* variables."""
        monkeypatch.setenv('THUMB_WIDTH', '500')
        monkeypatch.setenv('THUMB_HEIGHT', '400')
        args = create_parser().parse_args(['serve', '--width', '120'])

        config = get_config(args)

        assert config.width == 120
        assert config.height == 400

    def test_peers_and_debug(self):
        """Test repeated --peer and --debug are applied."""
        args = create_parser().parse_args(['serve', '--peer', 'http://a', '--debug'])

        config = get_config(args)

        assert config.peers == ['http://a']
        assert config.debug is True


class TestMain:
    """Tests for main entry point."""

    def test_no_command(self):
        """Test main with no command shows help."""
        assert main([]) == 1

    def test_serve_invalid_config(self, tmp_path):
        """Test serve refuses to start with an invalid config."""
        result = main(['serve', '--extension', 'bmp', '--source-root', str(tmp_path)])

        assert result == 1

    def test_serve_runs_bottle(self, clean_source, tmp_path, mocker):
        """Test serve builds the app and hands it to bottle.run."""
        run = mocker.patch('thumbserve.cli.run')

        result = main([
            'serve', '--source-root', str(clean_source),
            '--thumbnail-root', str(tmp_path / 'thumbs'),
            '--host', '127.0.0.1', '-p', '9000',
        ])

        assert result == 0
        kwargs = run.call_args.kwargs
        assert kwargs['host'] == '127.0.0.1'
        assert kwargs['port'] == 9000
        assert kwargs['server'] == 'wsgiref'

    def test_serve_s3_requires_bucket(self, clean_source, mocker):
        """Test the s3 variant validates its S3 settings."""
        run = mocker.patch('thumbserve.cli.run')

        result = main(['serve', '--variant', 's3', '--source-root', str(clean_source)])

        assert result == 1
        run.assert_not_called()

    def test_warm(self, clean_source, tmp_path, capsys):
        """Test warm fills the thumbnail directory."""
        thumbs = tmp_path / 'thumbs'

        result = main([
            'warm', '--source-root', str(clean_source),
            '--thumbnail-root', str(thumbs),
        ])

        assert result == 0
        assert image_size((thumbs / 'cat.jpg.png').read_bytes()) == (300, 250)
        assert (thumbs / 'dog.png.png').exists()
        assert 'Generated: 2' in capsys.readouterr().out

    def test_warm_dry_run(self, clean_source, tmp_path):
        """Test a dry run writes nothing."""
        thumbs = tmp_path / 'thumbs'

        result = main([
            'warm', '-n', '-q', '--source-root', str(clean_source),
            '--thumbnail-root', str(thumbs),
        ])

        assert result == 0
        assert not thumbs.exists()

    def test_warm_reports_errors(self, source_root, tmp_path):
        """Test warm fails when any image could not be generated."""
        result = main([
            'warm', '-q', '--source-root', str(source_root),
            '--thumbnail-root', str(tmp_path / 'thumbs'),
        ])

        assert result == 1

    def test_warm_memory_variant(self, clean_source):
        """Test the memory variant cannot be warmed."""
        result = main(['warm', '--variant', 'memory', '--source-root', str(clean_source)])

        assert result == 1

    @pytest.mark.parametrize('command', ['serve', 'warm'])
    def test_non_integer_env(self, command, clean_source, monkeypatch, mocker):
        """Test a non-integer THUMB_* number is reported instead of raised."""
        run = mocker.patch('thumbserve.cli.run')
        monkeypatch.setenv('THUMB_WIDTH', 'wide')

        result = main([command, '--source-root', str(clean_source)])

        assert result == 1
        run.assert_not_called()

    def test_non_integer_port(self, clean_source, monkeypatch, mocker):
        """Test THUMB_PORT must be a number."""
        run = mocker.patch('thumbserve.cli.run')
        monkeypatch.setenv('THUMB_PORT', 'abc')

        assert main(['serve', '--source-root', str(clean_source)]) == 1
        run.assert_not_called()

    def test_unknown_log_level(self, clean_source, monkeypatch, mocker):
        """Test an unknown THUMB_LOG_LEVEL is a configuration error."""
        run = mocker.patch('thumbserve.cli.run')
        monkeypatch.setenv('THUMB_LOG_LEVEL', 'loud')

        assert main(['serve', '--source-root', str(clean_source)]) == 1
        run.assert_not_called()

    def test_warm_stops_on_sigterm(self, clean_source, tmp_path):
        """Test SIGTERM lets warm finish the current image and exit cleanly."""
        thumbs = tmp_path / 'thumbs'
        previous = signal.getsignal(signal.SIGTERM)
        process_key = Generator._process_key

        def terminate_after_first(self, key):
            generated = process_key(self, key)
            os.kill(os.getpid(), signal.SIGTERM)
            return generated

        with patch.object(Generator, '_process_key', terminate_after_first):
            result = main([
                'warm', '-q', '--source-root', str(clean_source),
                '--thumbnail-root', str(thumbs),
            ])

        assert result == 0
        assert len(list(thumbs.iterdir())) == 1
        assert signal.getsignal(signal.SIGTERM) == previous


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_level_name(self):
        """Test a level name is accepted."""
        assert setup_logging(False, 'WARNING').name == 'thumbserve'

    def test_unknown_level(self):
        """Test an unknown level name raises ValueError."""
        with pytest.raises(ValueError, match='LOUD'):
            setup_logging(False, 'LOUD')
