"""Tests for platform_utils.py"""

import pytest
import subprocess
from unittest.mock import Mock, patch

from iconrestore.platform_utils import (
    EXIT_NOT_FOUND,
    EXIT_TIMEOUT,
    CommandResult,
    PlatformUtils,
    RequiredTool,
)


class TestPlatformUtils:
    """Test cases for PlatformUtils"""

    def test_get_platform_info_darwin(self):
        """Test platform info detection on macOS"""
        with patch('platform.system', return_value='Darwin'), \
             patch('platform.machine', return_value='arm64'), \
             patch('platform.mac_ver', return_value=('13.4.1', ('', '', ''), 'arm64')):

            result = PlatformUtils.get_platform_info()
            assert "macOS 13.4.1 (arm64)" == result

    def test_get_platform_info_linux(self):
        with patch('platform.system', return_value='Linux'), \
             patch('platform.machine', return_value='x86_64'):

            result = PlatformUtils.get_platform_info()
            assert "Linux (x86_64)" == result

    def test_is_macos(self):
        with patch('platform.system', return_value='Darwin'):
            assert PlatformUtils.is_macos() is True

        with patch('platform.system', return_value='Linux'):
            assert PlatformUtils.is_macos() is False

    def test_command_exists(self):
        with patch('shutil.which', return_value='/usr/bin/sips'):
            assert PlatformUtils.command_exists('sips') is True

        with patch('shutil.which', return_value=None):
            assert PlatformUtils.command_exists('sips') is False

    def test_required_tools(self):
        names = [tool.name for tool in PlatformUtils.REQUIRED_TOOLS]
        assert names == ['sips', 'DeRez', 'Rez', 'SetFile', 'osascript']


class TestLocateTool:
    """Tool resolution on PATH and in fallback locations"""

    def test_found_on_path(self):
        tool = RequiredTool('Rez', 'test', ['/nowhere/Rez'])

        with patch('shutil.which', return_value='/usr/bin/Rez'):
            assert PlatformUtils.locate_tool(tool) == '/usr/bin/Rez'

    def test_fallback_path(self, tmp_path):
        fallback = tmp_path / 'SetFile'
        fallback.write_text('')
        tool = RequiredTool('SetFile', 'test', [str(tmp_path / 'missing'), str(fallback)])

        with patch('shutil.which', return_value=None):
            assert PlatformUtils.locate_tool(tool) == str(fallback)

    def test_missing(self):
        tool = RequiredTool('DeRez', 'test', ['/nowhere/DeRez'])

        with patch('shutil.which', return_value=None):
            assert PlatformUtils.locate_tool(tool) is None

    def test_resolve_programs_falls_back_to_name(self):
        with patch.object(PlatformUtils, 'check_required_tools',
                          return_value={'sips': '/usr/bin/sips', 'Rez': None}):
            assert PlatformUtils.resolve_programs() == {'sips': '/usr/bin/sips', 'Rez': 'Rez'}

    def test_missing_tools(self):
        with patch.object(PlatformUtils, 'check_required_tools',
                          return_value={'sips': '/usr/bin/sips', 'Rez': None, 'DeRez': None}):
            assert PlatformUtils.missing_tools() == ['Rez', 'DeRez']


class TestExecute:
    """Structured command execution"""

    def test_success(self):
        completed = Mock(returncode=0, stdout=b'ok\n', stderr=b'')

        with patch('subprocess.run', return_value=completed) as mock_run:
            result = PlatformUtils.execute(['sips', '-i', '/tmp/a b.icns'], timeout=5)

        assert result.success
        assert result.stdout == 'ok\n'
        assert result.command == ['sips', '-i', '/tmp/a b.icns']
        args, kwargs = mock_run.call_args
        assert args[0] == ['sips', '-i', '/tmp/a b.icns']
        assert kwargs['timeout'] == 5
        assert 'shell' not in kwargs

    def test_failure_keeps_stderr(self):
        completed = Mock(returncode=2, stdout=b'', stderr=b'bad input\n')

        with patch('subprocess.run', return_value=completed):
            result = PlatformUtils.execute(['DeRez', 'x'])

        assert not result.success
        assert result.returncode == 2
        assert result.stderr == 'bad input\n'

    def test_timeout(self):
        with patch('subprocess.run', side_effect=subprocess.TimeoutExpired(['Rez'], 3)):
            result = PlatformUtils.execute(['Rez'], timeout=3)

        assert result.returncode == EXIT_TIMEOUT
        assert 'timed out' in result.stderr

    def test_not_found(self):
        with patch('subprocess.run', side_effect=FileNotFoundError()):
            result = PlatformUtils.execute(['SetFile', '-a', 'C', '/x.app'])

        assert result.returncode == EXIT_NOT_FOUND
        assert 'SetFile' in result.stderr

    def test_not_found_real(self):
        result = PlatformUtils.execute(['iconrestore-definitely-missing-tool'])

        assert result.returncode == EXIT_NOT_FOUND

    def test_stdout_to_file(self, tmp_path):
        target = tmp_path / 'out.rsrc'

        def fake_run(argv, stdout=None, **kwargs):
            stdout.write(b"data 'icns'")
            return Mock(returncode=0, stderr=b'')

        with patch('subprocess.run', side_effect=fake_run):
            result = PlatformUtils.execute(['DeRez', '-only', 'icns', 'x'], stdout_path=target)

        assert result.success
        assert result.stdout == ''
        assert target.read_bytes() == b"data 'icns'"

    def test_arguments_stringified(self, tmp_path):
        completed = Mock(returncode=0, stdout=b'', stderr=b'')

        with patch('subprocess.run', return_value=completed) as mock_run:
            PlatformUtils.execute(['sips', '-i', tmp_path / 'icon.icns'])

        assert mock_run.call_args.args[0][-1] == str(tmp_path / 'icon.icns')


class TestSpawnDetached:

    def test_started(self):
        with patch('subprocess.Popen') as mock_popen:
            assert PlatformUtils.spawn_detached(['osascript', '-e', 'beep']) is True

        kwargs = mock_popen.call_args.kwargs
        assert kwargs['start_new_session'] is True
        assert kwargs['stdout'] == subprocess.DEVNULL

    def test_start_failure(self):
        with patch('subprocess.Popen', side_effect=FileNotFoundError()):
            assert PlatformUtils.spawn_detached(['osascript']) is False


class TestCommandResult:

    @pytest.mark.parametrize('code, expected', [(0, True), (1, False), (EXIT_TIMEOUT, False)])
    def test_success(self, code, expected):
        assert CommandResult(['x'], code).success is expected


def test_get_system_info():
    with patch.object(PlatformUtils, 'check_required_tools', return_value={'sips': None}):
        info = PlatformUtils.get_system_info()

    assert info['tools'] == {'sips': None}
    assert set(info) >= {'platform', 'os_type', 'is_macos', 'python_version', 'python_executable'}
