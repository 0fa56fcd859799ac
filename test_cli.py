#!/usr/bin/env python3
"""
Tests for the command-line entry point and the filesystem collaborator.
"""

import sys
from pathlib import Path

import pytest

# Add the src directory to the path
src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(src_path))

from htmlcpr.cli import main, parse_args, run
from htmlcpr.core.errors import HtmlcprError
from htmlcpr.core.files import SourceFile
from htmlcpr.utils.file_manager import FileManager


def make_site(root):
    (root / 'site' / 'images').mkdir(parents=True)
    (root / 'site' / 'css').mkdir()
    (root / 'site' / 'index.html').write_text(
        '<link rel="stylesheet" href="css/site.css"><img src="/images/logo.png"><img src="//cdn.example/x.png">'
    )
    (root / 'site' / 'css' / 'site.css').write_text('h1 { background: url(../images/bg.png) }')
    (root / 'site' / 'images' / 'logo.png').write_bytes(b'logo')
    (root / 'site' / 'images' / 'bg.png').write_bytes(b'background')


def test_cli_copies_site_with_prefix(tmp_path):
    make_site(tmp_path)
    dest = tmp_path / 'out'
    code = run(parse_args([
        'index.html',
        '--cwd', str(tmp_path / 'site'),
        '--dest', str(dest),
        '--prefix', 'deps',
        '--schemeless-fix', 'https',
    ]))
    assert code == 0
    assert (dest / 'index.html').read_text() == (
        '<link rel="stylesheet" href="deps/css/site.css">'
        '<img src="deps/images/logo.png"><img src="https://cdn.example/x.png">'
    )
    assert (dest / 'deps' / 'css' / 'site.css').read_text() == 'h1 { background: url(../images/bg.png) }'
    assert (dest / 'deps' / 'images' / 'logo.png').read_bytes() == b'logo'
    assert (dest / 'deps' / 'images' / 'bg.png').read_bytes() == b'background'
    assert FileManager(str(dest)).get_output_stats()['files'] == 4


def test_cli_blacklist_and_norec_patterns(tmp_path):
    make_site(tmp_path)
    dest = tmp_path / 'out'
    code = run(parse_args([
        'index.html',
        '--cwd', str(tmp_path / 'site'),
        '--dest', str(dest),
        '--blacklist', '/images/*',
        '--norec-dir', 'css',
    ]))
    assert code == 0
    assert sorted(p.relative_to(dest).as_posix() for p in dest.rglob('*') if p.is_file()) == \
        ['css/site.css', 'index.html']


def test_cli_reports_missing_resource(tmp_path):
    site = tmp_path / 'site'
    site.mkdir()
    (site / 'index.html').write_text('<img src="missing.png">')
    with pytest.raises(SystemExit) as info:
        main(['index.html', '--cwd', str(site), '--dest', str(tmp_path / 'out')])
    assert info.value.code == 1


def test_read_inputs_expands_globs(tmp_path):
    make_site(tmp_path)
    manager = FileManager(cwd=str(tmp_path / 'site'))
    files = list(manager.read_inputs(['**/*.css', 'images']))
    assert [(f.relative, f.is_directory) for f in files] == [('css/site.css', False), ('images', True)]


def test_dependency_outside_dest_is_not_written(tmp_path):
    site = tmp_path / 'site'
    site.mkdir()
    (site / 'page.html').write_text('<img src="../secret.png">')
    (tmp_path / 'secret.png').write_bytes(b'secret')
    code = run(parse_args(['page.html', '--cwd', str(site), '--dest', str(site / 'out')]))
    assert code == 1
    assert not (site / 'secret.png').exists()
    assert sorted(p.name for p in tmp_path.rglob('*.png')) == ['secret.png']


def test_prefix_keeps_outside_dependency_in_dest(tmp_path):
    site = tmp_path / 'site'
    site.mkdir()
    (site / 'page.html').write_text('<img src="../shared/logo.png">')
    (tmp_path / 'shared').mkdir()
    (tmp_path / 'shared' / 'logo.png').write_bytes(b'logo')
    dest = tmp_path / 'out'
    code = run(parse_args(['page.html', '--cwd', str(site), '--dest', str(dest), '--prefix', 'deps']))
    assert code == 0
    assert (dest / 'page.html').read_text() == '<img src="shared/logo.png">'
    assert (dest / 'shared' / 'logo.png').read_bytes() == b'logo'


def test_write_outputs_rejects_escaping_paths(tmp_path):
    manager = FileManager(str(tmp_path / 'out'))
    escaping = SourceFile(path=str(tmp_path / 'x.png'), base=str(tmp_path), contents=b'x',
                          relative_path='../x.png')
    with pytest.raises(HtmlcprError):
        manager.write_outputs([escaping])
    assert not (tmp_path / 'x.png').exists()
