#!/usr/bin/env python3
"""
Tests for URL classification, configuration validation and the
per-reference policy precedence.
"""

import sys
from pathlib import Path

import pytest

# Add the src directory to the path
src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(src_path))

from htmlcpr.core.assets import Reference
from htmlcpr.core.config import CopyConfig
from htmlcpr.core.errors import ConfigurationError, OutputCollisionError
from htmlcpr.core.policy import Action, PolicyEngine, SchemelessFix, make_schemeless_fix
from htmlcpr.core.resolver import VisitedSet
from htmlcpr.utils.validators import UrlKind, classify_url, split_url


def ref(url):
    return Reference(url=url, start=0, end=len(url), context='img[src]', quote='"')


def never_called(url, src):
    raise AssertionError(f"hook called for {url} from {src}")


@pytest.mark.parametrize("url, kind", [
    ('http://ext.example/b.png', UrlKind.REMOTE),
    ('HTTPS://ext.example/b.png', UrlKind.REMOTE),
    ('data:image/png;base64,AAAA', UrlKind.REMOTE),
    ('mailto:someone@example.com', UrlKind.REMOTE),
    ('//cdn.example/c.png', UrlKind.SCHEMELESS),
    ('/images/a.jpg', UrlKind.LOCAL),
    ('images/a.jpg', UrlKind.LOCAL),
    ('../fonts/icons.woff', UrlKind.LOCAL),
])
def test_classify_url(url, kind):
    assert classify_url(url) is kind


def test_split_url_keeps_query_and_fragment():
    assert split_url('fonts/icons.woff?v=4#iefix') == ('fonts/icons.woff', '?v=4#iefix')
    assert split_url('sprite.svg#icon?x') == ('sprite.svg', '#icon?x')
    assert split_url('images/a.jpg') == ('images/a.jpg', '')


def test_config_rejects_invalid_options():
    with pytest.raises(ConfigurationError):
        CopyConfig(schemeless_url_fix=42)
    with pytest.raises(ConfigurationError):
        CopyConfig(schemeless_url_fix='ht tp')
    with pytest.raises(ConfigurationError):
        CopyConfig(blacklist_fn='images/*')
    with pytest.raises(ConfigurationError):
        CopyConfig(overwrite_path=True)
    with pytest.raises(ConfigurationError):
        CopyConfig(norec_dir=['css', 3])
    with pytest.raises(ConfigurationError):
        CopyConfig.from_options(unknownOption=1)


def test_config_from_camel_case_options(tmp_path):
    config = CopyConfig.from_options(
        cwd=str(tmp_path),
        base='fixtures',
        schemelessUrlFix='https:',
        norecDir='css',
    )
    assert config.base == str(tmp_path / 'fixtures')
    assert config.norec_dirs == frozenset({'css'})
    assert config.schemeless_url_fix == 'https:'


def test_remote_is_kept_without_calling_hooks():
    engine = PolicyEngine(CopyConfig(skip_fn=never_called, blacklist_fn=never_called))
    decision = engine.decide(ref('http://ext.example/b.png'), 'page.html')
    assert decision.action is Action.KEEP
    assert decision.kind is UrlKind.REMOTE


def test_schemeless_default_string_and_function():
    url = '//cdn.example/c.png'
    assert PolicyEngine(CopyConfig()).decide(ref(url), 'p.html').replacement == 'http://cdn.example/c.png'
    assert PolicyEngine(CopyConfig(schemeless_url_fix='https')).decide(ref(url), 'p.html').replacement == \
        'https://cdn.example/c.png'

    def fix(u, src):
        return 'asd:' + u if u.endswith('c.png') else u

    engine = PolicyEngine(CopyConfig(schemeless_url_fix=fix))
    decision = engine.decide(ref(url), 'p.html')
    assert decision.action is Action.REWRITE
    assert decision.replacement == 'asd://cdn.example/c.png'
    assert engine.decide(ref('//cdn.example/d.png'), 'p.html').replacement == '//cdn.example/d.png'


def test_make_schemeless_fix_rejects_other_types():
    with pytest.raises(ConfigurationError):
        make_schemeless_fix(['https'])


def test_schemeless_fix_requires_apply():
    class Incomplete(SchemelessFix):
        pass

    with pytest.raises(TypeError):
        Incomplete()


def test_skip_takes_precedence_over_blacklist():
    engine = PolicyEngine(CopyConfig(skip_fn=lambda url, src: True, blacklist_fn=never_called))
    decision = engine.decide(ref('/images/almond.jpg'), 'page.html')
    assert decision.action is Action.KEEP
    assert decision.reason == 'skip'


def test_blacklist_is_scoped_to_url_and_source():
    def blacklist(url, src):
        return src == 'page.html' and url == '/images/almond.jpg'

    engine = PolicyEngine(CopyConfig(blacklist_fn=blacklist))
    decision = engine.decide(ref('/images/almond.jpg'), 'page.html')
    assert (decision.action, decision.reason) == (Action.KEEP, 'blacklist')
    assert engine.decide(ref('/images/almond.jpg'), 'css/style.css').action is Action.COPY
    assert engine.decide(ref('/images/bed.jpg'), 'page.html').action is Action.COPY


def test_local_reference_without_path_is_kept():
    assert PolicyEngine(CopyConfig()).decide(ref('?v=1'), 'page.html').action is Action.KEEP


def test_visited_set_first_claim_wins():
    visited = VisitedSet()
    calls = []

    def propose():
        calls.append(1)
        return 'images/a.jpg'

    assert visited.claim('/site/images/a.jpg', propose) == ('images/a.jpg', True)
    assert visited.claim('/site/images/a.jpg', propose) == ('images/a.jpg', False)
    assert len(calls) == 1
    assert len(visited) == 1


def test_visited_set_rejects_output_collisions():
    visited = VisitedSet()
    visited.claim('/site/a/x.png', lambda: 'x.png')
    with pytest.raises(OutputCollisionError):
        visited.claim('/site/b/x.png', lambda: 'x.png')
