import pytest
from jinja2 import TemplateError

from dockdeps.UTILS.string_interpolation import EnvironmentInterpolator


def test_interpolate():
    context = {'NAME': 'web', 'EMPTY': ''}
    assert EnvironmentInterpolator.interpolate("${NAME}-1", context) == "web-1"
    assert EnvironmentInterpolator.interpolate("${EMPTY:-fallback}", context) == "fallback"
    assert EnvironmentInterpolator.interpolate("${NAME:+set}", context) == "set"


def test_interpolate_missing_variable():
    with pytest.raises(KeyError):
        EnvironmentInterpolator.interpolate("${NOPE}", {})


def test_expand_both_syntaxes():
    assert EnvironmentInterpolator.expand("base:${VERSION}", "VERSION", "1.2") == "base:1.2"
    assert EnvironmentInterpolator.expand("base:$VERSION", "VERSION", "1.2") == "base:1.2"


def test_expand_leaves_other_names():
    assert EnvironmentInterpolator.expand("$OTHER/${OTHER}", "VERSION", "1.2") == "$OTHER/${OTHER}"


def test_render_template_sees_environment(monkeypatch):
    monkeypatch.setenv("DOCKDEPS_TEST_USER", "alice")
    assert EnvironmentInterpolator.render_template("{{ DOCKDEPS_TEST_USER }}-tag") == "alice-tag"


def test_render_template_extra_context():
    assert EnvironmentInterpolator.render_template("{{ a }}{{ b }}", {"a": "1", "b": "2"}) == "12"


def test_render_template_undefined():
    with pytest.raises(TemplateError):
        EnvironmentInterpolator.render_template("{{ DOCKDEPS_SURELY_UNDEFINED_NAME }}")
